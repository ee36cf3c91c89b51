"""Cohere generate descriptor."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ModelInfo,
    ProviderDescriptor,
    dig,
)


class CohereDescriptor(ProviderDescriptor):
    provider_type = ProviderType.COHERE
    name = "Cohere"
    api_key_pattern = re.compile(r"^[A-Za-z0-9]{40}$")
    api_key_placeholder = "40-character API key"
    config_fields = ("api_key", "model")
    models = (
        ModelInfo("command-light", "Command Light (Fast & Cheap)", is_default=True),
        ModelInfo("command-r", "Command R"),
        ModelInfo("command-r-plus", "Command R+ (Best)"),
        ModelInfo("command", "Command (Legacy)"),
    )
    endpoint = "https://api.cohere.ai/v1/generate"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key or ''}",
        }

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        return {
            "model": self.model_for(config),
            "prompt": (
                f"{system_prompt}\n\nGiven the following request, provide ONLY the improved "
                "executable code without any explanations or markdown formatting:\n\n"
                f"{prompt}\n\nImproved script:"
            ),
            "max_tokens": DEFAULT_MAX_TOKENS,
            "temperature": DEFAULT_TEMPERATURE,
            "stop_sequences": ["---", "```"],
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        text = dig(data, "generations", 0, "text")
        return text if isinstance(text, str) else ""
