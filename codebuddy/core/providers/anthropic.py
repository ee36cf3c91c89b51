"""Anthropic Claude Messages API descriptor."""

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

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeDescriptor(ProviderDescriptor):
    provider_type = ProviderType.CLAUDE
    name = "Claude (Anthropic)"
    api_key_pattern = re.compile(r"^sk-ant-")
    api_key_placeholder = "sk-ant-api03-..."
    config_fields = ("api_key", "model")
    models = (
        ModelInfo("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet v2 (Best)", is_default=True),
        ModelInfo("claude-3-5-haiku-20241022", "Claude 3.5 Haiku (Fast & Affordable)"),
        ModelInfo("claude-3-opus-20240229", "Claude 3 Opus (Most Capable)"),
        ModelInfo("claude-3-sonnet-20240229", "Claude 3 Sonnet"),
        ModelInfo("claude-3-haiku-20240307", "Claude 3 Haiku"),
    )
    endpoint = "https://api.anthropic.com/v1/messages"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": config.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        return {
            "model": self.model_for(config),
            "max_tokens": DEFAULT_MAX_TOKENS,
            "temperature": DEFAULT_TEMPERATURE,
            "system": system_prompt,
            "messages": [{"role": "user", "content": prompt}],
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        # Concatenate text blocks; thinking or tool blocks carry no script.
        blocks = dig(data, "content")
        if not isinstance(blocks, list):
            return ""
        texts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        return "".join(text for text in texts if isinstance(text, str))
