"""Google Gemini generateContent descriptor."""

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

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GeminiDescriptor(ProviderDescriptor):
    provider_type = ProviderType.GEMINI
    name = "Google Gemini"
    api_key_pattern = re.compile(r"^AIza")
    api_key_placeholder = "AIza..."
    config_fields = ("api_key", "model")
    models = (
        ModelInfo("gemini-1.5-flash", "Gemini 1.5 Flash (Free - Fast)", is_default=True),
        ModelInfo("gemini-1.5-pro", "Gemini 1.5 Pro (Free - Best)"),
        ModelInfo("gemini-2.0-flash-exp", "Gemini 2.0 Flash (Experimental)"),
        ModelInfo("gemini-pro", "Gemini Pro (Legacy)"),
        ModelInfo("gemini-pro-vision", "Gemini Pro Vision (Legacy)"),
    )

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        # The key travels in the query string rather than a header.
        return (
            f"{GEMINI_API_BASE}/models/{self.model_for(config)}:generateContent"
            f"?key={config.api_key or ''}"
        )

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "text": (
                                f"{system_prompt}\n\n"
                                "Given the following request, provide ONLY the improved "
                                "executable code without any explanations or markdown "
                                f"formatting:\n\n{prompt}"
                            )
                        }
                    ]
                }
            ],
            "generationConfig": {
                "temperature": DEFAULT_TEMPERATURE,
                "maxOutputTokens": DEFAULT_MAX_TOKENS,
            },
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        parts = dig(data, "candidates", 0, "content", "parts")
        if not isinstance(parts, list):
            return ""
        return "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
