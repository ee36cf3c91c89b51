"""Replicate predictions descriptor."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ModelInfo,
    ProviderDescriptor,
)

REPLICATE_API_BASE = "https://api.replicate.com/v1"


class ReplicateDescriptor(ProviderDescriptor):
    """Runs predictions synchronously via the ``Prefer: wait`` header.

    With an explicit ``model_version`` the generic predictions endpoint is
    used; otherwise the official model endpoint for ``owner/name`` is.
    """

    provider_type = ProviderType.REPLICATE
    name = "Replicate"
    api_key_pattern = re.compile(r"^r8_")
    api_key_placeholder = "r8_..."
    config_fields = ("api_key", "model")
    models = (
        ModelInfo("meta/meta-llama-3.1-8b-instruct", "Llama 3.1 8B (Fast & Cheap)", is_default=True),
        ModelInfo("meta/meta-llama-3.1-70b-instruct", "Llama 3.1 70B"),
        ModelInfo("meta/meta-llama-3.1-405b-instruct", "Llama 3.1 405B (Best)"),
        ModelInfo("mistralai/mixtral-8x7b-instruct-v0.1", "Mixtral 8x7B"),
        ModelInfo("deepseek-ai/deepseek-coder-33b-instruct", "DeepSeek Coder 33B"),
    )

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        if config.extra("model_version"):
            return f"{REPLICATE_API_BASE}/predictions"
        return f"{REPLICATE_API_BASE}/models/{self.model_for(config)}/predictions"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Token {config.api_key or ''}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "input": {
                "prompt": (
                    f"{system_prompt}\n\nGiven the following request, provide ONLY the "
                    "improved executable code without any explanations or markdown "
                    f"formatting:\n\n{prompt}"
                ),
                "max_new_tokens": DEFAULT_MAX_TOKENS,
                "temperature": DEFAULT_TEMPERATURE,
            }
        }
        version = config.extra("model_version")
        if version:
            body["version"] = version
        return body

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        if not isinstance(data, dict):
            return ""
        output = data.get("output")
        # Language models stream tokens, so output is usually a list of fragments.
        if isinstance(output, list):
            return "".join(str(item) for item in output if item is not None)
        return output if isinstance(output, str) else ""
