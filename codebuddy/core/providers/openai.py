"""OpenAI and Azure OpenAI chat-completions descriptors."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ModelInfo,
    ProviderDescriptor,
    dig,
)

DEFAULT_AZURE_API_VERSION = "2023-05-15"


def _chat_messages(prompt: str, system_prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompt},
    ]


def _chat_completion_text(data: Any) -> str:
    content = dig(data, "choices", 0, "message", "content")
    return content if isinstance(content, str) else ""


class OpenAIDescriptor(ProviderDescriptor):
    provider_type = ProviderType.OPENAI
    name = "OpenAI (GPT-4/GPT-3.5)"
    api_key_pattern = re.compile(r"^sk-")
    api_key_placeholder = "sk-..."
    config_fields = ("api_key", "model", "organization")
    models = (
        ModelInfo("gpt-4o-mini", "GPT-4o Mini (Fast & Cheap)", is_default=True),
        ModelInfo("gpt-4o", "GPT-4o (Best - Multimodal)"),
        ModelInfo("o1-preview", "o1-preview (Reasoning)"),
        ModelInfo("o1-mini", "o1-mini (Fast Reasoning)"),
        ModelInfo("gpt-4-turbo", "GPT-4 Turbo"),
        ModelInfo("gpt-4", "GPT-4"),
        ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    )
    endpoint = "https://api.openai.com/v1/chat/completions"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key or ''}",
        }
        organization = config.extra("organization")
        if organization:
            headers["OpenAI-Organization"] = organization
        return headers

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        return {
            "model": self.model_for(config),
            "messages": _chat_messages(prompt, system_prompt),
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": DEFAULT_MAX_TOKENS,
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        return _chat_completion_text(data)


class AzureOpenAIDescriptor(ProviderDescriptor):
    """Azure routes by deployment name; the model is fixed per deployment."""

    provider_type = ProviderType.AZURE
    name = "Azure OpenAI"
    api_key_pattern = re.compile(r"^[a-f0-9]{32}$")
    api_key_placeholder = "32-character key"
    config_fields = ("api_key", "endpoint", "deployment_name", "api_version")

    def validate(self, config: ProviderConfig) -> List[str]:
        errors = super().validate(config)
        if not config.extra("deployment_name").strip():
            errors.append("Deployment name is required")
        return errors

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        base = (config.endpoint or "").rstrip("/")
        deployment = quote(config.extra("deployment_name"), safe="")
        api_version = config.extra("api_version", DEFAULT_AZURE_API_VERSION)
        return (
            f"{base}/openai/deployments/{deployment}/chat/completions"
            f"?api-version={api_version}"
        )

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {"Content-Type": "application/json", "api-key": config.api_key or ""}

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        return {
            "messages": _chat_messages(prompt, system_prompt),
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": DEFAULT_MAX_TOKENS,
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        return _chat_completion_text(data)
