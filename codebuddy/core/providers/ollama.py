"""Ollama (local) generate descriptor."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.base import DEFAULT_TEMPERATURE, ModelInfo, ProviderDescriptor
from codebuddy.core.providers.errors import (
    ProviderConnectionError,
    ProviderMappedError,
    ProviderTimeoutError,
)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaDescriptor(ProviderDescriptor):
    provider_type = ProviderType.OLLAMA
    name = "Ollama (Local)"
    api_key_placeholder = "Not required (local)"
    config_fields = ("endpoint", "model")
    models = (
        ModelInfo("qwen2.5-coder:7b", "Qwen 2.5 Coder 7B (Fast)", is_default=True),
        ModelInfo("qwen2.5-coder:latest", "Qwen 2.5 Coder (Best)"),
        ModelInfo("llama3.2:latest", "Llama 3.2"),
        ModelInfo("llama3.1:latest", "Llama 3.1"),
        ModelInfo("deepseek-coder-v2:latest", "DeepSeek Coder v2"),
        ModelInfo("codellama:latest", "Code Llama"),
        ModelInfo("gemma2:latest", "Gemma 2"),
        ModelInfo("mistral:latest", "Mistral"),
        ModelInfo("mixtral:latest", "Mixtral"),
    )
    # Local models can take a while to load into memory on first use.
    request_timeout = 120.0

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        base = (config.endpoint or DEFAULT_OLLAMA_URL).rstrip("/")
        return f"{base}/api/generate"

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
            "stream": False,
            "options": {"temperature": DEFAULT_TEMPERATURE},
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        if not isinstance(data, dict):
            return ""
        text = data.get("response")
        return text if isinstance(text, str) else ""

    def classify_transport_error(self, exc: httpx.TransportError) -> ProviderMappedError:
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeoutError(
                "Timed out waiting for Ollama. Check that the model is pulled and loaded."
            )
        return ProviderConnectionError("Cannot connect to Ollama. Is it running?")
