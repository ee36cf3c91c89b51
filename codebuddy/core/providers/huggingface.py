"""Hugging Face Inference API descriptor."""

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
from codebuddy.core.providers.errors import (
    ProviderMappedError,
    ProviderServiceUnavailableError,
)

HF_INFERENCE_BASE = "https://api-inference.huggingface.co/models"


class HuggingFaceDescriptor(ProviderDescriptor):
    provider_type = ProviderType.HUGGINGFACE
    name = "Hugging Face"
    api_key_pattern = re.compile(r"^hf_")
    api_key_placeholder = "hf_..."
    config_fields = ("api_key", "model")
    models = (
        ModelInfo("Qwen/Qwen2.5-Coder-32B-Instruct", "Qwen 2.5 Coder 32B (Best)", is_default=True),
        ModelInfo("meta-llama/Llama-3.1-70B-Instruct", "Llama 3.1 70B"),
        ModelInfo("codellama/CodeLlama-34b-Instruct-hf", "CodeLlama 34B"),
        ModelInfo("deepseek-ai/deepseek-coder-33b-instruct", "DeepSeek Coder 33B"),
        ModelInfo("bigcode/starcoder2-15b", "StarCoder 2 15B"),
        ModelInfo("microsoft/phi-3-medium-4k-instruct", "Phi-3 Medium"),
    )

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        return f"{HF_INFERENCE_BASE}/{self.model_for(config)}"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key or ''}",
            "Content-Type": "application/json",
        }

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        return {
            "inputs": f"<s>[INST] {system_prompt}\n\n{prompt} [/INST]",
            "parameters": {
                "max_new_tokens": DEFAULT_MAX_TOKENS,
                "temperature": DEFAULT_TEMPERATURE,
                "do_sample": True,
                "top_p": 0.95,
                "return_full_text": False,
            },
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            return ""
        text = data.get("generated_text")
        return text if isinstance(text, str) else ""

    def classify_error(self, status: int, data: Any) -> ProviderMappedError:
        if status == 503:
            estimate = data.get("estimated_time") if isinstance(data, dict) else None
            suffix = f" (estimated {float(estimate):.0f}s)" if isinstance(estimate, (int, float)) else ""
            return ProviderServiceUnavailableError(f"Model is loading, will retry...{suffix}")
        return super().classify_error(status, data)
