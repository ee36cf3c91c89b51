"""Provider descriptor registry."""

from __future__ import annotations

from typing import Dict, List, Union

from codebuddy.core.config import ProviderType
from codebuddy.core.providers.anthropic import ClaudeDescriptor
from codebuddy.core.providers.base import (
    MAX_RETRIES,
    SYSTEM_INSTRUCTION,
    ModelInfo,
    ProviderDescriptor,
    ProviderResult,
    build_request,
    call_api,
    compose_system_prompt,
    get_endpoint,
    parse_response,
    strip_code_fences,
    validate_config,
)
from codebuddy.core.providers.cohere import CohereDescriptor
from codebuddy.core.providers.custom import CustomDescriptor
from codebuddy.core.providers.gemini import GeminiDescriptor
from codebuddy.core.providers.github import GitHubCopilotDescriptor
from codebuddy.core.providers.huggingface import HuggingFaceDescriptor
from codebuddy.core.providers.ollama import OllamaDescriptor
from codebuddy.core.providers.openai import AzureOpenAIDescriptor, OpenAIDescriptor
from codebuddy.core.providers.replicate import ReplicateDescriptor
from codebuddy.utils.log import get_logger

logger = get_logger()

PROVIDERS: Dict[ProviderType, ProviderDescriptor] = {
    descriptor.provider_type: descriptor
    for descriptor in (
        ClaudeDescriptor(),
        OpenAIDescriptor(),
        GeminiDescriptor(),
        AzureOpenAIDescriptor(),
        CohereDescriptor(),
        HuggingFaceDescriptor(),
        OllamaDescriptor(),
        GitHubCopilotDescriptor(),
        ReplicateDescriptor(),
        CustomDescriptor(),
    )
}


def get_provider_descriptor(provider: Union[ProviderType, str]) -> ProviderDescriptor:
    """Return the descriptor for ``provider``.

    Raises ``ValueError`` for identifiers that are not a known vendor.
    """
    try:
        provider_type = ProviderType(provider)
    except ValueError:
        logger.warning("[providers] Unsupported provider", extra={"provider": str(provider)})
        raise ValueError(f"Unknown provider: {provider}") from None
    return PROVIDERS[provider_type]


def list_providers() -> List[ProviderDescriptor]:
    return list(PROVIDERS.values())


__all__ = [
    "MAX_RETRIES",
    "PROVIDERS",
    "SYSTEM_INSTRUCTION",
    "ModelInfo",
    "ProviderDescriptor",
    "ProviderResult",
    "build_request",
    "call_api",
    "compose_system_prompt",
    "get_endpoint",
    "get_provider_descriptor",
    "list_providers",
    "parse_response",
    "strip_code_fences",
    "validate_config",
]
