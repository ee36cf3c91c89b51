"""GitHub Copilot completions descriptor."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ProviderDescriptor,
    dig,
)
from codebuddy.core.providers.errors import (
    ProviderAuthenticationError,
    ProviderMappedError,
    ProviderPermissionDeniedError,
)


class GitHubCopilotDescriptor(ProviderDescriptor):
    provider_type = ProviderType.GITHUB
    name = "GitHub Copilot"
    api_key_pattern = re.compile(r"^gh[ps]_")
    api_key_placeholder = "ghp_... or ghs_..."
    config_fields = ("api_key",)
    endpoint = "https://api.github.com/copilot/completions"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"token {config.api_key or ''}",
            "Accept": "application/vnd.github.copilot-preview+json",
            "Content-Type": "application/json",
        }

    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        commented_system = "\n".join(f"# {line}" for line in system_prompt.splitlines())
        return {
            "prompt": (
                f"{commented_system}\n"
                "# Task: Improve and fix the following script\n"
                "# Requirement: Return only executable code without explanations\n\n"
                f"{prompt}\n\n# Improved version:\n"
            ),
            "max_tokens": DEFAULT_MAX_TOKENS,
            "temperature": DEFAULT_TEMPERATURE,
        }

    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        text = dig(data, "choices", 0, "text")
        return text if isinstance(text, str) else ""

    def classify_error(self, status: int, data: Any) -> ProviderMappedError:
        if status == 401:
            return ProviderAuthenticationError("Invalid GitHub token or Copilot not enabled")
        if status == 403:
            return ProviderPermissionDeniedError("GitHub Copilot access required")
        return super().classify_error(status, data)
