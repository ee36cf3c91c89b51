"""Configuration management for Codebuddy.

This module handles the persisted settings: which provider is active, the
per-provider connection details and the site-specific prompt table.
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from codebuddy.core.site_prompts import SitePromptEntry, ensure_valid_site_pattern
from codebuddy.utils.log import get_logger


logger = get_logger()


class ProviderType(str, Enum):
    """Supported AI vendors."""

    CLAUDE = "claude"
    OPENAI = "openai"
    GEMINI = "gemini"
    AZURE = "azure"
    COHERE = "cohere"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"
    GITHUB = "github"
    REPLICATE = "replicate"
    CUSTOM = "custom"

    @classmethod
    def _legacy_aliases(cls) -> Dict[str, "ProviderType"]:
        return {
            "anthropic": cls.CLAUDE,
            "google": cls.GEMINI,
            "azure-openai": cls.AZURE,
            "azure_openai": cls.AZURE,
            "hf": cls.HUGGINGFACE,
            "hugging-face": cls.HUGGINGFACE,
            "copilot": cls.GITHUB,
        }

    @classmethod
    def _missing_(cls, value: object) -> Optional["ProviderType"]:
        """Support alternate vendor labels."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
            return cls._legacy_aliases().get(normalized)
        return None


def api_key_env_candidates(provider: ProviderType) -> list[str]:
    """Environment variables to check for an API key."""
    candidates = {
        ProviderType.CLAUDE: ["ANTHROPIC_API_KEY"],
        ProviderType.OPENAI: ["OPENAI_API_KEY"],
        ProviderType.GEMINI: ["GEMINI_API_KEY", "GOOGLE_API_KEY"],
        ProviderType.AZURE: ["AZURE_OPENAI_API_KEY"],
        ProviderType.COHERE: ["COHERE_API_KEY", "CO_API_KEY"],
        ProviderType.HUGGINGFACE: ["HF_TOKEN", "HUGGINGFACE_API_KEY"],
        ProviderType.OLLAMA: [],
        ProviderType.GITHUB: ["GITHUB_TOKEN"],
        ProviderType.REPLICATE: ["REPLICATE_API_TOKEN"],
        ProviderType.CUSTOM: [],
    }
    return [*candidates.get(provider, []), "CODEBUDDY_API_KEY"]


class ProviderConfig(BaseModel):
    """Connection details for one provider."""

    provider: ProviderType
    api_key: Optional[str] = None
    model: Optional[str] = None
    endpoint: Optional[str] = None
    # Vendor-specific settings: organization, deployment_name, api_version,
    # headers, request_template, response_parser, model_version.
    extra_fields: Dict[str, str] = Field(default_factory=dict)

    def extra(self, key: str, default: str = "") -> str:
        value = self.extra_fields.get(key)
        return value if value else default

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "ProviderConfig":
        """Build a config from the browser extension's flat settings export."""
        extras = {
            "organization": settings.get("organization"),
            "deployment_name": settings.get("deploymentName"),
            "api_version": settings.get("apiVersion"),
            "headers": settings.get("customHeaders"),
            "request_template": settings.get("requestTemplate"),
        }
        return cls(
            provider=settings.get("provider") or ProviderType.CLAUDE,
            api_key=settings.get("apiKey") or None,
            model=settings.get("modelPreference") or None,
            endpoint=settings.get("endpoint") or None,
            extra_fields={key: str(value) for key, value in extras.items() if value},
        )


class GlobalConfig(BaseModel):
    """Global configuration stored in ~/.codebuddy.json"""

    model_config = {"protected_namespaces": (), "populate_by_name": True}

    provider: ProviderType = ProviderType.CLAUDE
    provider_configs: Dict[str, ProviderConfig] = Field(default_factory=dict)
    site_prompts: Dict[str, SitePromptEntry] = Field(default_factory=dict)
    default_system_prompt: str = ""
    # Per-attempt timeout override in seconds; vendor defaults apply when unset.
    request_timeout: Optional[float] = None

    @field_validator("site_prompts")
    @classmethod
    def _validate_site_patterns(
        cls, value: Dict[str, SitePromptEntry]
    ) -> Dict[str, SitePromptEntry]:
        normalized: Dict[str, SitePromptEntry] = {}
        for pattern, entry in value.items():
            clean = ensure_valid_site_pattern(pattern)
            normalized[clean] = entry.model_copy(update={"pattern": clean})
        return normalized


class ConfigManager:
    """Loads, saves and edits the global configuration."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.global_config_path = config_path or Path.home() / ".codebuddy.json"
        self._global_config: Optional[GlobalConfig] = None

    def get_global_config(self) -> GlobalConfig:
        """Load and return global configuration."""
        if self._global_config is None:
            if self.global_config_path.exists():
                try:
                    data = json.loads(self.global_config_path.read_text(encoding="utf-8"))
                    self._global_config = GlobalConfig(**data)
                    logger.debug(
                        "[config] Loaded global configuration",
                        extra={
                            "path": str(self.global_config_path),
                            "provider_count": len(self._global_config.provider_configs),
                            "site_prompt_count": len(self._global_config.site_prompts),
                        },
                    )
                except (
                    json.JSONDecodeError,
                    OSError,
                    UnicodeDecodeError,
                    ValueError,
                    TypeError,
                ) as e:
                    logger.warning(
                        "Error loading global config: %s: %s",
                        type(e).__name__,
                        e,
                        extra={"error": str(e)},
                    )
                    self._global_config = GlobalConfig()
            else:
                self._global_config = GlobalConfig()
                logger.debug(
                    "[config] Global config not found; using defaults",
                    extra={"path": str(self.global_config_path)},
                )
        return self._global_config

    def save_global_config(self, config: GlobalConfig) -> None:
        """Save global configuration."""
        self._global_config = config
        self.global_config_path.parent.mkdir(parents=True, exist_ok=True)
        self.global_config_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(
            "[config] Saved global configuration",
            extra={
                "path": str(self.global_config_path),
                "provider": config.provider.value,
                "site_prompt_count": len(config.site_prompts),
            },
        )

    def get_provider_config(self, provider: Optional[ProviderType] = None) -> ProviderConfig:
        """Return the stored config for ``provider`` with env API keys applied."""
        config = self.get_global_config()
        provider = provider or config.provider
        stored = config.provider_configs.get(provider.value)
        profile = stored.model_copy(deep=True) if stored else ProviderConfig(provider=provider)
        if not profile.api_key:
            profile.api_key = self.get_api_key(provider)
        return profile

    def set_provider_config(self, profile: ProviderConfig, use: bool = False) -> GlobalConfig:
        """Store ``profile`` and optionally make its provider the active one."""
        config = self.get_global_config()
        config.provider_configs[profile.provider.value] = profile
        if use:
            config.provider = profile.provider
        self.save_global_config(config)
        return config

    def get_api_key(self, provider: ProviderType) -> Optional[str]:
        """Get an API key for a provider from the environment."""
        for env_var in api_key_env_candidates(provider):
            if os.environ.get(env_var):
                return os.environ[env_var]
        return None

    def save_site_prompt(
        self,
        pattern: str,
        prompt: str,
        name: str = "",
        previous_pattern: Optional[str] = None,
    ) -> SitePromptEntry:
        """Create or edit a site prompt. Rejects invalid patterns before storing."""
        clean_pattern = ensure_valid_site_pattern(pattern)
        if not prompt or not prompt.strip():
            raise ValueError("Prompt is required")

        config = self.get_global_config()
        existing = config.site_prompts.get(clean_pattern)
        if previous_pattern:
            previous = previous_pattern.strip().lower()
            if previous != clean_pattern:
                existing = config.site_prompts.pop(previous, None) or existing

        entry = SitePromptEntry(
            pattern=clean_pattern,
            name=name.strip(),
            prompt=prompt.strip(),
            enabled=existing.enabled if existing else True,
        )
        config.site_prompts[clean_pattern] = entry
        self.save_global_config(config)
        return entry

    def delete_site_prompt(self, pattern: str) -> GlobalConfig:
        config = self.get_global_config()
        key = pattern.strip().lower()
        if key not in config.site_prompts:
            raise KeyError(f"Site prompt '{pattern}' does not exist.")
        del config.site_prompts[key]
        self.save_global_config(config)
        return config

    def toggle_site_prompt(self, pattern: str) -> SitePromptEntry:
        config = self.get_global_config()
        key = pattern.strip().lower()
        entry = config.site_prompts.get(key)
        if entry is None:
            raise KeyError(f"Site prompt '{pattern}' does not exist.")
        entry.enabled = not entry.enabled
        self.save_global_config(config)
        return entry

    def export_config(self, path: Path, include_api_keys: bool = False) -> Path:
        """Write the configuration to ``path``; API keys are dropped by default."""
        data = self.get_global_config().model_dump(mode="json")
        if not include_api_keys:
            for profile in data.get("provider_configs", {}).values():
                profile.pop("api_key", None)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        logger.info(
            "[config] Exported configuration",
            extra={"path": str(path), "include_api_keys": include_api_keys},
        )
        return path

    def import_config(self, path: Path) -> GlobalConfig:
        """Replace the configuration with the contents of ``path``.

        Accepts both our own export and the browser extension's flat
        camelCase settings export.
        """
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not data.get("provider"):
            raise ValueError("Invalid configuration file")

        if "provider_configs" in data or "site_prompts" in data:
            config = GlobalConfig(**data)
        else:
            profile = ProviderConfig.from_settings(data)
            config = GlobalConfig(
                provider=profile.provider,
                provider_configs={profile.provider.value: profile},
                site_prompts=data.get("sitePrompts") or {},
            )

        # Keep keys we already hold when the import was exported without them.
        current = self.get_global_config()
        for name, profile in config.provider_configs.items():
            previous = current.provider_configs.get(name)
            if not profile.api_key and previous and previous.api_key:
                profile.api_key = previous.api_key

        self.save_global_config(config)
        logger.info(
            "[config] Imported configuration",
            extra={"path": str(path), "provider": config.provider.value},
        )
        return config


# Global instance
config_manager = ConfigManager()


def get_global_config() -> GlobalConfig:
    """Get global configuration."""
    return config_manager.get_global_config()


def save_global_config(config: GlobalConfig) -> None:
    """Save global configuration."""
    config_manager.save_global_config(config)


def get_provider_config(provider: Optional[ProviderType] = None) -> ProviderConfig:
    """Convenience wrapper to fetch the config for a provider."""
    return config_manager.get_provider_config(provider)
