"""Test configuration management."""

import json

import pytest

from codebuddy.core.config import (
    ConfigManager,
    GlobalConfig,
    ProviderConfig,
    ProviderType,
)
from codebuddy.core.site_prompts import PatternValidationError, SitePromptEntry


def test_global_config_defaults():
    config = GlobalConfig()
    assert config.provider == ProviderType.CLAUDE
    assert config.provider_configs == {}
    assert config.site_prompts == {}
    assert config.request_timeout is None


def test_provider_type_normalizes_aliases():
    assert ProviderType("anthropic") == ProviderType.CLAUDE
    assert ProviderType("Google") == ProviderType.GEMINI
    assert ProviderType("azure-openai") == ProviderType.AZURE
    assert ProviderType("hf") == ProviderType.HUGGINGFACE
    with pytest.raises(ValueError):
        ProviderType("bedrock")


def test_provider_config_accepts_alias_label():
    profile = ProviderConfig(provider="copilot", api_key="ghp_x")
    assert profile.provider == ProviderType.GITHUB


def test_global_config_normalizes_site_patterns():
    config = GlobalConfig(site_prompts={" *.GitHub.com ": SitePromptEntry(prompt="gh")})
    assert list(config.site_prompts) == ["*.github.com"]
    assert config.site_prompts["*.github.com"].pattern == "*.github.com"


def test_global_config_rejects_invalid_site_patterns():
    with pytest.raises(ValueError):
        GlobalConfig(site_prompts={"api.*.com": SitePromptEntry(prompt="x")})


def test_config_manager_round_trip(manager, config_path):
    config = manager.get_global_config()
    assert isinstance(config, GlobalConfig)

    manager.set_provider_config(
        ProviderConfig(provider=ProviderType.OPENAI, api_key="sk-x", model="gpt-4o"), use=True
    )
    assert config_path.exists()

    reloaded = ConfigManager(config_path).get_global_config()
    assert reloaded.provider == ProviderType.OPENAI
    assert reloaded.provider_configs["openai"].model == "gpt-4o"


def test_corrupt_config_falls_back_to_defaults(config_path):
    config_path.write_text("{not json", encoding="utf-8")
    config = ConfigManager(config_path).get_global_config()
    assert config == GlobalConfig()


def test_env_api_key_fills_missing_key(manager, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
    assert manager.get_provider_config(ProviderType.CLAUDE).api_key == "sk-ant-env"

    manager.set_provider_config(ProviderConfig(provider=ProviderType.CLAUDE, api_key="sk-ant-stored"))
    assert manager.get_provider_config(ProviderType.CLAUDE).api_key == "sk-ant-stored"


def test_generic_env_api_key(manager, monkeypatch):
    monkeypatch.setenv("CODEBUDDY_API_KEY", "r8_generic")
    assert manager.get_provider_config(ProviderType.REPLICATE).api_key == "r8_generic"


def test_get_provider_config_does_not_mutate_stored_profile(manager, monkeypatch):
    manager.set_provider_config(ProviderConfig(provider=ProviderType.OPENAI))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert manager.get_provider_config(ProviderType.OPENAI).api_key == "sk-env"
    assert manager.get_global_config().provider_configs["openai"].api_key is None


class TestSitePromptCrud:
    def test_save_normalizes_pattern(self, manager):
        entry = manager.save_site_prompt("  RPORT.io ", "  Use rport syntax. ", name="rport")
        assert entry.pattern == "rport.io"
        assert entry.prompt == "Use rport syntax."
        assert manager.get_global_config().site_prompts["rport.io"].name == "rport"

    def test_invalid_pattern_is_never_stored(self, manager, config_path):
        with pytest.raises(PatternValidationError):
            manager.save_site_prompt("**.example.com", "x")
        assert manager.get_global_config().site_prompts == {}
        assert not config_path.exists()

    def test_empty_prompt_is_rejected(self, manager):
        with pytest.raises(ValueError, match="Prompt is required"):
            manager.save_site_prompt("example.com", "   ")

    def test_rename_keeps_enabled_flag(self, manager):
        manager.save_site_prompt("example.com", "x")
        manager.toggle_site_prompt("example.com")
        entry = manager.save_site_prompt("*.example.com", "y", previous_pattern="example.com")

        site_prompts = manager.get_global_config().site_prompts
        assert list(site_prompts) == ["*.example.com"]
        assert entry.enabled is False

    def test_toggle_and_delete(self, manager):
        manager.save_site_prompt("example.com", "x")
        assert manager.toggle_site_prompt("EXAMPLE.com").enabled is False
        assert manager.toggle_site_prompt("example.com").enabled is True

        manager.delete_site_prompt("example.com")
        assert manager.get_global_config().site_prompts == {}
        with pytest.raises(KeyError):
            manager.delete_site_prompt("example.com")
        with pytest.raises(KeyError):
            manager.toggle_site_prompt("example.com")


class TestExportImport:
    def test_export_omits_api_keys_by_default(self, manager, tmp_path):
        manager.set_provider_config(ProviderConfig(provider=ProviderType.OPENAI, api_key="sk-secret"))
        manager.save_site_prompt("example.com", "x")

        target = manager.export_config(tmp_path / "export.json")
        data = json.loads(target.read_text(encoding="utf-8"))
        assert "api_key" not in data["provider_configs"]["openai"]
        assert data["site_prompts"]["example.com"]["prompt"] == "x"

        with_keys = json.loads(
            manager.export_config(tmp_path / "keys.json", include_api_keys=True).read_text(
                encoding="utf-8"
            )
        )
        assert with_keys["provider_configs"]["openai"]["api_key"] == "sk-secret"

    def test_import_round_trip_keeps_existing_keys(self, manager, tmp_path):
        manager.set_provider_config(ProviderConfig(provider=ProviderType.OPENAI, api_key="sk-secret"))
        exported = manager.export_config(tmp_path / "export.json")

        other = ConfigManager(tmp_path / "other.json")
        other.set_provider_config(ProviderConfig(provider=ProviderType.OPENAI, api_key="sk-other"))
        config = other.import_config(exported)
        assert config.provider_configs["openai"].api_key == "sk-other"

    def test_import_requires_provider(self, manager, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"apiKey": "sk-x"}), encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid configuration file"):
            manager.import_config(path)

    def test_import_extension_settings(self, manager, tmp_path):
        path = tmp_path / "extension.json"
        path.write_text(
            json.dumps(
                {
                    "provider": "azure",
                    "apiKey": "a" * 32,
                    "endpoint": "https://res.openai.azure.com",
                    "deploymentName": "gpt4",
                    "apiVersion": "2024-02-01",
                    "sitePrompts": {
                        "*.GitHub.com": {"name": "GitHub", "prompt": "Use gh CLI.", "enabled": True}
                    },
                }
            ),
            encoding="utf-8",
        )

        config = manager.import_config(path)

        assert config.provider == ProviderType.AZURE
        profile = config.provider_configs["azure"]
        assert profile.endpoint == "https://res.openai.azure.com"
        assert profile.extra("deployment_name") == "gpt4"
        assert profile.extra("api_version") == "2024-02-01"
        assert config.site_prompts["*.github.com"].prompt == "Use gh CLI."

    def test_import_rejects_invalid_site_pattern(self, manager, tmp_path):
        path = tmp_path / "extension.json"
        path.write_text(
            json.dumps({"provider": "openai", "sitePrompts": {"a*b.com": {"prompt": "x"}}}),
            encoding="utf-8",
        )
        with pytest.raises(ValueError):
            manager.import_config(path)
        assert manager.get_global_config().site_prompts == {}
