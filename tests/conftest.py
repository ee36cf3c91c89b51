"""Pytest configuration and fixtures for all tests."""

from pathlib import Path

import pytest

from codebuddy.core.config import ConfigManager, ProviderType, api_key_env_candidates


@pytest.fixture(autouse=True)
def clear_api_key_env(monkeypatch):
    """Keep real API keys in the environment from leaking into tests."""
    for provider in ProviderType:
        for env_var in api_key_env_candidates(provider):
            monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("CODEBUDDY_CONFIG", raising=False)


@pytest.fixture
def config_path(tmp_path) -> Path:
    return tmp_path / "codebuddy.json"


@pytest.fixture
def manager(config_path) -> ConfigManager:
    """Config manager backed by a temporary settings file."""
    return ConfigManager(config_path)
