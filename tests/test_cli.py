"""Tests for the `codebuddy` command line."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from codebuddy import __version__
from codebuddy.cli import cli as cli_module
from codebuddy.core.config import ConfigManager, ProviderType
from codebuddy.core.providers import ProviderResult


@pytest.fixture
def run_cli(config_path):
    runner = CliRunner()

    def _run(args, **kwargs):
        return runner.invoke(cli_module.cli, ["--config", str(config_path), *args], **kwargs)

    return _run


@pytest.fixture
def fake_call_api(monkeypatch):
    calls = []
    replies = []

    async def _fake(descriptor, config, prompt, retry_count=0, **kwargs):
        calls.append({"descriptor": descriptor, "config": config, "prompt": prompt, **kwargs})
        return replies.pop(0) if replies else ProviderResult.ok("echo fixed")

    monkeypatch.setattr("codebuddy.core.assistant.call_api", _fake)
    _fake.calls = calls
    _fake.replies = replies
    return _fake


def test_version(run_cli):
    result = run_cli(["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_providers_lists_every_vendor(run_cli):
    result = run_cli(["providers"])
    assert result.exit_code == 0
    for provider in ("claude", "openai", "ollama", "custom"):
        assert provider in result.output


def test_models(run_cli):
    result = run_cli(["models", "openai"])
    assert result.exit_code == 0
    assert "gpt-4o-mini" in result.output

    azure = run_cli(["models", "azure"])
    assert azure.exit_code == 0
    assert "takes any model name" in azure.output


def test_configure_saves_profile(run_cli, config_path):
    result = run_cli(
        [
            "configure",
            "openai",
            "--api-key",
            "sk-test",
            "--model",
            "gpt-4o",
            "--set",
            "organization=org-1",
            "--use",
        ]
    )
    assert result.exit_code == 0, result.output
    assert "Active provider: openai" in result.output

    config = ConfigManager(config_path).get_global_config()
    assert config.provider == ProviderType.OPENAI
    profile = config.provider_configs["openai"]
    assert profile.api_key == "sk-test"
    assert profile.model == "gpt-4o"
    assert profile.extra("organization") == "org-1"


def test_configure_warns_about_invalid_settings(run_cli):
    result = run_cli(["configure", "claude", "--api-key", "wrong"])
    assert result.exit_code == 0
    assert "Invalid API key format" in result.output


def test_configure_rejects_malformed_set(run_cli):
    result = run_cli(["configure", "azure", "--set", "deployment_name"])
    assert result.exit_code == 1
    assert "Expected KEY=VALUE" in result.output


def test_sites_lifecycle(run_cli, config_path):
    added = run_cli(["sites", "add", "RPORT.io", "Use rport syntax.", "--name", "rport"])
    assert added.exit_code == 0, added.output
    assert "rport.io" in added.output

    listed = run_cli(["sites", "list"])
    assert "rport.io" in listed.output

    resolved = run_cli(["sites", "resolve", "https://rport.io/docs"])
    assert "Matched rport.io" in resolved.output
    assert "Use rport syntax." in resolved.output

    toggled = run_cli(["sites", "toggle", "rport.io"])
    assert "disabled" in toggled.output
    assert "No site prompt matches" in run_cli(["sites", "resolve", "https://rport.io"]).output

    removed = run_cli(["sites", "remove", "rport.io"])
    assert removed.exit_code == 0
    assert ConfigManager(config_path).get_global_config().site_prompts == {}


def test_sites_add_rejects_invalid_pattern(run_cli, config_path):
    result = run_cli(["sites", "add", "api.*.com", "x"])
    assert result.exit_code == 1
    assert "Wildcard (*) must be at the beginning" in result.output
    assert not config_path.exists()


def test_sites_remove_missing(run_cli):
    result = run_cli(["sites", "remove", "example.com"])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_config_export_and_import(run_cli, config_path, tmp_path):
    run_cli(["configure", "openai", "--api-key", "sk-secret", "--use"])
    export_path = tmp_path / "export.json"

    exported = run_cli(["config", "export", str(export_path)])
    assert exported.exit_code == 0
    assert "sk-secret" not in export_path.read_text(encoding="utf-8")

    extension_path = tmp_path / "extension.json"
    extension_path.write_text(
        json.dumps({"provider": "gemini", "apiKey": "AIzaKey", "modelPreference": "gemini-1.5-pro"}),
        encoding="utf-8",
    )
    imported = run_cli(["config", "import", str(extension_path)])
    assert imported.exit_code == 0, imported.output
    config = ConfigManager(config_path).get_global_config()
    assert config.provider == ProviderType.GEMINI
    assert config.provider_configs["gemini"].model == "gemini-1.5-pro"

    bad_path = tmp_path / "bad.json"
    bad_path.write_text("{}", encoding="utf-8")
    rejected = run_cli(["config", "import", str(bad_path)])
    assert rejected.exit_code == 1
    assert "Invalid configuration file" in rejected.output


def test_analyze_prints_fixed_script(run_cli, fake_call_api, tmp_path):
    run_cli(["configure", "openai", "--api-key", "sk-test", "--use"])
    run_cli(["sites", "add", "rport.io", "Use rport syntax."])
    output_file = tmp_path / "output.log"
    output_file.write_text("permission denied", encoding="utf-8")
    script_file = tmp_path / "deploy.sh"
    script_file.write_text("./deploy", encoding="utf-8")

    result = run_cli(
        ["analyze", str(output_file), "--script", str(script_file), "--url", "https://rport.io"]
    )

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "echo fixed"
    (call,) = fake_call_api.calls
    assert call["descriptor"].provider_type == ProviderType.OPENAI
    assert call["instructions"] == "Use rport syntax."
    assert "Latest Output/Error:\npermission denied" in call["prompt"]
    assert "Current Script:\n./deploy" in call["prompt"]


def test_analyze_reads_stdin_and_prints_json(run_cli, fake_call_api):
    result = run_cli(["analyze", "-", "--provider", "ollama", "--json"], input="segfault\n")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"success": True, "content": "echo fixed"}
    (call,) = fake_call_api.calls
    assert call["descriptor"].provider_type == ProviderType.OLLAMA
    assert "segfault" in call["prompt"]


def test_analyze_records_history(run_cli, fake_call_api, tmp_path):
    history_path = tmp_path / "history.json"
    output_file = tmp_path / "output.log"
    output_file.write_text("boom", encoding="utf-8")

    first = run_cli(["analyze", str(output_file), "--history", str(history_path), "--record"])
    second = run_cli(["analyze", str(output_file), "--history", str(history_path), "--record"])

    assert first.exit_code == 0 and second.exit_code == 0
    saved = json.loads(history_path.read_text(encoding="utf-8"))
    assert len(saved) == 2
    assert saved[0]["improved_script"] == "echo fixed"
    assert "is STILL failing after 1 attempts" in fake_call_api.calls[1]["prompt"]


def test_analyze_failure_exits_nonzero(run_cli, fake_call_api, tmp_path):
    fake_call_api.replies.append(
        ProviderResult(success=False, error="Rate limit exceeded: slow down", error_code="rate_limit")
    )
    output_file = tmp_path / "output.log"
    output_file.write_text("boom", encoding="utf-8")

    result = run_cli(["analyze", str(output_file)])

    assert result.exit_code == 1
    assert "Rate limit exceeded: slow down" in result.output


def test_record_requires_history(run_cli, tmp_path):
    output_file = tmp_path / "output.log"
    output_file.write_text("boom", encoding="utf-8")
    result = run_cli(["analyze", str(output_file), "--record"])
    assert result.exit_code == 2


def test_improve(run_cli, fake_call_api, tmp_path):
    script_file = tmp_path / "build.sh"
    script_file.write_text("make", encoding="utf-8")

    result = run_cli(["improve", str(script_file), "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output)["content"] == "echo fixed"
    assert fake_call_api.calls[0]["prompt"].startswith("Improve the following command or script")


def test_log_file_receives_structured_entries(run_cli, tmp_path):
    log_path = tmp_path / "codebuddy.log"
    result = run_cli(["--log-file", str(log_path), "providers"])
    assert result.exit_code == 0
    assert "[cli] Starting CLI invocation" in log_path.read_text(encoding="utf-8")
