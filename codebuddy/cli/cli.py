"""Main CLI entry point for Codebuddy.

Fixes failing scripts from the terminal using the same provider layer,
site prompts and attempt history as the browser extension.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from codebuddy import __version__
from codebuddy.cli.config_cli import config_group, get_manager
from codebuddy.cli.sites_cli import sites_group
from codebuddy.core.assistant import ScriptAssistant
from codebuddy.core.config import (
    ConfigManager,
    ProviderConfig,
    ProviderType,
)
from codebuddy.core.conversation import ConversationHistory
from codebuddy.core.providers import (
    ProviderResult,
    get_provider_descriptor,
    list_providers,
    validate_config,
)
from codebuddy.utils.log import enable_file_logging, get_logger

console = Console()
logger = get_logger()

_PROVIDER_CHOICE = click.Choice([provider.value for provider in ProviderType], case_sensitive=False)


def _parse_key_values(pairs: Tuple[str, ...]) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.ClickException(f"Expected KEY=VALUE, got '{pair}'.")
        parsed[key.strip()] = value
    return parsed


def _emit_result(result: ProviderResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False))
        if not result.success:
            sys.exit(1)
        return
    if not result.success:
        raise click.ClickException(result.error or "Request failed")
    click.echo(result.content)


def _build_assistant(
    manager: ConfigManager,
    provider: Optional[str],
    history: Optional[ConversationHistory] = None,
) -> Tuple[ScriptAssistant, Optional[float]]:
    config = manager.get_global_config()
    profile = manager.get_provider_config(ProviderType(provider) if provider else None)
    assistant = ScriptAssistant(
        profile,
        history=history,
        site_prompts=config.site_prompts,
        default_prompt=config.default_system_prompt,
    )
    return assistant, config.request_timeout


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="CODEBUDDY_CONFIG",
    default=None,
    help="Settings file (defaults to ~/.codebuddy.json).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write structured debug logs to this file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_file: Optional[Path]) -> None:
    """Codebuddy - AI-powered script fixer"""
    ctx.ensure_object(dict)
    if config_path is not None:
        ctx.obj["config_manager"] = ConfigManager(config_path)
    if log_file is not None:
        enable_file_logging(log_file)
    logger.debug(
        "[cli] Starting CLI invocation",
        extra={"subcommand": ctx.invoked_subcommand, "config_path": str(config_path or "")},
    )


@cli.command(name="analyze")
@click.argument("output", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--script",
    "script_file",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="The script that produced OUTPUT.",
)
@click.option("--url", type=str, default=None, help="Page URL used to pick a site prompt.")
@click.option("--provider", type=_PROVIDER_CHOICE, default=None, help="Override the active provider.")
@click.option(
    "--history",
    "history_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON file holding previous attempts.",
)
@click.option("--record", is_flag=True, help="Append this attempt to --history on success.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result object as JSON.")
@click.pass_context
def analyze_cmd(
    ctx: click.Context,
    output: TextIO,
    script_file: Optional[TextIO],
    url: Optional[str],
    provider: Optional[str],
    history_path: Optional[Path],
    record: bool,
    as_json: bool,
) -> None:
    """Suggest a fixed script for the failing OUTPUT (use - for stdin)."""
    if record and history_path is None:
        raise click.UsageError("--record requires --history.")

    history: Optional[ConversationHistory] = None
    if history_path is not None:
        try:
            history = ConversationHistory.load(history_path)
        except (OSError, ValueError) as exc:
            raise click.ClickException(f"Cannot read history {history_path}: {exc}") from exc

    assistant, timeout = _build_assistant(get_manager(ctx), provider, history)
    script = script_file.read() if script_file is not None else None
    result = asyncio.run(
        assistant.analyze(output.read(), script, url=url, request_timeout=timeout)
    )

    if result.success and record and history_path is not None:
        assistant.history.save(history_path)
        logger.debug(
            "[cli] Recorded attempt",
            extra={"history_path": str(history_path), "history_size": len(assistant.history)},
        )
    _emit_result(result, as_json)


@cli.command(name="improve")
@click.argument("script", type=click.File("r", encoding="utf-8"))
@click.option("--url", type=str, default=None, help="Page URL used to pick a site prompt.")
@click.option("--provider", type=_PROVIDER_CHOICE, default=None, help="Override the active provider.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result object as JSON.")
@click.pass_context
def improve_cmd(
    ctx: click.Context,
    script: TextIO,
    url: Optional[str],
    provider: Optional[str],
    as_json: bool,
) -> None:
    """Suggest a more robust version of SCRIPT."""
    assistant, timeout = _build_assistant(get_manager(ctx), provider)
    result = asyncio.run(assistant.improve(script.read(), url=url, request_timeout=timeout))
    _emit_result(result, as_json)


@cli.command(name="providers")
@click.pass_context
def providers_cmd(ctx: click.Context) -> None:
    """List supported providers."""
    active = get_manager(ctx).get_global_config().provider
    table = Table(title="Providers")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Default model")
    table.add_column("Settings", style="dim")
    for descriptor in list_providers():
        marker = " [green](active)[/green]" if descriptor.provider_type == active else ""
        table.add_row(
            f"{descriptor.provider_type.value}{marker}",
            descriptor.name,
            descriptor.default_model or "-",
            ", ".join(descriptor.config_fields),
        )
    console.print(table)


@cli.command(name="models")
@click.argument("provider", type=_PROVIDER_CHOICE)
def models_cmd(provider: str) -> None:
    """List the known models for PROVIDER."""
    descriptor = get_provider_descriptor(provider)
    if not descriptor.models:
        console.print(f"[dim]{descriptor.name} takes any model name in its settings.[/dim]")
        return
    table = Table(title=f"{descriptor.name} models")
    table.add_column("Model", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Default")
    for model in descriptor.models:
        table.add_row(model.id, model.name, "yes" if model.is_default else "")
    console.print(table)


@cli.command(name="configure")
@click.argument("provider", type=_PROVIDER_CHOICE)
@click.option("--api-key", type=str, default=None)
@click.option("--model", type=str, default=None)
@click.option("--endpoint", type=str, default=None)
@click.option(
    "--set",
    "extra",
    multiple=True,
    metavar="KEY=VALUE",
    help="Vendor-specific setting, e.g. deployment_name=gpt4.",
)
@click.option("--use", is_flag=True, help="Make PROVIDER the active provider.")
@click.pass_context
def configure_cmd(
    ctx: click.Context,
    provider: str,
    api_key: Optional[str],
    model: Optional[str],
    endpoint: Optional[str],
    extra: Tuple[str, ...],
    use: bool,
) -> None:
    """Store connection settings for PROVIDER."""
    manager = get_manager(ctx)
    provider_type = ProviderType(provider)
    stored = manager.get_global_config().provider_configs.get(provider_type.value)
    profile = stored.model_copy(deep=True) if stored else ProviderConfig(provider=provider_type)

    updates: Dict[str, Any] = {"api_key": api_key, "model": model, "endpoint": endpoint}
    for field_name, value in updates.items():
        if value is not None:
            setattr(profile, field_name, value or None)
    profile.extra_fields.update(_parse_key_values(extra))

    manager.set_provider_config(profile, use=use)
    descriptor = get_provider_descriptor(provider_type)
    console.print(f"[green]Saved settings for {escape(descriptor.name)}[/green]")
    if use:
        console.print(f"Active provider: {provider_type.value}")

    problems = validate_config(descriptor, manager.get_provider_config(provider_type))
    for problem in problems:
        console.print(f"[yellow]Warning: {escape(problem)}[/yellow]")


cli.add_command(sites_group)
cli.add_command(config_group)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except (RuntimeError, ValueError, OSError) as e:
        console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        logger.exception(
            "[cli] Fatal error in main CLI entrypoint",
            extra={"error_type": type(e).__name__},
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
