"""`codebuddy config` command group."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from codebuddy.core.config import ConfigManager, config_manager

console = Console()


def get_manager(ctx: click.Context) -> ConfigManager:
    """Return the config manager bound to this invocation."""
    obj = ctx.find_root().obj
    if isinstance(obj, dict) and isinstance(obj.get("config_manager"), ConfigManager):
        return obj["config_manager"]
    return config_manager


@click.group(name="config", help="Show, export or import settings")
def config_group() -> None:
    pass


@config_group.command(name="show")
@click.pass_context
def config_show_cmd(ctx: click.Context) -> None:
    """Show current configuration."""
    manager = get_manager(ctx)
    config = manager.get_global_config()

    console.print("\n[bold]Global Configuration[/bold]\n")
    console.print(f"Settings file: {escape(str(manager.global_config_path))}")
    console.print(f"Active provider: {config.provider.value}")
    timeout = f"{config.request_timeout:g}s" if config.request_timeout else "provider default"
    console.print(f"Request timeout: {timeout}")
    console.print(f"Site prompts: {len(config.site_prompts)}\n")

    if config.provider_configs:
        console.print("[bold]Provider Settings:[/bold]")
        for name, profile in config.provider_configs.items():
            console.print(f"  {name}:")
            console.print(f"    Model: {escape(profile.model or 'default')}")
            if profile.endpoint:
                console.print(f"    Endpoint: {escape(profile.endpoint)}")
            console.print(f"    API Key: {'***' if profile.api_key else 'Not set'}")
        console.print()


@config_group.command(name="export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--include-api-keys",
    is_flag=True,
    help="Also write API keys. Keep the resulting file private.",
)
@click.pass_context
def config_export_cmd(ctx: click.Context, path: Path, include_api_keys: bool) -> None:
    """Write settings to PATH."""
    written = get_manager(ctx).export_config(path, include_api_keys=include_api_keys)
    console.print(f"[green]Exported settings to {escape(str(written))}[/green]")
    if not include_api_keys:
        console.print("[dim]API keys were not included.[/dim]")


@config_group.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def config_import_cmd(ctx: click.Context, path: Path) -> None:
    """Replace settings with the contents of PATH."""
    try:
        config = get_manager(ctx).import_config(path)
    except (ValueError, OSError) as exc:
        raise click.ClickException(f"Import failed: {exc}") from exc
    console.print(
        f"[green]Imported settings[/green] (provider: {config.provider.value}, "
        f"site prompts: {len(config.site_prompts)})"
    )


__all__ = ["config_group", "get_manager"]
