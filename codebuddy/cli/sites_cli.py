"""`codebuddy sites` command group for site-specific prompts."""

from __future__ import annotations

from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from codebuddy.cli.config_cli import get_manager
from codebuddy.core.site_prompts import PatternValidationError, find_matching_prompt

console = Console()

_PROMPT_PREVIEW_CHARS = 60


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _PROMPT_PREVIEW_CHARS:
        return flat
    return flat[: _PROMPT_PREVIEW_CHARS - 3] + "..."


@click.group(name="sites", help="Manage site-specific prompts")
def sites_group() -> None:
    pass


@sites_group.command(name="list")
@click.pass_context
def sites_list_cmd(ctx: click.Context) -> None:
    """List configured site prompts."""
    site_prompts = get_manager(ctx).get_global_config().site_prompts
    if not site_prompts:
        console.print("[dim]No site prompts configured.[/dim]")
        return

    table = Table(title="Site prompts")
    table.add_column("Pattern", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Enabled")
    table.add_column("Prompt", style="dim")
    for pattern, entry in site_prompts.items():
        table.add_row(
            escape(pattern),
            escape(entry.name or "-"),
            "yes" if entry.enabled else "no",
            escape(_preview(entry.prompt)),
        )
    console.print(table)


@sites_group.command(name="add")
@click.argument("pattern")
@click.argument("prompt")
@click.option("--name", default="", help="Display name for the entry.")
@click.option(
    "--replace",
    "previous_pattern",
    default=None,
    help="Existing pattern this entry replaces (rename).",
)
@click.pass_context
def sites_add_cmd(
    ctx: click.Context,
    pattern: str,
    prompt: str,
    name: str,
    previous_pattern: Optional[str],
) -> None:
    """Add or edit the PROMPT used for pages matching PATTERN.

    PATTERN is a hostname (github.com) or a leading wildcard (*.github.com).
    """
    try:
        entry = get_manager(ctx).save_site_prompt(
            pattern, prompt, name=name, previous_pattern=previous_pattern
        )
    except PatternValidationError as exc:
        raise click.ClickException(f"Invalid pattern '{exc.pattern}': {exc}") from exc
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Saved site prompt for {escape(entry.pattern)}[/green]")


@sites_group.command(name="remove")
@click.argument("pattern")
@click.pass_context
def sites_remove_cmd(ctx: click.Context, pattern: str) -> None:
    """Delete the site prompt for PATTERN."""
    try:
        get_manager(ctx).delete_site_prompt(pattern)
    except KeyError as exc:
        raise click.ClickException(f"Site prompt '{pattern}' does not exist.") from exc
    console.print(f"[green]Removed site prompt for {escape(pattern.strip().lower())}[/green]")


@sites_group.command(name="toggle")
@click.argument("pattern")
@click.pass_context
def sites_toggle_cmd(ctx: click.Context, pattern: str) -> None:
    """Enable or disable the site prompt for PATTERN."""
    try:
        entry = get_manager(ctx).toggle_site_prompt(pattern)
    except KeyError as exc:
        raise click.ClickException(f"Site prompt '{pattern}' does not exist.") from exc
    state = "enabled" if entry.enabled else "disabled"
    console.print(f"Site prompt for {escape(entry.pattern)} is now {state}")


@sites_group.command(name="resolve")
@click.argument("url")
@click.pass_context
def sites_resolve_cmd(ctx: click.Context, url: str) -> None:
    """Show which site prompt applies to URL."""
    config = get_manager(ctx).get_global_config()
    match = find_matching_prompt(url, config.site_prompts)
    if match is None:
        if config.default_system_prompt:
            console.print("[dim]No site prompt matches; the default prompt applies.[/dim]")
        else:
            console.print("[dim]No site prompt matches.[/dim]")
        return
    label = f" ({escape(match.name)})" if match.name else ""
    console.print(f"Matched [cyan]{escape(match.pattern)}[/cyan]{label}")
    click.echo(match.prompt)


__all__ = ["sites_group"]
