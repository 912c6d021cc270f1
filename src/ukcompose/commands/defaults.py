"""Persist default options to the ukcompose config file."""

import logging
from dataclasses import replace

import click
from rich.console import Console

from ukcompose.config_manager import ConfigError, ConfigManager

logger = logging.getLogger(__name__)
console = Console()


@click.command(name="defaults")
@click.option("--file", "-f", "compose_file", help="Default compose file")
@click.option("--kraft-binary", help="Path or name of the kraft executable")
@click.option("--command-timeout", type=click.IntRange(min=1), help="Timeout in seconds for kraft commands")
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    help="Default bound on services launching at the same time",
)
@click.pass_context
def defaults(
    ctx: click.Context,
    compose_file: str | None,
    kraft_binary: str | None,
    command_timeout: int | None,
    max_workers: int | None,
):
    """Show or update the defaults stored in the config file.

    Without options the current defaults are printed.

    \b
    Example:
        ukcompose defaults --kraft-binary /opt/kraft/bin/kraft --max-workers 4
    """
    config_path = (ctx.obj or {}).get("config_path")
    updates = {
        key: value
        for key, value in (
            ("compose_file", compose_file),
            ("kraft_binary", kraft_binary),
            ("command_timeout", command_timeout),
            ("max_workers", max_workers),
        )
        if value is not None
    }

    try:
        config = ConfigManager.load_config(config_path)
        if updates:
            config = replace(config, **updates)
            saved_to = ConfigManager.save_config(config, config_path)
            console.print(f"[green]✓[/green] Saved defaults to {saved_to}")
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e!s}")
        raise click.Abort from e

    for key, value in config.to_dict().items():
        console.print(f"  [cyan]{key}[/cyan] = {value}")


__all__ = ["defaults"]
