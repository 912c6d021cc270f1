"""Compose lifecycle CLI commands.

This module provides the `ukcompose up/down/stop/ps/config` commands for
running a compose project as unikernel instances.

Usage:
    ukcompose up --file compose.yaml
    ukcompose down
    ukcompose ps -f compose.yaml

Philosophy:
- Familiar docker-compose CLI interface
- Clear progress reporting
- Fail-fast with actionable errors
"""

import contextlib
import logging
import signal
import threading
from collections.abc import Iterator
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from ukcompose.config_manager import ConfigError, ConfigManager, UKComposeConfig
from ukcompose.modules.compose import (
    ComposeError,
    ComposeOrchestrator,
    KraftCLIBackend,
    Project,
    ProjectValidator,
    SystemHostDetector,
    default_network_registry,
    dump_project,
    load_project,
)

logger = logging.getLogger(__name__)
console = Console()

file_option = click.option(
    "--file",
    "-f",
    "compose_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Compose file (default: compose.yaml and friends in the current directory)",
)


def _load_config(ctx: click.Context) -> UKComposeConfig:
    config_path = (ctx.obj or {}).get("config_path")
    return ConfigManager.load_config(config_path)


def _load_project(compose_file: Path | None, config: UKComposeConfig) -> Project:
    """Load and validate the project (explicit file > configured file > discovery)."""
    path = compose_file or (Path(config.compose_file).expanduser() if config.compose_file else None)
    project = load_project(path)
    return ProjectValidator(SystemHostDetector()).validate(project)


def _orchestrator(config: UKComposeConfig, max_workers: int | None = None) -> ComposeOrchestrator:
    backend = KraftCLIBackend(
        kraft_binary=config.kraft_binary, command_timeout=config.command_timeout
    )
    return ComposeOrchestrator(
        control_plane=backend,
        catalog=backend,
        puller=backend,
        builder=backend,
        packager=backend,
        runner=backend,
        remover=backend,
        stopper=backend,
        network_registry=default_network_registry(backend),
        max_workers=max_workers or config.max_workers,
    )


@contextlib.contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancellation signal for the running operation."""
    cancel_event = threading.Event()

    def _handler(signum, frame):
        if not cancel_event.is_set():
            console.print("[yellow]Cancelling...[/yellow]")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


def _fail(e: Exception) -> click.Abort:
    console.print(f"[red]Error:[/red] {e!s}")
    logger.debug("Command failed", exc_info=True)
    return click.Abort()


@click.command(name="up")
@file_option
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    help="Maximum number of services launching at the same time (default: all)",
)
@click.pass_context
def compose_up(ctx: click.Context, compose_file: Path | None, max_workers: int | None):
    """Build or pull every service artifact, then run every service.

    \b
    This command:
    1. Validates the project and assigns network addresses
    2. Refuses to start if any service is already running
    3. Resolves each artifact: local, pulled, or built and packaged
    4. Runs all services concurrently
    """
    try:
        config = _load_config(ctx)
        project = _load_project(compose_file, config)
        orchestrator = _orchestrator(config, max_workers)

        console.print(f"[bold]Starting project:[/bold] {project.name}")
        console.print()

        table = Table(title="Services")
        table.add_column("Service", style="cyan")
        table.add_column("Image", style="white")
        table.add_column("Platform", style="yellow")
        table.add_column("Networks", style="magenta")
        for service in project.services.values():
            table.add_row(
                service.name,
                service.image,
                service.platform,
                ", ".join(
                    f"{network}={service.address_on(network)}" for network in service.networks
                ),
            )
        console.print(table)
        console.print()

        with _cancel_on_interrupt() as cancel_event:
            result = orchestrator.up(project, cancel_event=cancel_event)

    except (ComposeError, ConfigError) as e:
        raise _fail(e) from e

    if result.success:
        console.print(f"[green]✓ All {len(result.outcomes)} service(s) ran[/green]")
        return

    console.print(
        f"[red]✗ {len(result.failed_services)} of {len(result.outcomes)} service(s) failed[/red]"
    )
    for key in result.failed_services:
        outcome = result.outcomes[key]
        console.print(f"  [red]✗[/red] {outcome.service_name} ({outcome.status}): {outcome.error_message}")
    raise click.Abort


@click.command(name="down")
@file_option
@click.pass_context
def compose_down(ctx: click.Context, compose_file: Path | None):
    """Remove running service instances and the project's networks."""
    try:
        config = _load_config(ctx)
        project = _load_project(compose_file, config)
        with _cancel_on_interrupt() as cancel_event:
            result = _orchestrator(config).down(project, cancel_event=cancel_event)
    except (ComposeError, ConfigError) as e:
        raise _fail(e) from e

    if result.is_noop:
        console.print("Nothing to remove")
        return
    for name in result.services:
        console.print(f"[green]✓[/green] Removed service {name}")
    for name in result.networks:
        console.print(f"[green]✓[/green] Removed network {name}")


@click.command(name="stop")
@file_option
@click.pass_context
def compose_stop(ctx: click.Context, compose_file: Path | None):
    """Stop running service instances, one at a time."""
    try:
        config = _load_config(ctx)
        project = _load_project(compose_file, config)
        with _cancel_on_interrupt() as cancel_event:
            result = _orchestrator(config).stop(project, cancel_event=cancel_event)
    except (ComposeError, ConfigError) as e:
        raise _fail(e) from e

    if result.is_noop:
        console.print("No running services")
    else:
        console.print(f"[green]✓ Stopped {len(result.services)} service(s)[/green]")


@click.command(name="ps")
@file_option
@click.pass_context
def compose_ps(ctx: click.Context, compose_file: Path | None):
    """Show the declared services and the state of their instances."""
    try:
        config = _load_config(ctx)
        project = _load_project(compose_file, config)
        states = _orchestrator(config).status(project)
    except (ComposeError, ConfigError) as e:
        raise _fail(e) from e

    table = Table(title=f"Project {project.name}")
    table.add_column("Service", style="cyan")
    table.add_column("Image", style="white")
    table.add_column("Platform", style="yellow")
    table.add_column("State")
    for key, service in project.services.items():
        state = states.get(key)
        if state is None:
            state_text = "[dim]not created[/dim]"
        elif state.is_live:
            state_text = f"[green]{state.value}[/green]"
        else:
            state_text = f"[yellow]{state.value}[/yellow]"
        table.add_row(service.name, service.image, service.platform, state_text)
    console.print(table)


@click.command(name="config")
@file_option
@click.pass_context
def compose_config(ctx: click.Context, compose_file: Path | None):
    """Print the validated project, with names, platforms and addresses filled in."""
    try:
        config = _load_config(ctx)
        project = _load_project(compose_file, config)
    except (ComposeError, ConfigError) as e:
        raise _fail(e) from e

    click.echo(yaml.safe_dump(dump_project(project), sort_keys=False), nl=False)


__all__ = ["compose_config", "compose_down", "compose_ps", "compose_stop", "compose_up"]
