"""CLI entry point for ukcompose.

Commands:
    ukcompose up        # Build or pull artifacts, run every service
    ukcompose down      # Remove service instances and project networks
    ukcompose stop      # Stop running service instances
    ukcompose ps        # Show declared services and their state
    ukcompose config    # Print the validated project
    ukcompose defaults  # Persist default options to the config file
"""

import logging

import click

from ukcompose import __version__
from ukcompose.commands.compose import compose_config, compose_down, compose_ps, compose_stop, compose_up
from ukcompose.commands.defaults import defaults


@click.group(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Config file path (default: ~/.ukcompose/config.toml)",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """ukcompose - compose orchestration for unikernel instances.

    Reads a standard compose file and runs every service as a unikernel
    instance through the kraft CLI.

    \b
    LIFECYCLE COMMANDS:
        up            Build or pull artifacts and run every service
        down          Remove service instances and project networks
        stop          Stop running service instances

    \b
    INSPECTION:
        ps            Show declared services and their state
        config        Print the validated project

    \b
    CONFIGURATION:
        Config file: ~/.ukcompose/config.toml
        Set defaults: ukcompose defaults --kraft-binary /opt/kraft
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(compose_up)
main.add_command(compose_down)
main.add_command(compose_stop)
main.add_command(compose_ps)
main.add_command(compose_config)
main.add_command(defaults)


if __name__ == "__main__":
    main()
