"""Commands for ukcompose CLI."""

from ukcompose.commands.compose import (
    compose_config,
    compose_down,
    compose_ps,
    compose_stop,
    compose_up,
)
from ukcompose.commands.defaults import defaults

__all__ = [
    "compose_config",
    "compose_down",
    "compose_ps",
    "compose_stop",
    "compose_up",
    "defaults",
]
