"""Network management for compose teardown.

This module handles the networks a compose project declares:
- Driver name -> network controller lookup (registered variants)
- Existing network discovery per driver, cached for one operation
- Removal of declared networks that currently exist

Philosophy:
- One controller per driver, created on demand
- List each driver's networks at most once per operation
- Never remove a network we did not declare

Public API:
    NetworkDriverRegistry: Driver name -> controller factory registry
    ComposeNetworkManager: Per-operation network lookup and removal
"""

import logging
import threading
from collections.abc import Callable

from ukcompose.modules.compose.exceptions import UnsupportedNetworkDriverError
from ukcompose.modules.compose.interfaces import NetworkController
from ukcompose.modules.compose.models import Network

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[], NetworkController]


class NetworkDriverRegistry:
    """Registry of network controllers keyed by driver name."""

    def __init__(self, factories: dict[str, ControllerFactory] | None = None):
        self._factories: dict[str, ControllerFactory] = dict(factories or {})

    def register(self, driver: str, factory: ControllerFactory) -> None:
        self._factories[driver] = factory

    @property
    def drivers(self) -> list[str]:
        return sorted(self._factories)

    def controller_for(self, driver: str) -> NetworkController:
        """Create the controller for a driver.

        Raises:
            UnsupportedNetworkDriverError: If no controller is registered
        """
        factory = self._factories.get(driver)
        if factory is None:
            raise UnsupportedNetworkDriverError(
                f"unsupported network driver strategy: {driver}"
            )
        return factory()


class ComposeNetworkManager:
    """Look up and remove project networks during one operation.

    Controllers and their network listings are cached per driver, so two
    declared networks sharing a driver cost one listing query.
    """

    def __init__(
        self,
        registry: NetworkDriverRegistry,
        cancel_event: threading.Event | None = None,
    ):
        """Initialize network manager.

        Args:
            registry: Driver registry to resolve controllers from
            cancel_event: Optional cancellation signal forwarded to controllers
        """
        self.registry = registry
        self.cancel_event = cancel_event
        self._controllers: dict[str, NetworkController] = {}
        self._existing: dict[str, set[str]] = {}

    def _controller(self, network: Network) -> NetworkController:
        if network.driver not in self._controllers:
            try:
                self._controllers[network.driver] = self.registry.controller_for(network.driver)
            except UnsupportedNetworkDriverError as e:
                e.network = network.name
                raise
        return self._controllers[network.driver]

    def existing_networks(self, network: Network) -> set[str]:
        """Names of existing networks under the network's driver."""
        if network.driver not in self._existing:
            controller = self._controller(network)
            names = controller.list_networks(cancel_event=self.cancel_event)
            self._existing[network.driver] = set(names)
            logger.debug(f"Found {len(names)} existing {network.driver} network(s)")
        return self._existing[network.driver]

    def exists(self, network: Network) -> bool:
        return network.name in self.existing_networks(network)

    def remove(self, network: Network) -> None:
        logger.info(f"Removing network {network.name}...")
        self._controller(network).remove_network(network.name, cancel_event=self.cancel_event)
        self._existing.get(network.driver, set()).discard(network.name)


__all__ = [
    "ComposeNetworkManager",
    "ControllerFactory",
    "NetworkDriverRegistry",
]
