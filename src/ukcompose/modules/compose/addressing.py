"""Address planning for compose networks.

Allocates the next free address of a subnet and tracks which addresses are
already claimed on each network during one validation pass.

Philosophy:
- Pure functions over ipaddress objects
- Caller owns the claimed set (no hidden state)
- Exhaustion is an error, never a silent wrap-around

Public API:
    allocate_address: Next unclaimed address of a subnet
    AddressAllocationTable: Per-network claimed address sets
"""

import ipaddress
import logging

from ukcompose.modules.compose.exceptions import AddressesExhaustedError, AddressInUseError

logger = logging.getLogger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def allocate_address(subnet: IPNetwork, claimed: set[str], network_name: str = "") -> str:
    """Return the lowest address of ``subnet`` not present in ``claimed``.

    Starts at the subnet base address and increments by one until an
    unclaimed address is found. The returned address is NOT added to
    ``claimed``; the caller must do that before asking for the next one.

    Args:
        subnet: Network to allocate from
        claimed: Addresses (string form) already in use
        network_name: Name used in error messages

    Returns:
        Address string

    Raises:
        AddressesExhaustedError: If every address of the subnet is claimed
    """
    current = int(subnet.network_address)
    last = int(subnet.broadcast_address)
    address_class = type(subnet.network_address)

    while current <= last:
        candidate = str(address_class(current))
        if candidate not in claimed:
            return candidate
        current += 1

    raise AddressesExhaustedError(
        f"not enough free IP addresses in network {network_name or subnet}",
        network=network_name or None,
    )


class AddressAllocationTable:
    """Claimed addresses per network for a single validation pass.

    Not thread-safe; a table lives only as long as one validate() call.
    """

    def __init__(self):
        self._claimed: dict[str, set[str]] = {}

    def seed(self, network: str, gateway: str, base: str) -> None:
        """Reserve the gateway and base address of a network."""
        self._claimed[network] = {gateway, base}

    def is_claimed(self, network: str, address: str) -> bool:
        return address in self._claimed.get(network, set())

    def claim(self, network: str, address: str, service: str | None = None) -> None:
        """Claim an address on a network.

        Raises:
            AddressInUseError: If the address is already claimed on that network
        """
        claimed = self._claimed.setdefault(network, set())
        if address in claimed:
            raise AddressInUseError(
                f"service {service} has an ipv4_address {address} that is already "
                f"in use on network {network}",
                service=service,
                network=network,
            )
        claimed.add(address)

    def allocate(self, network: str, subnet: IPNetwork, service: str | None = None) -> str:
        """Allocate and claim the next free address on a network."""
        claimed = self._claimed.setdefault(network, set())
        try:
            address = allocate_address(subnet, claimed, network)
        except AddressesExhaustedError as e:
            e.service = service
            raise
        claimed.add(address)
        logger.debug(f"Assigned {address} to service {service} on network {network}")
        return address

    def claimed(self, network: str) -> frozenset[str]:
        return frozenset(self._claimed.get(network, set()))


__all__ = ["AddressAllocationTable", "IPNetwork", "allocate_address"]
