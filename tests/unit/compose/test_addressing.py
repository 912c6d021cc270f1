"""Tests for address allocation."""

import ipaddress

import pytest

from ukcompose.modules.compose.addressing import AddressAllocationTable, allocate_address
from ukcompose.modules.compose.exceptions import AddressesExhaustedError, AddressInUseError


@pytest.mark.unit
class TestAllocateAddress:
    """Lowest-free-address allocation."""

    def test_returns_lowest_unclaimed_address(self):
        subnet = ipaddress.ip_network("10.0.0.0/24")

        assert allocate_address(subnet, {"10.0.0.0", "10.0.0.1"}) == "10.0.0.2"

    def test_starts_at_base_address(self):
        subnet = ipaddress.ip_network("192.168.1.0/30")

        assert allocate_address(subnet, set()) == "192.168.1.0"

    def test_skips_claimed_addresses_in_the_middle(self):
        subnet = ipaddress.ip_network("10.0.0.0/29")
        claimed = {"10.0.0.0", "10.0.0.1", "10.0.0.3"}

        assert allocate_address(subnet, claimed) == "10.0.0.2"

    def test_does_not_add_to_claimed(self):
        subnet = ipaddress.ip_network("10.0.0.0/24")
        claimed = {"10.0.0.0"}

        allocate_address(subnet, claimed)

        assert claimed == {"10.0.0.0"}

    def test_broadcast_address_is_allocatable(self):
        subnet = ipaddress.ip_network("10.0.0.0/30")
        claimed = {"10.0.0.0", "10.0.0.1", "10.0.0.2"}

        assert allocate_address(subnet, claimed) == "10.0.0.3"

    def test_exhausted_subnet_raises(self):
        subnet = ipaddress.ip_network("10.0.0.0/31")

        with pytest.raises(AddressesExhaustedError, match="not enough free IP addresses"):
            allocate_address(subnet, {"10.0.0.0", "10.0.0.1"}, "app_net")

    def test_ipv6_subnet(self):
        subnet = ipaddress.ip_network("fd00::/126")

        assert allocate_address(subnet, {"fd00::"}) == "fd00::1"


@pytest.mark.unit
class TestAddressAllocationTable:
    """Per-network claimed address tracking."""

    def test_seed_reserves_gateway_and_base(self):
        table = AddressAllocationTable()
        table.seed("net", "10.0.0.1", "10.0.0.0")

        assert table.claimed("net") == frozenset({"10.0.0.0", "10.0.0.1"})

    def test_seed_with_gateway_equal_to_base(self):
        table = AddressAllocationTable()
        table.seed("net", "10.0.0.0", "10.0.0.0")

        assert table.claimed("net") == frozenset({"10.0.0.0"})

    def test_claim_rejects_duplicate_on_same_network(self):
        table = AddressAllocationTable()
        table.seed("net", "10.0.0.1", "10.0.0.0")
        table.claim("net", "10.0.0.5", "app-web")

        with pytest.raises(AddressInUseError) as exc_info:
            table.claim("net", "10.0.0.5", "app-db")

        assert exc_info.value.service == "app-db"
        assert exc_info.value.network == "net"

    def test_claim_rejects_gateway(self):
        table = AddressAllocationTable()
        table.seed("net", "10.0.0.1", "10.0.0.0")

        with pytest.raises(AddressInUseError):
            table.claim("net", "10.0.0.1", "app-web")

    def test_same_address_on_different_networks(self):
        table = AddressAllocationTable()
        table.claim("front", "10.0.0.5")
        table.claim("back", "10.0.0.5")

        assert table.is_claimed("front", "10.0.0.5")
        assert table.is_claimed("back", "10.0.0.5")

    def test_allocate_claims_returned_address(self):
        table = AddressAllocationTable()
        table.seed("net", "10.0.0.1", "10.0.0.0")
        subnet = ipaddress.ip_network("10.0.0.0/24")

        first = table.allocate("net", subnet, "app-web")
        second = table.allocate("net", subnet, "app-db")

        assert (first, second) == ("10.0.0.2", "10.0.0.3")
        assert table.is_claimed("net", first)

    def test_allocate_exhaustion_names_service(self):
        table = AddressAllocationTable()
        table.seed("net", "10.0.0.1", "10.0.0.0")
        subnet = ipaddress.ip_network("10.0.0.0/31")

        with pytest.raises(AddressesExhaustedError) as exc_info:
            table.allocate("net", subnet, "app-web")

        assert exc_info.value.service == "app-web"
