"""Project validation and normalization.

Turns a freshly loaded project into a fully resolved one: names are
qualified with the project name, platforms are defaulted from the host,
network IPAM settings are folded and checked, and every service network
attachment gets an address.

Philosophy:
- Pure transformation: the loaded project is never mutated
- Passes run in a fixed order, later passes rely on earlier invariants
- First problem found is fatal

Public API:
    ProjectValidator: Validates and resolves a Project
"""

import ipaddress
import logging
import os
from dataclasses import replace

from ukcompose.modules.compose.addressing import AddressAllocationTable, IPNetwork
from ukcompose.modules.compose.exceptions import (
    GatewayOutsideSubnetError,
    HostDetectionError,
    InvalidAddressError,
    InvalidGatewayError,
    InvalidSubnetError,
    MissingArtifactSourceError,
    MissingDriverError,
    MissingIPAMError,
    UnknownNetworkError,
    ValidationError,
)
from ukcompose.modules.compose.interfaces import HostDetector
from ukcompose.modules.compose.models import (
    IPAMConfig,
    IPAMPool,
    Network,
    Project,
    Service,
    ServiceNetworkAttachment,
)

logger = logging.getLogger(__name__)

# compose-spec implicit network, meaningless for unikernel networking
DEFAULT_NETWORK = "default"

# Loader marks generated network names with this leading separator
NETWORK_NAME_PLACEHOLDER = "_"


class ProjectValidator:
    """Validate a loaded project and return its resolved form.

    Example:
        >>> validator = ProjectValidator(SystemHostDetector())
        >>> resolved = validator.validate(load_project("compose.yaml"))
        >>> resolved.services["web"].name
        'myapp-web'
    """

    def __init__(self, host_detector: HostDetector):
        self.host_detector = host_detector
        self._host_platform: str | None = None

    def validate(self, project: Project) -> Project:
        """Validate ``project`` and return a new, resolved project.

        An already validated project is returned unchanged, so names are
        never prefixed twice.

        Raises:
            ValidationError: On the first structural problem found
            HostDetectionError: If a platform must be defaulted and the
                host cannot be detected
        """
        if project.validated:
            logger.debug(f"Project {project.name} already validated")
            return project

        self._host_platform = None

        self._check_artifact_sources(project)
        name = project.name or self._name_from_working_dir(project.working_dir)

        services = self._qualify_services(name, project.services)
        services = self._default_platforms(services)

        networks = self._qualify_networks(name, project.networks)
        table = AddressAllocationTable()
        networks, subnets = self._resolve_networks(networks, table)

        services = self._claim_pinned_addresses(services, networks, subnets, table)
        services = self._assign_addresses(services, subnets, table)

        logger.debug(
            f"Validated project {name}: {len(services)} service(s), {len(networks)} network(s)"
        )
        return Project(
            name=name,
            working_dir=project.working_dir,
            services=services,
            networks=networks,
            validated=True,
        )

    def _check_artifact_sources(self, project: Project) -> None:
        for service in project.services.values():
            if not service.image and service.build is None:
                raise MissingArtifactSourceError(
                    f"service {service.name} has neither an image nor a build context",
                    service=service.name,
                )

    def _name_from_working_dir(self, working_dir: str) -> str:
        name = os.path.basename(os.path.normpath(working_dir)) if working_dir else ""
        if not name or name in (".", os.sep):
            raise ValidationError(
                f"project has no name and none can be derived from '{working_dir}'"
            )
        return name

    def _qualify_services(self, project_name: str, services: dict[str, Service]) -> dict[str, Service]:
        """Prefix names with the project name and fill in missing images."""
        qualified = {}
        for key, service in services.items():
            full_name = f"{project_name}-{key}"
            qualified[key] = replace(service, name=full_name, image=service.image or full_name)
        return qualified

    def _default_platforms(self, services: dict[str, Service]) -> dict[str, Service]:
        return {
            key: service if service.platform else replace(service, platform=self._host())
            for key, service in services.items()
        }

    def _host(self) -> str:
        """Host "<platform>/<arch>", detected at most once per validation."""
        if self._host_platform is None:
            try:
                platform = self.host_detector.detect_platform()
                arch = self.host_detector.detect_architecture()
            except HostDetectionError:
                raise
            except Exception as e:
                raise HostDetectionError(f"Failed to detect host platform: {e}") from e
            self._host_platform = f"{platform}/{arch}"
            logger.debug(f"Defaulting service platform to {self._host_platform}")
        return self._host_platform

    def _qualify_networks(self, project_name: str, networks: dict[str, Network]) -> dict[str, Network]:
        qualified = {}
        for key, network in networks.items():
            if key == DEFAULT_NETWORK:
                logger.debug("Discarding default network")
                continue
            name = network.name or f"{NETWORK_NAME_PLACEHOLDER}{key}"
            if name.startswith(NETWORK_NAME_PLACEHOLDER):
                name = project_name + name
            qualified[key] = replace(network, name=name)
        return qualified

    def _resolve_networks(
        self, networks: dict[str, Network], table: AddressAllocationTable
    ) -> tuple[dict[str, Network], dict[str, IPNetwork]]:
        """Check driver and IPAM of every network and seed the allocation table."""
        resolved = {}
        subnets: dict[str, IPNetwork] = {}

        for key, network in networks.items():
            driver = network.driver or network.ipam.driver
            if not driver:
                raise MissingDriverError(
                    f"network {network.name} has no driver specified", network=network.name
                )
            if not network.ipam.config:
                raise MissingIPAMError(
                    f"network {network.name} has no IPAM config specified", network=network.name
                )

            subnet_str, gateway_str = self._fold_ipam(network.ipam.config)
            subnet = self._parse_subnet(network.name, subnet_str)
            gateway = self._resolve_gateway(network.name, subnet, gateway_str)

            table.seed(key, gateway, str(subnet.network_address))
            subnets[key] = subnet
            resolved[key] = replace(
                network,
                driver=driver,
                ipam=IPAMConfig(
                    driver=network.ipam.driver,
                    config=(IPAMPool(subnet=subnet_str, gateway=gateway),),
                ),
            )

        return resolved, subnets

    @staticmethod
    def _fold_ipam(pools: tuple[IPAMPool, ...]) -> tuple[str, str]:
        """Merge IPAM blocks left to right; later non-empty values win."""
        subnet, gateway = "", ""
        for pool in pools:
            if pool.subnet:
                subnet = pool.subnet
            if pool.gateway:
                gateway = pool.gateway
        return subnet, gateway

    @staticmethod
    def _parse_subnet(network_name: str, subnet: str) -> IPNetwork:
        if not subnet:
            raise InvalidSubnetError(
                f"network {network_name} has no subnet specified", network=network_name
            )
        if subnet.count("/") != 1:
            raise InvalidSubnetError(
                f"network {network_name} has an invalid subnet specified: {subnet}",
                network=network_name,
            )
        try:
            return ipaddress.ip_network(subnet, strict=False)
        except ValueError as e:
            raise InvalidSubnetError(
                f"failed to parse {network_name} network subnet {subnet}: {e}",
                network=network_name,
            ) from e

    @staticmethod
    def _resolve_gateway(network_name: str, subnet: IPNetwork, gateway: str) -> str:
        if not gateway:
            return str(subnet.network_address)
        try:
            gateway_ip = ipaddress.ip_address(gateway)
        except ValueError as e:
            raise InvalidGatewayError(
                f"failed to parse {network_name} network gateway {gateway}",
                network=network_name,
            ) from e
        if gateway_ip not in subnet:
            raise GatewayOutsideSubnetError(
                f"network {network_name} gateway {gateway} is not within the subnet {subnet}",
                network=network_name,
            )
        return str(gateway_ip)

    def _claim_pinned_addresses(
        self,
        services: dict[str, Service],
        networks: dict[str, Network],
        subnets: dict[str, IPNetwork],
        table: AddressAllocationTable,
    ) -> dict[str, Service]:
        """Drop default attachments, check references and claim user pins."""
        checked = {}
        for key, service in services.items():
            attachments: dict[str, ServiceNetworkAttachment | None] = {}
            for network_key, attachment in service.networks.items():
                if network_key == DEFAULT_NETWORK:
                    continue
                if network_key not in networks:
                    raise UnknownNetworkError(
                        f"service {service.name} references non-existent network {network_key}",
                        service=service.name,
                        network=network_key,
                    )
                attachment = attachment or ServiceNetworkAttachment()
                if attachment.ipv4_address:
                    address = self._parse_pinned(
                        service.name, network_key, subnets[network_key], attachment.ipv4_address
                    )
                    table.claim(network_key, address, service.name)
                    attachment = ServiceNetworkAttachment(ipv4_address=address)
                attachments[network_key] = attachment
            checked[key] = replace(service, networks=attachments)
        return checked

    @staticmethod
    def _parse_pinned(service_name: str, network_key: str, subnet: IPNetwork, address: str) -> str:
        try:
            ip = ipaddress.ip_address(address)
        except ValueError as e:
            raise InvalidAddressError(
                f"service {service_name} has an invalid ipv4_address specified: {address}",
                service=service_name,
                network=network_key,
            ) from e
        if ip not in subnet:
            raise InvalidAddressError(
                f"service {service_name} ipv4_address {address} is not within "
                f"network {network_key} subnet {subnet}",
                service=service_name,
                network=network_key,
            )
        return str(ip)

    @staticmethod
    def _assign_addresses(
        services: dict[str, Service],
        subnets: dict[str, IPNetwork],
        table: AddressAllocationTable,
    ) -> dict[str, Service]:
        assigned = {}
        for key, service in services.items():
            attachments = {}
            for network_key, attachment in service.networks.items():
                if attachment is None or not attachment.ipv4_address:
                    address = table.allocate(network_key, subnets[network_key], service.name)
                    attachment = ServiceNetworkAttachment(ipv4_address=address)
                attachments[network_key] = attachment
            assigned[key] = replace(service, networks=attachments)
        return assigned


__all__ = ["DEFAULT_NETWORK", "ProjectValidator"]
