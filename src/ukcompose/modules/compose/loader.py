"""Compose file discovery and loading.

Reads the subset of the Compose specification this tool consumes:
services (image, platform, build, networks) and networks (name, driver,
ipam). Anything else in the file is ignored.

Public API:
    DEFAULT_FILE_NAMES: File names searched when no file is given
    find_compose_file: Locate a compose file in a directory
    load_project: Parse a compose file into an unvalidated Project
    dump_project: Compose-file shaped mapping of a Project
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ukcompose.modules.compose.exceptions import ComposeFileError, NoComposeFileFoundError
from ukcompose.modules.compose.models import (
    BuildConfig,
    IPAMConfig,
    IPAMPool,
    Network,
    Project,
    Service,
    ServiceNetworkAttachment,
)

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAMES = [
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
    "Composefile",
]


def find_compose_file(directory: Path | None = None) -> Path:
    """Return the first default compose file present in ``directory``.

    Raises:
        NoComposeFileFoundError: If none of DEFAULT_FILE_NAMES exist
    """
    directory = directory or Path.cwd()
    for file_name in DEFAULT_FILE_NAMES:
        candidate = directory / file_name
        if candidate.is_file():
            logger.debug(f"Found compose file: {candidate}")
            return candidate
    raise NoComposeFileFoundError(f"no compose file found in {directory}")


def load_project(compose_file: Path | str | None = None, working_dir: Path | None = None) -> Project:
    """Load a compose file into an unvalidated project.

    Args:
        compose_file: Explicit compose file (searched in working_dir when None)
        working_dir: Project directory (default: the compose file's directory)

    Raises:
        NoComposeFileFoundError: If no file is given and none is found
        ComposeFileError: If the file is missing, not valid YAML or malformed
    """
    if compose_file is None:
        path = find_compose_file(working_dir)
    else:
        path = Path(compose_file)
        if not path.is_file():
            raise ComposeFileError(f"Compose file not found: {path}")

    working_dir = (working_dir or path.parent).resolve()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ComposeFileError(f"Invalid YAML in {path}: {e}") from e

    if not data:
        raise ComposeFileError(f"Compose file is empty: {path}")
    if not isinstance(data, dict):
        raise ComposeFileError(f"Compose file must be a mapping: {path}")

    services_data = _mapping(data.get("services"), "services")
    if not services_data:
        raise ComposeFileError("Compose file missing 'services' section")

    services = {
        str(key): _parse_service(str(key), value or {}, working_dir)
        for key, value in services_data.items()
    }
    networks = {
        str(key): _parse_network(str(key), value or {})
        for key, value in _mapping(data.get("networks"), "networks").items()
    }

    return Project(
        name=str(data.get("name") or ""),
        working_dir=str(working_dir),
        services=services,
        networks=networks,
    )


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ComposeFileError(f"'{where}' must be a mapping")
    return value


def _parse_service(key: str, data: dict, working_dir: Path) -> Service:
    if not isinstance(data, dict):
        raise ComposeFileError(f"Service '{key}' must be a mapping")

    return Service(
        name=key,
        image=str(data.get("image") or ""),
        platform=str(data.get("platform") or ""),
        build=_parse_build(key, data.get("build"), working_dir),
        networks=_parse_service_networks(key, data.get("networks")),
    )


def _parse_build(key: str, build: Any, working_dir: Path) -> BuildConfig | None:
    """Accept both ``build: ./dir`` and ``build: {context: ./dir}``."""
    if build is None:
        return None
    if isinstance(build, dict):
        context = build.get("context") or "."
    elif isinstance(build, str):
        context = build
    else:
        raise ComposeFileError(f"Service '{key}' has an invalid build section")

    context = os.path.expanduser(str(context))
    if not os.path.isabs(context):
        context = str((working_dir / context).resolve())
    return BuildConfig(context=context)


def _parse_service_networks(key: str, networks: Any) -> dict[str, ServiceNetworkAttachment | None]:
    """Accept both the list form and the mapping form of service networks."""
    if networks is None:
        return {}
    if isinstance(networks, list):
        return {str(name): None for name in networks}
    if not isinstance(networks, dict):
        raise ComposeFileError(f"Service '{key}' has an invalid networks section")

    attachments: dict[str, ServiceNetworkAttachment | None] = {}
    for name, config in networks.items():
        if config is None:
            attachments[str(name)] = None
        elif isinstance(config, dict):
            address = config.get("ipv4_address")
            attachments[str(name)] = ServiceNetworkAttachment(
                ipv4_address=str(address) if address else None
            )
        else:
            raise ComposeFileError(f"Service '{key}' network '{name}' must be a mapping")
    return attachments


def _parse_network(key: str, data: dict) -> Network:
    if not isinstance(data, dict):
        raise ComposeFileError(f"Network '{key}' must be a mapping")

    ipam = _mapping(data.get("ipam"), f"networks.{key}.ipam")
    pools = ipam.get("config") or []
    if not isinstance(pools, list):
        raise ComposeFileError(f"Network '{key}' ipam config must be a list")

    return Network(
        # Generated names are qualified with the project name during validation
        name=str(data.get("name") or f"_{key}"),
        driver=str(data.get("driver") or ""),
        ipam=IPAMConfig(
            driver=str(ipam.get("driver") or ""),
            config=tuple(
                IPAMPool(
                    subnet=str(pool.get("subnet") or ""),
                    gateway=str(pool.get("gateway") or ""),
                )
                for pool in pools
                if isinstance(pool, dict)
            ),
        ),
    )


def dump_project(project: Project) -> dict[str, Any]:
    """Render a project back into the compose file layout.

    Empty fields are left out, so a validated project prints exactly what
    validation filled in.
    """
    services: dict[str, Any] = {}
    for key, service in project.services.items():
        entry: dict[str, Any] = {"container_name": service.name}
        if service.image:
            entry["image"] = service.image
        if service.platform:
            entry["platform"] = service.platform
        if service.build is not None:
            entry["build"] = {"context": service.build.context}
        if service.networks:
            entry["networks"] = {
                network: {"ipv4_address": address} if address else None
                for network in service.networks
                for address in [service.address_on(network)]
            }
        services[key] = entry

    networks: dict[str, Any] = {}
    for key, network in project.networks.items():
        network_entry: dict[str, Any] = {"name": network.name}
        if network.driver:
            network_entry["driver"] = network.driver
        ipam: dict[str, Any] = {}
        if network.ipam.driver:
            ipam["driver"] = network.ipam.driver
        pools = [
            {k: v for k, v in (("subnet", pool.subnet), ("gateway", pool.gateway)) if v}
            for pool in network.ipam.config
        ]
        if pools:
            ipam["config"] = pools
        if ipam:
            network_entry["ipam"] = ipam
        networks[key] = network_entry

    data: dict[str, Any] = {"name": project.name, "services": services}
    if networks:
        data["networks"] = networks
    return data


__all__ = ["DEFAULT_FILE_NAMES", "dump_project", "find_compose_file", "load_project"]
