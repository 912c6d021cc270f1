"""Contracts of the external collaborators used by the orchestrator.

The orchestrator never talks to a hypervisor, catalog or build pipeline
directly. It is handed objects implementing these interfaces; the default
implementations live in kraft_backend, tests use in-memory fakes.

Every blocking call accepts an optional ``cancel_event``. Implementations
should give up as soon as practical once it is set.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

from ukcompose.modules.compose.models import Artifact, ArtifactQuery, RunningInstance


class PackStrategy(Enum):
    """What to do when a package with the same name already exists."""

    OVERWRITE = "overwrite"


class PackageFormat(Enum):
    OCI = "oci"


class HostDetector(ABC):
    """Detect the platform and architecture of the host."""

    @abstractmethod
    def detect_platform(self) -> str:
        pass

    @abstractmethod
    def detect_architecture(self) -> str:
        pass


class MachineControlPlane(ABC):
    """List compute instances known to the hypervisor."""

    @abstractmethod
    def list_instances(
        self, cancel_event: threading.Event | None = None
    ) -> list[RunningInstance]:
        pass


class Catalog(ABC):
    """Look up packaged artifacts locally or remotely."""

    @abstractmethod
    def lookup(
        self,
        query: ArtifactQuery,
        allow_remote_refresh: bool,
        cancel_event: threading.Event | None = None,
    ) -> list[Artifact]:
        pass


class Puller(ABC):
    @abstractmethod
    def pull(
        self,
        reference: str,
        platform: str,
        arch: str,
        cancel_event: threading.Event | None = None,
    ) -> None:
        pass


class Builder(ABC):
    @abstractmethod
    def build(
        self,
        context: str,
        platform: str,
        arch: str,
        cancel_event: threading.Event | None = None,
    ) -> None:
        pass


class Packager(ABC):
    @abstractmethod
    def package(
        self,
        context: str,
        name: str,
        platform: str,
        arch: str,
        strategy: PackStrategy = PackStrategy.OVERWRITE,
        package_format: PackageFormat = PackageFormat.OCI,
        cancel_event: threading.Event | None = None,
    ) -> None:
        pass


class Runner(ABC):
    """Run a packaged artifact as a named instance.

    May block for the lifetime of the instance. Implementations call
    ``on_launched`` once the instance has been launched; the orchestrator
    bounds concurrent launches, not concurrent lifetimes.
    """

    @abstractmethod
    def run(
        self,
        reference: str,
        platform: str,
        arch: str,
        name: str,
        log_prefix: str,
        cancel_event: threading.Event | None = None,
        on_launched: Callable[[], None] | None = None,
    ) -> None:
        pass


class InstanceRemover(ABC):
    @abstractmethod
    def remove(self, name: str, cancel_event: threading.Event | None = None) -> None:
        pass


class InstanceStopper(ABC):
    @abstractmethod
    def stop(self, name: str, cancel_event: threading.Event | None = None) -> None:
        pass


class NetworkController(ABC):
    """List and remove networks of one driver."""

    @abstractmethod
    def list_networks(self, cancel_event: threading.Event | None = None) -> list[str]:
        pass

    @abstractmethod
    def remove_network(self, name: str, cancel_event: threading.Event | None = None) -> None:
        pass


__all__ = [
    "Builder",
    "Catalog",
    "HostDetector",
    "InstanceRemover",
    "InstanceStopper",
    "MachineControlPlane",
    "NetworkController",
    "PackStrategy",
    "PackageFormat",
    "Packager",
    "Puller",
    "Runner",
]
