"""Data models for compose orchestration.

This module defines the core data structures used throughout the compose
orchestration system.

Philosophy:
- Immutable dataclasses for safety
- Type hints for clarity
- Simple validation at construction time
"""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class BuildConfig:
    """Build context of a service that has to be built from source."""

    context: str

    def __post_init__(self):
        if not self.context:
            raise ValueError("Build context cannot be empty")


@dataclass(frozen=True)
class ServiceNetworkAttachment:
    """Attachment of a service to a network, optionally with a pinned address."""

    ipv4_address: str | None = None


@dataclass(frozen=True)
class Service:
    """A single service declared in a compose file.

    Before validation ``name`` is the key used in the compose file. After
    validation it is ``<project>-<key>``.
    """

    name: str
    image: str = ""
    platform: str = ""
    build: BuildConfig | None = None
    networks: dict[str, ServiceNetworkAttachment | None] = field(default_factory=dict)

    def __post_init__(self):
        """Validate service configuration."""
        if not self.name:
            raise ValueError("Service name cannot be empty")

    def address_on(self, network: str) -> str | None:
        """Address assigned to this service on a network, if any."""
        attachment = self.networks.get(network)
        return attachment.ipv4_address if attachment else None


@dataclass(frozen=True)
class IPAMPool:
    """One IPAM configuration block."""

    subnet: str = ""
    gateway: str = ""


@dataclass(frozen=True)
class IPAMConfig:
    """IP address management settings of a network."""

    driver: str = ""
    config: tuple[IPAMPool, ...] = ()


@dataclass(frozen=True)
class Network:
    """A network declared in a compose file."""

    name: str
    driver: str = ""
    ipam: IPAMConfig = field(default_factory=IPAMConfig)

    @property
    def subnet(self) -> str:
        """Effective subnet (first IPAM block, folded after validation)."""
        return self.ipam.config[0].subnet if self.ipam.config else ""

    @property
    def gateway(self) -> str:
        """Effective gateway (first IPAM block, folded after validation)."""
        return self.ipam.config[0].gateway if self.ipam.config else ""


@dataclass(frozen=True)
class Project:
    """A compose project: services and networks under one name."""

    name: str
    working_dir: str
    services: dict[str, Service] = field(default_factory=dict)
    networks: dict[str, Network] = field(default_factory=dict)
    validated: bool = False

    @property
    def longest_service_name(self) -> int:
        """Length of the longest service name, used to align log prefixes."""
        return max((len(s.name) for s in self.services.values()), default=0)


class MachineState(Enum):
    """Observed state of a compute instance."""

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    EXITED = "exited"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "MachineState":
        """Parse a state string as reported by the control plane."""
        # "exited 3 minutes ago" -> "exited"
        parts = (value or "").split()
        if not parts:
            return cls.UNKNOWN
        word = parts[0].lower()
        for state in cls:
            if state.value == word:
                return state
        return cls.UNKNOWN

    @property
    def is_live(self) -> bool:
        """Running and paused instances are live."""
        return self in (MachineState.RUNNING, MachineState.PAUSED)


@dataclass(frozen=True)
class RunningInstance:
    """Compute instance as reported by the machine control plane."""

    name: str
    state: MachineState

    @property
    def is_live(self) -> bool:
        return self.state.is_live


@dataclass(frozen=True)
class ArtifactQuery:
    """Catalog lookup key."""

    name: str
    version: str
    platform: str
    arch: str
    type: str = "app"


@dataclass(frozen=True)
class Artifact:
    """Runnable packaged unikernel image."""

    name: str
    version: str
    platform: str = ""
    arch: str = ""

    @property
    def reference(self) -> str:
        return f"{self.name}:{self.version}"


class ResolutionSource(Enum):
    """Where a service artifact came from."""

    LOCAL = "local"
    PULLED = "pulled"
    BUILT = "built"


@dataclass
class ServiceRunOutcome:
    """Outcome of running a single service during ``up``."""

    service_name: str
    status: str  # "started", "failed", "cancelled"
    error_message: str | None = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == "started"


@dataclass
class UpResult:
    """Result of an ``up`` operation, one outcome per service."""

    outcomes: dict[str, ServiceRunOutcome] = field(default_factory=dict)
    resolutions: dict[str, ResolutionSource] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(o.success for o in self.outcomes.values())

    @property
    def failed_services(self) -> list[str]:
        return [name for name, o in self.outcomes.items() if not o.success]

    @property
    def succeeded_services(self) -> list[str]:
        return [name for name, o in self.outcomes.items() if o.success]

    @property
    def success_rate(self) -> float:
        """Fraction of services that ran successfully."""
        if not self.outcomes:
            return 0.0
        return len(self.succeeded_services) / len(self.outcomes)


@dataclass
class TeardownResult:
    """Result of a ``down`` or ``stop`` operation."""

    services: list[str] = field(default_factory=list)
    networks: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.services and not self.networks


__all__ = [
    "Artifact",
    "ArtifactQuery",
    "BuildConfig",
    "IPAMConfig",
    "IPAMPool",
    "MachineState",
    "Network",
    "Project",
    "ResolutionSource",
    "RunningInstance",
    "Service",
    "ServiceNetworkAttachment",
    "ServiceRunOutcome",
    "TeardownResult",
    "UpResult",
]
