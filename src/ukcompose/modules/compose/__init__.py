"""Compose orchestration for unikernel instances.

This module brings a compose project up, down, or to a stop on a single
host: services become unikernel instances, networks are removed on
teardown.

Philosophy:
- Standard compose files, unikernel semantics (platform/arch per service)
- Validation is a pure transformation of the loaded project
- Collaborators behind small interfaces, kraft CLI by default
- One failing service never takes down its siblings

Public API:
    load_project: Parse a compose file into an unvalidated Project
    ProjectValidator: Validate and resolve a Project
    ComposeOrchestrator: up / down / stop controller
    ServiceResolver: Local, remote or built artifact resolution
    RunningSetReconciler: Declared services vs live instances
    NetworkDriverRegistry: Network controllers by driver name
    KraftCLIBackend: kraft CLI implementation of all collaborators
    SystemHostDetector: Host platform and architecture detection
    Project, Service, Network: Compose data model
    UpResult, TeardownResult: Operation results
"""

from ukcompose.modules.compose.exceptions import (
    ComposeError,
    ConflictError,
    ResolutionError,
    ServiceAlreadyRunningError,
    TeardownError,
    ValidationError,
)
from ukcompose.modules.compose.kraft_backend import (
    KraftCLIBackend,
    SystemHostDetector,
    default_network_registry,
)
from ukcompose.modules.compose.loader import dump_project, find_compose_file, load_project
from ukcompose.modules.compose.models import (
    MachineState,
    Network,
    Project,
    ResolutionSource,
    Service,
    ServiceRunOutcome,
    TeardownResult,
    UpResult,
)
from ukcompose.modules.compose.network import ComposeNetworkManager, NetworkDriverRegistry
from ukcompose.modules.compose.orchestrator import ComposeOrchestrator
from ukcompose.modules.compose.reconciler import RunningSetReconciler
from ukcompose.modules.compose.resolver import ServiceResolver
from ukcompose.modules.compose.validator import ProjectValidator

__all__ = [
    "ComposeError",
    "ComposeNetworkManager",
    "ComposeOrchestrator",
    "ConflictError",
    "KraftCLIBackend",
    "MachineState",
    "Network",
    "NetworkDriverRegistry",
    "Project",
    "ProjectValidator",
    "ResolutionError",
    "ResolutionSource",
    "RunningSetReconciler",
    "Service",
    "ServiceAlreadyRunningError",
    "ServiceResolver",
    "ServiceRunOutcome",
    "SystemHostDetector",
    "TeardownError",
    "TeardownResult",
    "UpResult",
    "ValidationError",
    "default_network_registry",
    "dump_project",
    "find_compose_file",
    "load_project",
]
