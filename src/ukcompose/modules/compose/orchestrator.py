"""Compose lifecycle orchestration controller.

This module implements ``up``, ``down`` and ``stop`` for a validated
compose project.

Philosophy:
- Reconcile against fresh control plane state before acting
- Resolve artifacts one service at a time, run services in parallel
- One service failing to run never affects its siblings
- Teardown is fail-fast and sequential

Public API:
    ComposeOrchestrator: Main controller class
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial

from ukcompose.modules.compose.exceptions import (
    ComposeError,
    OperationCancelledError,
    TeardownError,
)
from ukcompose.modules.compose.interfaces import (
    Builder,
    Catalog,
    InstanceRemover,
    InstanceStopper,
    MachineControlPlane,
    Packager,
    Puller,
    Runner,
)
from ukcompose.modules.compose.models import (
    MachineState,
    Project,
    Service,
    ServiceRunOutcome,
    TeardownResult,
    UpResult,
)
from ukcompose.modules.compose.network import ComposeNetworkManager, NetworkDriverRegistry
from ukcompose.modules.compose.reconciler import RunningSetReconciler
from ukcompose.modules.compose.resolver import (
    ServiceResolver,
    parse_platform_arch,
    split_image_reference,
)
from ukcompose.modules.compose.tasks import NamedTask, SequentialTaskRunner
from ukcompose.modules.progress import ProgressDisplay

logger = logging.getLogger(__name__)


class ComposeOrchestrator:
    """Drive a validated compose project through its lifecycle.

    This class coordinates:
    1. Pre-flight reconciliation against live instances
    2. Serial artifact resolution (local, pull, or build and package)
    3. Concurrent service runs with per-service failure isolation
    4. Fail-fast teardown of services and declared networks
    """

    def __init__(
        self,
        control_plane: MachineControlPlane,
        catalog: Catalog,
        puller: Puller,
        builder: Builder,
        packager: Packager,
        runner: Runner,
        remover: InstanceRemover,
        stopper: InstanceStopper,
        network_registry: NetworkDriverRegistry,
        max_workers: int | None = None,
        progress: ProgressDisplay | None = None,
    ):
        """Initialize compose orchestrator.

        Args:
            control_plane: Lists live instances
            catalog: Local and remote artifact lookup
            puller: Pulls remote artifacts
            builder: Builds a service from its context
            packager: Packages a build as an OCI artifact
            runner: Runs an artifact as a named instance
            remover: Removes an instance
            stopper: Stops an instance
            network_registry: Network controllers by driver name
            max_workers: Bound on services launching at the same time (default: one per service)
            progress: Progress display for sequential teardown tasks
        """
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self.reconciler = RunningSetReconciler(control_plane)
        self.resolver = ServiceResolver(catalog, puller, builder, packager)
        self.runner = runner
        self.remover = remover
        self.stopper = stopper
        self.network_registry = network_registry
        self.max_workers = max_workers
        self.progress = progress or ProgressDisplay()

    def up(self, project: Project, cancel_event: threading.Event | None = None) -> UpResult:
        """Resolve and run every service of the project.

        Conflicts and resolution failures are raised before any service is
        started. Run failures are logged and recorded per service; they are
        never raised.

        Raises:
            ServiceAlreadyRunningError: If a declared service is already live
            ResolutionError: If an artifact cannot be found, pulled or built
            OperationCancelledError: If cancelled before the run phase
        """
        self._require_validated(project, "up")

        self._check_cancelled(cancel_event, "checking running services")
        self.reconciler.assert_none_running(project, cancel_event)

        result = UpResult()
        for key, service in project.services.items():
            result.resolutions[key] = self.resolver.resolve(service, cancel_event)

        if not project.services:
            logger.info("No services to run")
            return result

        prefix_length = project.longest_service_name
        launch_slots = threading.BoundedSemaphore(self.max_workers or len(project.services))
        outcomes: dict[str, ServiceRunOutcome] = {}

        # One thread per service; slots bound launches and keep declaration order
        with ThreadPoolExecutor(
            max_workers=len(project.services), thread_name_prefix="ukcompose-up"
        ) as executor:
            futures = {}
            for key, service in project.services.items():
                launch_slots.acquire()
                future = executor.submit(
                    self._run_service, service, prefix_length, launch_slots, cancel_event
                )
                futures[future] = key
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()

        result.outcomes = {key: outcomes[key] for key in project.services}

        if result.failed_services:
            logger.warning(
                f"{len(result.failed_services)} of {len(result.outcomes)} service(s) "
                f"did not run: {', '.join(result.failed_services)}"
            )
        return result

    def _run_service(
        self,
        service: Service,
        prefix_length: int,
        launch_slots: threading.BoundedSemaphore,
        cancel_event: threading.Event | None,
    ) -> ServiceRunOutcome:
        """Run a single service; never raises.

        The caller has acquired a launch slot. It is released when the runner
        reports the launch, or when the run returns if it never does.
        """
        launched = threading.Event()

        def release_slot() -> None:
            if not launched.is_set():
                launched.set()
                launch_slots.release()

        try:
            return self._launch_service(service, prefix_length, release_slot, cancel_event)
        finally:
            release_slot()

    def _launch_service(
        self,
        service: Service,
        prefix_length: int,
        on_launched: Callable[[], None],
        cancel_event: threading.Event | None,
    ) -> ServiceRunOutcome:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"Not starting service {service.name}: operation cancelled")
            return ServiceRunOutcome(
                service_name=service.name, status="cancelled", error_message="operation cancelled"
            )

        start_time = time.time()
        try:
            platform, arch = parse_platform_arch(service)
            name, version = split_image_reference(service.image)
            prefix = service.name.ljust(prefix_length)

            logger.info(f"Running service {service.name}...")
            self.runner.run(
                f"{name}:{version}",
                platform,
                arch,
                service.name,
                prefix,
                cancel_event=cancel_event,
                on_launched=on_launched,
            )
        except Exception as e:
            logger.error(f"failed to run service {service.name}: {e}")
            return ServiceRunOutcome(
                service_name=service.name,
                status="failed",
                error_message=str(e),
                duration=time.time() - start_time,
            )

        return ServiceRunOutcome(
            service_name=service.name, status="started", duration=time.time() - start_time
        )

    def down(self, project: Project, cancel_event: threading.Event | None = None) -> TeardownResult:
        """Remove live service instances, then the project's existing networks.

        Raises:
            TeardownError: On the first removal failure (remaining work is skipped)
            UnsupportedNetworkDriverError: If a network driver has no controller
        """
        self._require_validated(project, "down")
        result = TeardownResult()

        self._check_cancelled(cancel_event, "listing running services")
        for key in self.reconciler.live_instances(project, cancel_event):
            service = project.services[key]
            self._check_cancelled(cancel_event, f"removing service {service.name}")
            logger.info(f"Removing service {service.name}...")
            try:
                self.remover.remove(service.name, cancel_event=cancel_event)
            except OperationCancelledError:
                raise
            except Exception as e:
                raise TeardownError(
                    f"failed to remove service {service.name}: {e}", service=service.name
                ) from e
            result.services.append(service.name)

        networks = ComposeNetworkManager(self.network_registry, cancel_event)
        for network in project.networks.values():
            self._check_cancelled(cancel_event, f"removing network {network.name}")
            try:
                if not networks.exists(network):
                    logger.debug(f"Network {network.name} does not exist, skipping")
                    continue
                networks.remove(network)
            except (TeardownError, OperationCancelledError):
                raise
            except Exception as e:
                raise TeardownError(
                    f"failed to remove network {network.name}: {e}", network=network.name
                ) from e
            result.networks.append(network.name)

        return result

    def stop(self, project: Project, cancel_event: threading.Event | None = None) -> TeardownResult:
        """Stop every live service instance, one at a time.

        Raises:
            TeardownError: On the first stop failure (remaining stops are skipped)
        """
        self._require_validated(project, "stop")
        result = TeardownResult()

        self._check_cancelled(cancel_event, "listing running services")
        tasks = [
            NamedTask(
                name=f"stopping service {project.services[key].name}",
                func=partial(self._stop_instance, instance.name, result, cancel_event),
            )
            for key, instance in self.reconciler.live_instances(project, cancel_event).items()
        ]

        if not tasks:
            logger.info("No running services to stop")
            return result

        SequentialTaskRunner(self.progress).run(tasks)
        return result

    def _stop_instance(
        self, name: str, result: TeardownResult, cancel_event: threading.Event | None
    ) -> None:
        self._check_cancelled(cancel_event, f"stopping service {name}")
        try:
            self.stopper.stop(name, cancel_event=cancel_event)
        except OperationCancelledError:
            raise
        except Exception as e:
            raise TeardownError(f"failed to stop service {name}: {e}", service=name) from e
        result.services.append(name)

    def status(
        self, project: Project, cancel_event: threading.Event | None = None
    ) -> dict[str, MachineState | None]:
        """Observed state of every declared service (None when no instance exists)."""
        self._require_validated(project, "ps")
        instances = {i.name: i for i in self.reconciler.list_instances(cancel_event)}
        return {
            key: instances[service.name].state if service.name in instances else None
            for key, service in project.services.items()
        }

    @staticmethod
    def _require_validated(project: Project, operation: str) -> None:
        if not project.validated:
            raise ComposeError(f"project {project.name} must be validated before {operation}")

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None, action: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(f"cancelled before {action}")


__all__ = ["ComposeOrchestrator"]
