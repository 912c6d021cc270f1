"""Reconcile declared services against live instances.

The machine control plane is queried on every call; nothing is cached
between operations so decisions are always made on fresh state.
"""

import logging
import threading

from ukcompose.modules.compose.exceptions import ServiceAlreadyRunningError
from ukcompose.modules.compose.interfaces import MachineControlPlane
from ukcompose.modules.compose.models import Project, RunningInstance

logger = logging.getLogger(__name__)


class RunningSetReconciler:
    """Correlate project services with instances known to the control plane."""

    def __init__(self, control_plane: MachineControlPlane):
        self.control_plane = control_plane

    def list_instances(self, cancel_event: threading.Event | None = None) -> list[RunningInstance]:
        instances = self.control_plane.list_instances(cancel_event=cancel_event)
        logger.debug(f"Control plane reports {len(instances)} instance(s)")
        return instances

    def live_instances(
        self, project: Project, cancel_event: threading.Event | None = None
    ) -> dict[str, RunningInstance]:
        """Map service keys to their running or paused instance.

        Services without a live instance are left out. Order follows the
        project's service order.
        """
        live = {i.name: i for i in self.list_instances(cancel_event) if i.is_live}
        return {
            key: live[service.name]
            for key, service in project.services.items()
            if service.name in live
        }

    def assert_none_running(
        self, project: Project, cancel_event: threading.Event | None = None
    ) -> None:
        """Fail if any declared service already has a live instance.

        Raises:
            ServiceAlreadyRunningError: Naming every conflicting service
        """
        conflicts = [i.name for i in self.live_instances(project, cancel_event).values()]
        if conflicts:
            raise ServiceAlreadyRunningError(
                f"service(s) already running: {', '.join(conflicts)}", services=conflicts
            )


__all__ = ["RunningSetReconciler"]
