"""Sequential execution of named tasks with progress reporting."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ukcompose.modules.progress import ProgressDisplay

logger = logging.getLogger(__name__)


@dataclass
class NamedTask:
    """A unit of work shown to the user under ``name``."""

    name: str
    func: Callable[[], None]


class SequentialTaskRunner:
    """Run tasks one after another; the first failure stops the rest.

    Successful tasks stay visible (nothing is hidden on success).
    """

    def __init__(self, progress: ProgressDisplay | None = None):
        self.progress = progress or ProgressDisplay()

    def run(self, tasks: list[NamedTask]) -> list[str]:
        """Run every task in order.

        Returns:
            Names of the tasks that completed

        Raises:
            Exception: Whatever the failing task raised, after reporting it
        """
        completed = []
        for task in tasks:
            self.progress.start_operation(task.name)
            try:
                task.func()
            except Exception as e:
                self.progress.complete(task.name, success=False, message=f"{task.name}: {e}")
                skipped = len(tasks) - len(completed) - 1
                if skipped:
                    logger.warning(f"Skipping {skipped} remaining task(s) after failure")
                raise
            self.progress.complete(task.name, success=True)
            completed.append(task.name)
        return completed


__all__ = ["NamedTask", "SequentialTaskRunner"]
