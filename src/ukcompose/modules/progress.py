"""
Progress Display Module

Show progress of named tasks (stopping services, removing networks) to the
user while they run.

Requirements:
- Safe output formatting
- Thread-safe printing (services may report concurrently)
"""

import logging
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class ProgressStage(Enum):
    """Progress stage indicators."""

    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


@dataclass
class ProgressUpdate:
    """Progress update information."""

    stage: ProgressStage
    message: str
    timestamp: float
    operation: str


class ProgressDisplay:
    """
    Line-oriented progress display for long operations.

    Features:
    - Stage-based updates
    - Elapsed time on completion
    - Unicode or ASCII symbols
    """

    SYMBOLS = {
        ProgressStage.STARTED: "►",
        ProgressStage.IN_PROGRESS: "...",
        ProgressStage.COMPLETED: "✓",
        ProgressStage.FAILED: "✗",
        ProgressStage.WARNING: "⚠",
    }

    ASCII_SYMBOLS = {
        ProgressStage.STARTED: ">",
        ProgressStage.IN_PROGRESS: "...",
        ProgressStage.COMPLETED: "OK",
        ProgressStage.FAILED: "FAIL",
        ProgressStage.WARNING: "WARN",
    }

    def __init__(self, use_unicode: bool = True, output_file=None, quiet: bool = False):
        """
        Initialize progress display.

        Args:
            use_unicode: Use Unicode symbols (True) or ASCII (False)
            output_file: Output file object (default: sys.stdout)
            quiet: Record updates without printing them
        """
        self.use_unicode = use_unicode
        self.output_file = output_file or sys.stdout
        self.quiet = quiet
        self.updates: list[ProgressUpdate] = []
        self._started: dict[str, float] = {}
        self._lock = threading.Lock()

    def start_operation(self, name: str) -> None:
        """
        Begin showing progress for an operation.

        Example:
            >>> progress = ProgressDisplay()
            >>> progress.start_operation("stopping service app-web")
        """
        self._started[name] = time.time()
        self.update(name, name, ProgressStage.STARTED)

    def update(
        self, operation: str, message: str, stage: ProgressStage = ProgressStage.IN_PROGRESS
    ) -> None:
        update = ProgressUpdate(
            stage=stage, message=message, timestamp=time.time(), operation=operation
        )
        with self._lock:
            self.updates.append(update)
            if not self.quiet:
                print(self._format_update(update), file=self.output_file, flush=True)

    def complete(self, name: str, success: bool = True, message: str | None = None) -> None:
        """
        Mark an operation complete, appending the elapsed time.

        Example:
            >>> progress.complete("stopping service app-web", success=True)
        """
        stage = ProgressStage.COMPLETED if success else ProgressStage.FAILED
        final_message = message or name

        started = self._started.pop(name, None)
        if started is not None:
            final_message += f" ({self._format_duration(time.time() - started)})"

        self.update(name, final_message, stage)

    def _format_update(self, update: ProgressUpdate) -> str:
        symbols = self.SYMBOLS if self.use_unicode else self.ASCII_SYMBOLS
        return f"{symbols.get(update.stage, '')} {update.message}"

    @staticmethod
    def _format_duration(seconds: float) -> str:
        """Format duration in human-readable form (e.g. "2m 30s")."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        if seconds < 3600:
            return f"{int(seconds // 60)}m {int(seconds % 60)}s"
        return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"

    def get_updates(self) -> list[ProgressUpdate]:
        with self._lock:
            return self.updates.copy()


__all__ = ["ProgressDisplay", "ProgressStage", "ProgressUpdate"]
