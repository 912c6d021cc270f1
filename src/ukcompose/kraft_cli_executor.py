"""Standardized kraft CLI subprocess execution.

Provides run_kraft_command() - a thin wrapper around subprocess that adds:
- optional retry with exponential backoff for read-only queries
- cooperative cancellation through a threading.Event

Usage:
    from ukcompose.kraft_cli_executor import run_kraft_command

    result = run_kraft_command(["kraft", "ps", "--output", "json"], retry=True)

    # Give up (and kill the process) as soon as cancel_event is set
    run_kraft_command(["kraft", "build", "./app"], timeout=1800, cancel_event=event)
"""

import logging
import subprocess
import threading
import time

from ukcompose.modules.compose.exceptions import OperationCancelledError
from ukcompose.retry_config import get_retry_config
from ukcompose.retry_handler import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

# How often a running command checks the cancellation signal
CANCEL_POLL_INTERVAL = 0.5


def run_kraft_command(
    cmd: list[str],
    *,
    timeout: float | None = 30,
    cancel_event: threading.Event | None = None,
    retry: bool = False,
    max_attempts: int | None = None,
) -> subprocess.CompletedProcess[str]:
    """Execute a kraft CLI command.

    Args:
        cmd: Command list starting with the kraft binary
        timeout: Subprocess timeout in seconds (None: no timeout)
        cancel_event: Kill the command and raise once this is set
        retry: Retry on failure (only for read-only commands)
        max_attempts: Number of attempts when retrying (default: from RetryConfig)

    Returns:
        subprocess.CompletedProcess with stdout/stderr

    Raises:
        subprocess.CalledProcessError: On non-zero exit (after retries)
        subprocess.TimeoutExpired: On timeout (after retries)
        OperationCancelledError: If cancel_event is set
    """
    logger.debug(f"Executing: {' '.join(cmd)}")

    if not retry:
        return _run(cmd, timeout, cancel_event)

    config = get_retry_config()

    @retry_with_exponential_backoff(
        max_attempts=max_attempts or config.kraft_cli_max_attempts,
        initial_delay=config.kraft_cli_initial_delay,
        max_delay=config.kraft_cli_max_delay,
        jitter=config.jitter_enabled,
        retryable_exceptions=(subprocess.CalledProcessError, subprocess.TimeoutExpired),
    )
    def _run_with_retry() -> subprocess.CompletedProcess[str]:
        return _run(cmd, timeout, cancel_event)

    return _run_with_retry()


def _run(
    cmd: list[str], timeout: float | None, cancel_event: threading.Event | None
) -> subprocess.CompletedProcess[str]:
    if cancel_event is None:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=True,
            timeout=timeout,
        )

    if cancel_event.is_set():
        raise OperationCancelledError(f"cancelled before running {' '.join(cmd[:2])}")

    process = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    deadline = time.monotonic() + timeout if timeout is not None else None

    while True:
        try:
            stdout, stderr = process.communicate(timeout=CANCEL_POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if cancel_event.is_set():
                _kill(process)
                raise OperationCancelledError(f"cancelled while running {' '.join(cmd[:2])}")
            if deadline is not None and time.monotonic() >= deadline:
                _kill(process)
                raise subprocess.TimeoutExpired(cmd, timeout) from None

    if process.returncode != 0:
        raise subprocess.CalledProcessError(process.returncode, cmd, stdout, stderr)
    return subprocess.CompletedProcess(cmd, process.returncode, stdout, stderr)


def _kill(process: subprocess.Popen) -> None:
    process.kill()
    process.communicate()


__all__ = ["run_kraft_command"]
