"""Tests for kraft_cli_executor module.

Tests the run_kraft_command helper that wraps subprocess with retry and
cancellation support for kraft CLI calls.
"""

import subprocess
import threading
from unittest.mock import MagicMock, patch

import pytest

from ukcompose.kraft_cli_executor import run_kraft_command
from ukcompose.modules.compose.exceptions import OperationCancelledError
from ukcompose.retry_config import RetryConfig

NO_WAIT = RetryConfig(kraft_cli_max_attempts=3, kraft_cli_initial_delay=0.0, jitter_enabled=False)


def completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["kraft"], returncode=returncode, stdout=stdout, stderr="")


class TestRunKraftCommand:
    """Test run_kraft_command without a cancellation signal."""

    @patch("ukcompose.kraft_cli_executor.subprocess.run")
    def test_success_returns_completed_process(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed('[{"name": "app-web"}]')

        result = run_kraft_command(["kraft", "ps", "--output", "json"])

        assert result.stdout == '[{"name": "app-web"}]'
        mock_run.assert_called_once()

    @patch("ukcompose.kraft_cli_executor.subprocess.run")
    def test_passes_default_kwargs(self, mock_run: MagicMock) -> None:
        """Verifies capture_output, text, check and timeout are passed."""
        mock_run.return_value = completed()

        run_kraft_command(["kraft", "ps"])

        _, kwargs = mock_run.call_args
        assert kwargs["capture_output"] is True
        assert kwargs["text"] is True
        assert kwargs["errors"] == "replace"
        assert kwargs["check"] is True
        assert kwargs["timeout"] == 30
        assert "shell" not in kwargs

    @patch("ukcompose.kraft_cli_executor.subprocess.run")
    def test_no_retry_by_default(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(1, ["kraft", "build"], stderr="failed")

        with pytest.raises(subprocess.CalledProcessError):
            run_kraft_command(["kraft", "build", "."])

        assert mock_run.call_count == 1

    @patch("ukcompose.kraft_cli_executor.get_retry_config", return_value=NO_WAIT)
    @patch("ukcompose.kraft_cli_executor.subprocess.run")
    def test_retries_queries(self, mock_run: MagicMock, _config: MagicMock) -> None:
        mock_run.side_effect = [
            subprocess.CalledProcessError(1, ["kraft", "ps"], stderr="daemon busy"),
            completed("[]"),
        ]

        result = run_kraft_command(["kraft", "ps"], retry=True)

        assert result.stdout == "[]"
        assert mock_run.call_count == 2

    @patch("ukcompose.kraft_cli_executor.get_retry_config", return_value=NO_WAIT)
    @patch("ukcompose.kraft_cli_executor.subprocess.run")
    def test_retry_gives_up(self, mock_run: MagicMock, _config: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(["kraft", "ps"], 30)

        with pytest.raises(subprocess.TimeoutExpired):
            run_kraft_command(["kraft", "ps"], retry=True, max_attempts=2)

        assert mock_run.call_count == 2

    def test_undecodable_output_is_replaced(self, tmp_path) -> None:
        kraft = tmp_path / "kraft"
        kraft.write_text("#!/bin/sh\nprintf 'build \\377 done\\n'\n")
        kraft.chmod(0o755)

        result = run_kraft_command([str(kraft), "build", "."])
        cancellable = run_kraft_command([str(kraft), "build", "."], cancel_event=threading.Event())

        assert result.stdout == "build \ufffd done\n"
        assert cancellable.stdout == "build \ufffd done\n"


class TestRunKraftCommandCancellation:
    """Test run_kraft_command with a cancellation signal."""

    @patch("ukcompose.kraft_cli_executor.subprocess.Popen")
    def test_already_cancelled_never_starts(self, mock_popen: MagicMock) -> None:
        event = threading.Event()
        event.set()

        with pytest.raises(OperationCancelledError):
            run_kraft_command(["kraft", "build", "."], cancel_event=event)

        mock_popen.assert_not_called()

    @patch("ukcompose.kraft_cli_executor.subprocess.Popen")
    def test_completes_normally(self, mock_popen: MagicMock) -> None:
        process = mock_popen.return_value
        process.communicate.return_value = ("built", "")
        process.returncode = 0

        result = run_kraft_command(["kraft", "build", "."], cancel_event=threading.Event())

        assert result.stdout == "built"

    @patch("ukcompose.kraft_cli_executor.subprocess.Popen")
    def test_non_zero_exit_raises(self, mock_popen: MagicMock) -> None:
        process = mock_popen.return_value
        process.communicate.return_value = ("", "no such context")
        process.returncode = 2

        with pytest.raises(subprocess.CalledProcessError) as exc_info:
            run_kraft_command(["kraft", "build", "."], cancel_event=threading.Event())

        assert exc_info.value.stderr == "no such context"

    @patch("ukcompose.kraft_cli_executor.subprocess.Popen")
    def test_cancel_kills_running_command(self, mock_popen: MagicMock) -> None:
        event = threading.Event()
        process = mock_popen.return_value

        def communicate(timeout=None):
            if timeout is None:
                return ("", "")
            event.set()
            raise subprocess.TimeoutExpired(["kraft", "build"], timeout)

        process.communicate.side_effect = communicate

        with pytest.raises(OperationCancelledError):
            run_kraft_command(["kraft", "build", "."], cancel_event=event)

        process.kill.assert_called_once()

    @patch("ukcompose.kraft_cli_executor.time.monotonic")
    @patch("ukcompose.kraft_cli_executor.subprocess.Popen")
    def test_deadline_kills_running_command(self, mock_popen: MagicMock, mock_clock: MagicMock) -> None:
        mock_clock.side_effect = [0.0, 100.0]
        process = mock_popen.return_value

        def communicate(timeout=None):
            if timeout is None:
                return ("", "")
            raise subprocess.TimeoutExpired(["kraft", "build"], timeout)

        process.communicate.side_effect = communicate

        with pytest.raises(subprocess.TimeoutExpired):
            run_kraft_command(["kraft", "build", "."], timeout=10, cancel_event=threading.Event())

        process.kill.assert_called_once()
