"""kraft CLI implementation of the orchestrator's collaborators.

Every operation shells out to the ``kraft`` binary:
- Machines: ``kraft ps``, ``kraft run``, ``kraft stop``, ``kraft rm``
- Packages: ``kraft pkg ls``, ``kraft pkg pull``, ``kraft pkg``
- Builds: ``kraft build``
- Networks: ``kraft net ls``, ``kraft net rm``

Security:
- No shell=True
- Timeouts on every command except ``run``
- Command output is parsed as JSON, never evaluated
"""

import json
import logging
import platform as host_platform
import subprocess
import threading
from collections.abc import Callable
from typing import Any

from ukcompose.kraft_cli_executor import run_kraft_command
from ukcompose.modules.compose.exceptions import (
    CollaboratorError,
    HostDetectionError,
    ServiceRunError,
)
from ukcompose.modules.compose.interfaces import (
    Builder,
    Catalog,
    HostDetector,
    InstanceRemover,
    InstanceStopper,
    MachineControlPlane,
    NetworkController,
    PackageFormat,
    Packager,
    PackStrategy,
    Puller,
    Runner,
)
from ukcompose.modules.compose.models import (
    Artifact,
    ArtifactQuery,
    MachineState,
    RunningInstance,
)
from ukcompose.modules.compose.network import NetworkDriverRegistry

logger = logging.getLogger(__name__)

# Architecture names that refer to the same target
ARCH_ALIASES = {"amd64": "x86_64", "aarch64": "arm64", "arm": "arm32"}

HOST_ARCHITECTURES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm32",
    "armv6l": "arm32",
    "arm": "arm32",
}

SUPPORTED_NETWORK_DRIVERS = ("bridge",)


def _normalize_arch(arch: str) -> str:
    return ARCH_ALIASES.get(arch, arch)


class SystemHostDetector(HostDetector):
    """Detect the host platform and architecture from the running system."""

    def detect_platform(self) -> str:
        system = host_platform.system()
        if system not in ("Linux", "Darwin"):
            raise HostDetectionError(f"Unsupported host operating system: {system}")
        # kraft runs QEMU on both; KVM acceleration is picked by kraft itself
        return "qemu"

    def detect_architecture(self) -> str:
        machine = host_platform.machine().lower()
        arch = HOST_ARCHITECTURES.get(machine)
        if arch is None:
            raise HostDetectionError(f"Unsupported host architecture: {machine}")
        return arch


class KraftCLIBackend(
    MachineControlPlane,
    Catalog,
    Puller,
    Builder,
    Packager,
    Runner,
    InstanceRemover,
    InstanceStopper,
):
    """All machine, package and build operations through the kraft CLI."""

    def __init__(
        self,
        kraft_binary: str = "kraft",
        command_timeout: int = 1800,
        query_timeout: int = 30,
    ):
        """Initialize backend.

        Args:
            kraft_binary: Path or name of the kraft executable
            command_timeout: Timeout for build, package, pull, stop and remove
            query_timeout: Timeout for listing commands
        """
        self.kraft_binary = kraft_binary
        self.command_timeout = command_timeout
        self.query_timeout = query_timeout

    # Machines

    def list_instances(
        self, cancel_event: threading.Event | None = None
    ) -> list[RunningInstance]:
        entries = self._query(["ps", "--all", "--output", "json"], cancel_event)
        instances = []
        for entry in entries:
            name = entry.get("name")
            if not name:
                continue
            state = MachineState.parse(entry.get("state") or entry.get("status"))
            instances.append(RunningInstance(name=str(name), state=state))
        return instances

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
        """Run an artifact in the foreground, streaming its output to the log.

        Blocks until the instance exits. on_launched is called as soon as the
        kraft process has started. A launched instance is not killed when
        cancel_event is set. Undecodable output bytes are replaced.
        """
        cmd = [
            self.kraft_binary, "run", "--as", "oci",
            "--plat", platform, "--arch", arch, "--name", name, reference,
        ]
        logger.debug(f"Executing: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise CollaboratorError(f"Failed to launch {self.kraft_binary}: {e}", service=name) from e

        if on_launched is not None:
            on_launched()

        assert process.stdout is not None
        try:
            for line in process.stdout:
                logger.info(f"{log_prefix} | {line.rstrip()}")
        except Exception:
            process.kill()
            process.wait()
            raise

        return_code = process.wait()
        if return_code != 0:
            raise ServiceRunError(f"service {name} exited with code {return_code}", service=name)

    def stop(self, name: str, cancel_event: threading.Event | None = None) -> None:
        self._command(["stop", name], cancel_event, service=name)

    def remove(self, name: str, cancel_event: threading.Event | None = None) -> None:
        self._command(["rm", name], cancel_event, service=name)

    # Packages

    def lookup(
        self,
        query: ArtifactQuery,
        allow_remote_refresh: bool,
        cancel_event: threading.Event | None = None,
    ) -> list[Artifact]:
        args = ["pkg", "ls", "--apps", "--output", "json"]
        if allow_remote_refresh:
            args.append("--update")

        artifacts = []
        for entry in self._query(args, cancel_event):
            artifact = self._parse_artifact(entry)
            if artifact is not None and self._matches(artifact, query):
                artifacts.append(artifact)
        return artifacts

    @staticmethod
    def _parse_artifact(entry: dict[str, Any]) -> Artifact | None:
        name = entry.get("name")
        if not name:
            return None
        plat = str(entry.get("plat") or "")
        platform, _, arch = plat.partition("/")
        return Artifact(
            name=str(name),
            version=str(entry.get("version") or "latest"),
            platform=str(entry.get("platform") or platform),
            arch=str(entry.get("arch") or arch),
        )

    @staticmethod
    def _matches(artifact: Artifact, query: ArtifactQuery) -> bool:
        if artifact.name != query.name or artifact.version != query.version:
            return False
        if artifact.platform and artifact.platform != query.platform:
            return False
        if artifact.arch and _normalize_arch(artifact.arch) != _normalize_arch(query.arch):
            return False
        return True

    def pull(
        self,
        reference: str,
        platform: str,
        arch: str,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._command(["pkg", "pull", "--plat", platform, "--arch", arch, reference], cancel_event)

    def build(
        self,
        context: str,
        platform: str,
        arch: str,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._command(["build", "--plat", platform, "--arch", arch, context], cancel_event)

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
        self._command(
            [
                "pkg",
                "--plat",
                platform,
                "--arch",
                arch,
                "--name",
                name,
                "--strategy",
                strategy.value,
                "--as",
                package_format.value,
                context,
            ],
            cancel_event,
        )

    # Helpers

    def _query(self, args: list[str], cancel_event: threading.Event | None) -> list[dict[str, Any]]:
        """Run a read-only command (with retries) and parse its JSON list output."""
        cmd = [self.kraft_binary, *args]
        try:
            result = run_kraft_command(
                cmd, timeout=self.query_timeout, cancel_event=cancel_event, retry=True
            )
        except subprocess.CalledProcessError as e:
            raise CollaboratorError(f"{' '.join(cmd)} failed: {e.stderr}") from e
        except subprocess.TimeoutExpired as e:
            raise CollaboratorError(f"{' '.join(cmd)} timed out") from e
        except OSError as e:
            raise CollaboratorError(f"Failed to execute {self.kraft_binary}: {e}") from e

        return parse_json_list(result.stdout)

    def _command(
        self,
        args: list[str],
        cancel_event: threading.Event | None,
        service: str | None = None,
    ) -> None:
        cmd = [self.kraft_binary, *args]
        try:
            run_kraft_command(cmd, timeout=self.command_timeout, cancel_event=cancel_event)
        except subprocess.CalledProcessError as e:
            raise CollaboratorError(f"{' '.join(cmd)} failed: {e.stderr}", service=service) from e
        except subprocess.TimeoutExpired as e:
            raise CollaboratorError(f"{' '.join(cmd)} timed out", service=service) from e
        except OSError as e:
            raise CollaboratorError(
                f"Failed to execute {self.kraft_binary}: {e}", service=service
            ) from e


class KraftNetworkController(NetworkController):
    """Networks of a single driver, managed through ``kraft net``."""

    def __init__(self, driver: str, backend: KraftCLIBackend):
        self.driver = driver
        self.backend = backend

    def list_networks(self, cancel_event: threading.Event | None = None) -> list[str]:
        entries = self.backend._query(
            ["net", "ls", "--driver", self.driver, "--output", "json"], cancel_event
        )
        return [str(entry["name"]) for entry in entries if entry.get("name")]

    def remove_network(self, name: str, cancel_event: threading.Event | None = None) -> None:
        self.backend._command(["net", "rm", "--driver", self.driver, name], cancel_event)


def default_network_registry(backend: KraftCLIBackend) -> NetworkDriverRegistry:
    """Registry with a kraft controller for every supported driver."""
    registry = NetworkDriverRegistry()
    for driver in SUPPORTED_NETWORK_DRIVERS:
        registry.register(driver, lambda driver=driver: KraftNetworkController(driver, backend))
    return registry


def parse_json_list(output: str) -> list[dict[str, Any]]:
    """Parse kraft JSON output into a list of objects.

    kraft prints nothing (or ``null``) when there is nothing to list.
    """
    if not output or not output.strip():
        return []
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise CollaboratorError("Failed to parse kraft JSON output") from e

    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("items") or []
    if not isinstance(data, list):
        raise CollaboratorError("Unexpected kraft JSON output: expected a list")
    return [entry for entry in data if isinstance(entry, dict)]


__all__ = [
    "KraftCLIBackend",
    "KraftNetworkController",
    "SystemHostDetector",
    "default_network_registry",
    "parse_json_list",
]
