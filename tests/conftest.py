"""
Shared test fixtures for ukcompose tests.

This module provides common fixtures used across the test suite:
- In-memory collaborators (tests/fakes.py)
- Sample compose projects, loaded and validated
- Orchestrator wired to the fakes
"""

import threading
from pathlib import Path

import pytest

from tests.fakes import FakeBackend, FakeHostDetector, FakeNetworkController
from ukcompose.modules.compose.models import (
    BuildConfig,
    IPAMConfig,
    IPAMPool,
    Network,
    Project,
    Service,
    ServiceNetworkAttachment,
)
from ukcompose.modules.compose.network import NetworkDriverRegistry
from ukcompose.modules.compose.orchestrator import ComposeOrchestrator
from ukcompose.modules.compose.validator import ProjectValidator
from ukcompose.modules.progress import ProgressDisplay

# ============================================================================
# BUILDERS
# ============================================================================


def bridge_network(name: str = "", subnet: str = "10.0.0.0/24", gateway: str = "") -> Network:
    return Network(
        name=name,
        driver="bridge",
        ipam=IPAMConfig(config=(IPAMPool(subnet=subnet, gateway=gateway),)),
    )


def make_project(
    services: dict[str, Service] | None = None,
    networks: dict[str, Network] | None = None,
    name: str = "app",
    working_dir: str = "/srv/app",
) -> Project:
    """Unvalidated project, as the loader would produce it."""
    return Project(
        name=name,
        working_dir=working_dir,
        services=services or {},
        networks=networks or {},
    )


def validated(project: Project, host_detector: FakeHostDetector | None = None) -> Project:
    return ProjectValidator(host_detector or FakeHostDetector()).validate(project)


# ============================================================================
# COLLABORATOR FIXTURES
# ============================================================================


@pytest.fixture
def host_detector():
    return FakeHostDetector()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def network_controller():
    return FakeNetworkController()


@pytest.fixture
def network_registry(network_controller):
    return NetworkDriverRegistry({"bridge": lambda: network_controller})


@pytest.fixture
def quiet_progress():
    return ProgressDisplay(quiet=True)


@pytest.fixture
def make_orchestrator(backend, network_registry, quiet_progress):
    """Factory for an orchestrator wired to the shared fakes."""

    def _make(max_workers: int | None = None) -> ComposeOrchestrator:
        return ComposeOrchestrator(
            control_plane=backend,
            catalog=backend,
            puller=backend,
            builder=backend,
            packager=backend,
            runner=backend,
            remover=backend,
            stopper=backend,
            network_registry=network_registry,
            max_workers=max_workers,
            progress=quiet_progress,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest.fixture
def cancel_event():
    return threading.Event()


# ============================================================================
# PROJECT FIXTURES
# ============================================================================


@pytest.fixture
def sample_project():
    """Validated project: two pulled services on one bridge network.

    Resolved names: app-web, app-db; network app_net (10.0.0.0/24).
    """
    return validated(
        make_project(
            services={
                "web": Service(
                    name="web",
                    image="nginx:1.25",
                    platform="qemu/x86_64",
                    networks={"net": None},
                ),
                "db": Service(
                    name="db",
                    image="redis",
                    platform="qemu/x86_64",
                    networks={"net": ServiceNetworkAttachment(ipv4_address="10.0.0.10")},
                ),
            },
            networks={"net": bridge_network()},
        )
    )


@pytest.fixture
def built_project():
    """Validated project with a single service built from source."""
    return validated(
        make_project(
            services={
                "api": Service(
                    name="api", platform="qemu/arm64", build=BuildConfig(context="/srv/app/api")
                ),
            },
        )
    )


@pytest.fixture
def compose_dir(tmp_path: Path) -> Path:
    """Project directory holding a compose.yaml."""
    project_dir = tmp_path / "shop"
    project_dir.mkdir()
    (project_dir / "compose.yaml").write_text(
        """
services:
  web:
    image: nginx:1.25
    platform: qemu/x86_64
    networks:
      - frontend
  api:
    build: ./api
    platform: qemu/x86_64
    networks:
      frontend:
        ipv4_address: 172.20.0.5
networks:
  frontend:
    driver: bridge
    ipam:
      config:
        - subnet: 172.20.0.0/24
"""
    )
    return project_dir
