"""Tests for compose file discovery and loading."""

from pathlib import Path

import pytest

from ukcompose.modules.compose.exceptions import ComposeFileError, NoComposeFileFoundError
from ukcompose.modules.compose.loader import dump_project, find_compose_file, load_project
from ukcompose.modules.compose.models import IPAMPool, ServiceNetworkAttachment


@pytest.mark.unit
class TestFindComposeFile:
    """Default file name search."""

    def test_finds_compose_yaml(self, compose_dir: Path):
        assert find_compose_file(compose_dir) == compose_dir / "compose.yaml"

    def test_docker_compose_yml_wins(self, compose_dir: Path):
        (compose_dir / "docker-compose.yml").write_text("services: {}\n")

        assert find_compose_file(compose_dir).name == "docker-compose.yml"

    def test_composefile_is_last_resort(self, tmp_path: Path):
        (tmp_path / "Composefile").write_text("services: {}\n")

        assert find_compose_file(tmp_path).name == "Composefile"

    def test_nothing_found(self, tmp_path: Path):
        with pytest.raises(NoComposeFileFoundError):
            find_compose_file(tmp_path)

    def test_load_without_file_searches_working_dir(self, compose_dir: Path):
        project = load_project(working_dir=compose_dir)

        assert set(project.services) == {"web", "api"}


@pytest.mark.unit
class TestLoadProject:
    """Parsing the consumed subset of the compose schema."""

    def test_loads_services_and_networks(self, compose_dir: Path):
        project = load_project(compose_dir / "compose.yaml")

        assert project.validated is False
        assert project.working_dir == str(compose_dir.resolve())
        assert project.services["web"].image == "nginx:1.25"
        assert project.services["web"].platform == "qemu/x86_64"
        assert project.services["web"].networks == {"frontend": None}
        assert project.services["api"].networks == {
            "frontend": ServiceNetworkAttachment(ipv4_address="172.20.0.5")
        }
        assert project.networks["frontend"].driver == "bridge"
        assert project.networks["frontend"].ipam.config == (IPAMPool(subnet="172.20.0.0/24"),)

    def test_relative_build_context_is_resolved(self, compose_dir: Path):
        project = load_project(compose_dir / "compose.yaml")

        assert project.services["api"].build.context == str((compose_dir / "api").resolve())

    def test_build_mapping_form(self, tmp_path: Path):
        compose_file = tmp_path / "compose.yaml"
        compose_file.write_text("services:\n  api:\n    build:\n      context: /opt/src\n")

        assert load_project(compose_file).services["api"].build.context == "/opt/src"

    def test_unnamed_network_gets_placeholder(self, compose_dir: Path):
        project = load_project(compose_dir / "compose.yaml")

        assert project.networks["frontend"].name == "_frontend"

    def test_explicit_project_and_network_names(self, tmp_path: Path):
        compose_file = tmp_path / "compose.yaml"
        compose_file.write_text(
            "name: demo\n"
            "services:\n  web:\n    image: nginx\n"
            "networks:\n  net:\n    name: shared\n"
        )

        project = load_project(compose_file)

        assert project.name == "demo"
        assert project.networks["net"].name == "shared"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ComposeFileError, match="not found"):
            load_project(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        compose_file = tmp_path / "compose.yaml"
        compose_file.write_text("services: [[[")

        with pytest.raises(ComposeFileError, match="Invalid YAML"):
            load_project(compose_file)

    def test_empty_file(self, tmp_path: Path):
        compose_file = tmp_path / "compose.yaml"
        compose_file.write_text("")

        with pytest.raises(ComposeFileError, match="empty"):
            load_project(compose_file)

    def test_missing_services(self, tmp_path: Path):
        compose_file = tmp_path / "compose.yaml"
        compose_file.write_text("networks: {}\n")

        with pytest.raises(ComposeFileError, match="services"):
            load_project(compose_file)

    def test_services_must_be_mapping(self, tmp_path: Path):
        compose_file = tmp_path / "compose.yaml"
        compose_file.write_text("services:\n  - web\n")

        with pytest.raises(ComposeFileError, match="must be a mapping"):
            load_project(compose_file)


@pytest.mark.unit
class TestDumpProject:
    """Rendering a validated project."""

    def test_dump_validated_project(self, sample_project):
        data = dump_project(sample_project)

        assert data["name"] == "app"
        assert data["services"]["web"] == {
            "container_name": "app-web",
            "image": "nginx:1.25",
            "platform": "qemu/x86_64",
            "networks": {"net": {"ipv4_address": "10.0.0.1"}},
        }
        assert data["networks"]["net"] == {
            "name": "app_net",
            "driver": "bridge",
            "ipam": {"config": [{"subnet": "10.0.0.0/24", "gateway": "10.0.0.0"}]},
        }
