"""Make sure a runnable artifact exists for every service.

Resolution order for one service:
1. Local catalog (no remote refresh) - nothing to do on a hit
2. Remote catalog (refresh allowed) - pull on a hit
3. Build the service's context and package the result as OCI
"""

import logging
import threading

from ukcompose.modules.compose.exceptions import (
    InvalidPlatformSpecError,
    MissingBuildContextError,
    OperationCancelledError,
    ResolutionError,
)
from ukcompose.modules.compose.interfaces import (
    Builder,
    Catalog,
    PackageFormat,
    Packager,
    PackStrategy,
    Puller,
)
from ukcompose.modules.compose.models import ArtifactQuery, ResolutionSource, Service

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("qemu", "kvm", "xen", "firecracker")
SUPPORTED_ARCHITECTURES = ("x86_64", "amd64", "arm32", "arm64")
DEFAULT_IMAGE_VERSION = "latest"


def parse_platform_arch(service: Service) -> tuple[str, str]:
    """Split a service platform of the form ``<platform>/<arch>``.

    Raises:
        InvalidPlatformSpecError: If the form, platform or architecture is invalid

    Example:
        >>> parse_platform_arch(Service(name="web", image="nginx", platform="qemu/x86_64"))
        ('qemu', 'x86_64')
    """
    parts = service.platform.split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidPlatformSpecError(
            f"invalid platform: {service.platform} for service {service.name}",
            service=service.name,
        )

    platform, arch = parts
    if platform not in SUPPORTED_PLATFORMS:
        raise InvalidPlatformSpecError(
            f"unsupported platform: {platform} for service {service.name}",
            service=service.name,
        )
    if arch not in SUPPORTED_ARCHITECTURES:
        raise InvalidPlatformSpecError(
            f"unsupported architecture: {arch} for service {service.name}",
            service=service.name,
        )
    return platform, arch


def split_image_reference(image: str) -> tuple[str, str]:
    """Split ``name[:version]`` and default the version to ``latest``.

    A colon inside the registry host (``localhost:5000/app``) is not a tag.
    """
    name, sep, version = image.rpartition(":")
    if not sep or "/" in version:
        return image, DEFAULT_IMAGE_VERSION
    return name, version or DEFAULT_IMAGE_VERSION


class ServiceResolver:
    """Locate, pull or build the artifact of a service."""

    def __init__(self, catalog: Catalog, puller: Puller, builder: Builder, packager: Packager):
        self.catalog = catalog
        self.puller = puller
        self.builder = builder
        self.packager = packager

    def resolve(
        self, service: Service, cancel_event: threading.Event | None = None
    ) -> ResolutionSource:
        """Ensure the service's artifact is available locally.

        Returns:
            Where the artifact came from

        Raises:
            ResolutionError: If lookup, pull, build or packaging fails
            OperationCancelledError: If cancelled between steps
        """
        platform, arch = parse_platform_arch(service)
        name, version = split_image_reference(service.image)
        query = ArtifactQuery(name=name, version=version, platform=platform, arch=arch)

        logger.debug(f"Searching for service {service.name} locally...")
        if self._lookup(service, query, False, cancel_event):
            logger.debug(f"Found service {service.name} locally")
            return ResolutionSource.LOCAL

        logger.debug(f"Searching for service {service.name} remotely...")
        if self._lookup(service, query, True, cancel_event):
            logger.info(f"Found service {service.name} remotely, pulling...")
            self._call(
                service,
                "pull",
                cancel_event,
                self.puller.pull,
                f"{name}:{version}",
                platform,
                arch,
            )
            return ResolutionSource.PULLED

        if service.build is None:
            raise MissingBuildContextError(
                f"service {service.name} has no build context and image "
                f"{name}:{version} was not found",
                service=service.name,
            )

        logger.info(f"Building service {service.name}...")
        self._call(
            service, "build", cancel_event, self.builder.build, service.build.context, platform, arch
        )

        logger.info(f"Packaging service {service.name}...")
        self._call(
            service,
            "package",
            cancel_event,
            self.packager.package,
            service.build.context,
            f"{name}:{version}",
            platform,
            arch,
            PackStrategy.OVERWRITE,
            PackageFormat.OCI,
        )
        return ResolutionSource.BUILT

    def _lookup(
        self,
        service: Service,
        query: ArtifactQuery,
        allow_remote_refresh: bool,
        cancel_event: threading.Event | None,
    ) -> bool:
        artifacts = self._call(
            service, "look up", cancel_event, self.catalog.lookup, query, allow_remote_refresh
        )
        return len(artifacts) != 0

    @staticmethod
    def _call(service: Service, action: str, cancel_event, func, *args):
        """Invoke a collaborator, wrapping failures with the service name."""
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(
                f"cancelled before {action} of service {service.name}", service=service.name
            )
        try:
            return func(*args, cancel_event=cancel_event)
        except (ResolutionError, OperationCancelledError):
            raise
        except Exception as e:
            raise ResolutionError(
                f"failed to {action} service {service.name}: {e}", service=service.name
            ) from e


__all__ = [
    "SUPPORTED_ARCHITECTURES",
    "SUPPORTED_PLATFORMS",
    "ServiceResolver",
    "parse_platform_arch",
    "split_image_reference",
]
