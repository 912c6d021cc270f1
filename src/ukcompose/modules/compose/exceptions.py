"""Custom exceptions for compose orchestration.

Every error names the service or network it concerns so the message is
actionable without inspecting internals.
"""


class ComposeError(Exception):
    """Base exception for compose errors."""

    def __init__(self, message: str, *, service: str | None = None, network: str | None = None):
        super().__init__(message)
        self.service = service
        self.network = network


class ComposeFileError(ComposeError):
    """Compose file cannot be read or has an invalid structure."""

    pass


class NoComposeFileFoundError(ComposeFileError):
    """No compose file was given and none of the default names exist."""

    pass


class HostDetectionError(ComposeError):
    """Host platform or architecture could not be determined."""

    pass


class CollaboratorError(ComposeError):
    """An external collaborator (control plane, catalog, builder...) failed."""

    pass


class OperationCancelledError(ComposeError):
    """The caller's cancellation signal was observed."""

    pass


# Validation


class ValidationError(ComposeError):
    """Structural problem in the declared project."""

    pass


class MissingArtifactSourceError(ValidationError):
    """Service has neither an image nor a build context."""

    pass


class MissingDriverError(ValidationError):
    """Network has no driver and its IPAM block names none."""

    pass


class MissingIPAMError(ValidationError):
    """Network has no IPAM configuration blocks."""

    pass


class InvalidSubnetError(ValidationError):
    """Network subnet is missing or not of the form addr/prefixlen."""

    pass


class InvalidGatewayError(ValidationError):
    """Network gateway is not a valid address."""

    pass


class GatewayOutsideSubnetError(ValidationError):
    """Network gateway is not within the network subnet."""

    pass


class UnknownNetworkError(ValidationError):
    """Service attaches to a network the project does not declare."""

    pass


class InvalidAddressError(ValidationError):
    """Pinned address is malformed or outside the network subnet."""

    pass


class AddressInUseError(ValidationError):
    """Pinned address is already claimed on the same network."""

    pass


class AddressesExhaustedError(ValidationError):
    """No free address is left in the network subnet."""

    pass


# Lifecycle


class ConflictError(ComposeError):
    """Declared state conflicts with live instances."""

    pass


class ServiceAlreadyRunningError(ConflictError):
    """A live instance already carries a declared service's name."""

    def __init__(self, message: str, *, services: list[str]):
        super().__init__(message, service=services[0] if services else None)
        self.services = services


class ResolutionError(ComposeError):
    """Build, package or pull of a service artifact failed."""

    pass


class InvalidPlatformSpecError(ResolutionError):
    """Service platform is not of the form <platform>/<arch>."""

    pass


class MissingBuildContextError(ResolutionError):
    """Service must be built but declares no build context."""

    pass


class ServiceRunError(ComposeError):
    """Running a service failed (isolated to that service)."""

    pass


class TeardownError(ComposeError):
    """Removing or stopping a service or network failed."""

    pass


class UnsupportedNetworkDriverError(TeardownError):
    """No network controller is registered for the driver."""

    pass


__all__ = [
    "AddressInUseError",
    "AddressesExhaustedError",
    "CollaboratorError",
    "ComposeError",
    "ComposeFileError",
    "ConflictError",
    "GatewayOutsideSubnetError",
    "HostDetectionError",
    "InvalidAddressError",
    "InvalidGatewayError",
    "InvalidPlatformSpecError",
    "InvalidSubnetError",
    "MissingArtifactSourceError",
    "MissingBuildContextError",
    "MissingDriverError",
    "MissingIPAMError",
    "NoComposeFileFoundError",
    "OperationCancelledError",
    "ResolutionError",
    "ServiceAlreadyRunningError",
    "ServiceRunError",
    "TeardownError",
    "UnknownNetworkError",
    "UnsupportedNetworkDriverError",
    "ValidationError",
]
