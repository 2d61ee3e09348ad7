"""
Error types raised by the reconciliation engine and its collaborators.
"""


class AlbSyncError(Exception):
    """Base class for all albsync errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(AlbSyncError, ValueError):
    """Raised when the controller configuration is invalid."""


class SyncError(AlbSyncError):
    """Raised when a sync cycle cannot build its desired state at all."""


class BootstrapError(AlbSyncError):
    """Raised when state cannot be reconstructed from existing load balancers."""


class ResourceNotFoundError(AlbSyncError):
    """Raised when an identity is not part of the committed resource set."""


class DeclarationError(AlbSyncError):
    """Raised when an ingress declaration is malformed."""


class ServiceResolutionError(AlbSyncError):
    """Base class for backend service lookup failures."""


class ServiceNotFoundError(ServiceResolutionError):
    """The referenced service does not exist."""


class WrongServiceTypeError(ServiceResolutionError):
    """The referenced service is not of type NodePort."""


class PortNotFoundError(ServiceResolutionError):
    """No port on the service matches the requested target port."""
