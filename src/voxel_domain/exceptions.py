"""Exceptions raised while preparing a simulation domain."""


class DomainSetupError(Exception):
    """Base exception for all domain setup errors."""

    pass


class DomainIOError(DomainSetupError, OSError):
    """Raised when an input file is missing, short, or cannot be written."""

    pass


class DomainError(DomainSetupError):
    """Raised when the source cannot be placed inside the medium."""

    pass


class ConfigError(DomainSetupError, ValueError):
    """Raised when configuration values disagree with each other or the data."""

    pass


class ResourceError(DomainSetupError, MemoryError):
    """Raised when a grid buffer cannot be allocated."""

    pass


class DetectorCoverageWarning(UserWarning):
    """Issued when a detector does not touch any exposed voxel."""

    pass
