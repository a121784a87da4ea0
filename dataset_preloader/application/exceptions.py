"""
Core business exceptions for the dataset preloader.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains. Every error raised by
the pipeline is a subclass of PipelineError, so the caller can map any failure
to a message and exit code with a single except clause.
"""


class PipelineError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(PipelineError):
    """Raised for errors related to application configuration."""
    pass


# --- Infrastructure Errors ---

class InfrastructureError(PipelineError):
    """Base class for errors related to external systems (network, disk)."""
    pass


class NetworkError(InfrastructureError):
    """Raised when the remote source cannot be reached (DNS, TLS, refused)."""
    pass


class ProtocolError(InfrastructureError):
    """Raised for malformed URLs, malformed headers or non-2xx responses."""
    pass


class FetchTimeoutError(InfrastructureError):
    """Raised when a configured connect or read timeout is exceeded."""
    pass


class StorageError(InfrastructureError):
    """Raised when a local filesystem operation fails."""
    pass


class PathTraversalError(StorageError):
    """Raised when an archive entry would be written outside its target."""
    pass


class LockError(StorageError):
    """Raised when another run already holds the dataset location."""
    pass


# --- Domain/Business Logic Errors ---

class DomainError(PipelineError):
    """Base class for errors related to business logic failures."""
    pass


class IntegrityError(DomainError):
    """Raised when the stored archive does not match what the source announced."""
    pass


class ChecksumMismatchError(IntegrityError):
    """Raised when the archive digest differs from the configured one."""
    pass


class CorruptArchiveError(DomainError):
    """Raised when the compressed stream or the tar structure is invalid."""
    pass


class PipelineCancelled(PipelineError):
    """Raised when a run is cancelled through its cancellation token."""
    pass
