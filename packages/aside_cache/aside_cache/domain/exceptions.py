"""Domain-specific exceptions for aside-cache.

This module defines the exception hierarchy for the cache. Backing source
failures are always surfaced to the caller wrapped in one of these types,
chained from the original exception.
"""

from typing import Any


class AsideCacheError(Exception):
    """Base exception for all aside-cache errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code for programmatic handling
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class DomainError(AsideCacheError):
    """Base class for domain-layer errors."""

    pass


class ApplicationError(AsideCacheError):
    """Base class for application-layer errors."""

    pass


class InfrastructureError(AsideCacheError):
    """Base class for infrastructure-layer errors."""

    pass


class ConfigurationError(InfrastructureError):
    """Raised when cache configuration is invalid or missing."""

    def __init__(self, config_key: str, reason: str, **kwargs: Any) -> None:
        """
        Initialize configuration error.

        Args:
            config_key: Configuration key that has issues
            reason: Reason for configuration error
            **kwargs: Additional error details
        """
        message = f"Configuration error for '{config_key}': {reason}"
        details = {
            "config_key": config_key,
            "reason": reason,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details)


class SourceLoadError(ApplicationError):
    """Raised when the backing source loader fails for a key.

    Delivered to every caller waiting on the same load. The failure is never
    cached, so the next lookup starts a fresh load.
    """

    def __init__(self, key: Any, reason: str | None = None, **kwargs: Any) -> None:
        """
        Initialize source load error.

        Args:
            key: Cache key whose load failed
            reason: Failure reason
            **kwargs: Additional error details
        """
        message = f"Loading key '{key}' from backing source failed"
        if reason:
            message += f": {reason}"
        details = {
            "key": repr(key),
            "reason": reason,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="SOURCE_LOAD_ERROR", details=details)
        self.key = key


class SourcePersistError(ApplicationError):
    """Raised when the write path cannot persist a value.

    The cache is left untouched when this is raised.
    """

    def __init__(self, key: Any, reason: str | None = None, **kwargs: Any) -> None:
        """
        Initialize source persist error.

        Args:
            key: Cache key being written
            reason: Failure reason
            **kwargs: Additional error details
        """
        message = f"Persisting key '{key}' to backing source failed"
        if reason:
            message += f": {reason}"
        details = {
            "key": repr(key),
            "reason": reason,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="SOURCE_PERSIST_ERROR", details=details)
        self.key = key


class LoadTimeoutError(ApplicationError):
    """Raised when a caller stops waiting for an in-flight load.

    Only the waiting caller is affected. The load itself keeps running for
    any other waiters.
    """

    def __init__(self, key: Any, timeout_seconds: float, **kwargs: Any) -> None:
        """
        Initialize load timeout error.

        Args:
            key: Cache key being loaded
            timeout_seconds: Timeout duration in seconds
            **kwargs: Additional error details
        """
        message = f"Waiting for load of key '{key}' timed out after {timeout_seconds} seconds"
        details = {
            "key": repr(key),
            "timeout_seconds": timeout_seconds,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="LOAD_TIMEOUT", details=details)
        self.key = key


class OperationTimeoutError(ApplicationError):
    """Raised when a wrapped operation times out."""

    def __init__(self, operation: str, timeout_seconds: float, **kwargs: Any) -> None:
        """
        Initialize timeout error.

        Args:
            operation: Operation that timed out
            timeout_seconds: Timeout duration in seconds
            **kwargs: Additional error details
        """
        message = f"Operation '{operation}' timed out after {timeout_seconds} seconds"
        details = {
            "operation": operation,
            "timeout_seconds": timeout_seconds,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="TIMEOUT", details=details)


class SnapshotError(InfrastructureError):
    """Raised when a cache snapshot cannot be encoded or decoded."""

    def __init__(self, operation: str, reason: str | None = None, **kwargs: Any) -> None:
        """
        Initialize snapshot error.

        Args:
            operation: Snapshot operation that failed (dump, restore)
            reason: Failure reason
            **kwargs: Additional error details
        """
        message = f"Snapshot operation '{operation}' failed"
        if reason:
            message += f": {reason}"
        details = {
            "operation": operation,
            "reason": reason,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="SNAPSHOT_ERROR", details=details)
