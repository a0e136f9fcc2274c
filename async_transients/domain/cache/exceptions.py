"""
Transient Cache Exceptions

Domain-specific exceptions for transient cache operations.
"""

from typing import Any, Dict, Optional


class TransientException(Exception):
    """Base exception for transient cache errors.

    Carries a machine-readable error code and structured details so
    callers and log processors never have to parse the message.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(TransientException):
    """Raised (or reported) when an entry cannot be registered."""

    def __init__(self, message: str = "Set transient name", field: Optional[str] = None):
        details = {}
        if field:
            details["field"] = field

        super().__init__(
            message=message, error_code="TRANSIENT_CONFIGURATION_ERROR", details=details
        )


class ComputeError(TransientException):
    """Raised when a compute strategy fails to produce a value."""

    def __init__(
        self,
        name: str,
        kind: str,
        original_error: Optional[Exception] = None,
        message: Optional[str] = None,
    ):
        details = {"name": name, "kind": kind}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message or f"Failed to compute transient '{name}'",
            error_code="TRANSIENT_COMPUTE_ERROR",
            details=details,
        )
        # Preserve exception context for debugging (exception chaining)
        if original_error:
            self.__cause__ = original_error


class StoreUnavailable(TransientException):
    """Raised when the backing key/value store cannot serve an operation."""

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {"operation": operation}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Transient store operation '{operation}' failed",
            error_code="TRANSIENT_STORE_UNAVAILABLE",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error
