"""Error definitions for the data source adapter layer.

Every failure talking to the connection-test service is mapped onto one
of these, with a stable error code. The registry turns them into an
``error`` status on the data source; they never reach the UI as-is.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the data source service."""

    CONNECTION_FAILED = "CONNECTION_FAILED"
    CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    SERVICE_ERROR = "SERVICE_ERROR"


class AdapterError(Exception):
    """Base exception for all adapter errors.

    Attributes:
        code: Standardized error code.
        message: Human-readable error message.
        details: Additional error details. Never contains credentials.
        retryable: Whether the operation can be retried.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        """Initialize the adapter error."""
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a plain dictionary, safe to log."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details if self.details else None,
                "retryable": self.retryable,
            }
        }


class ConnectionFailedError(AdapterError):
    """The data source service could not be reached."""

    def __init__(
        self,
        message: str = "Failed to reach data source service",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize connection failed error."""
        super().__init__(
            code=ErrorCode.CONNECTION_FAILED,
            message=message,
            details=details,
            retryable=True,
        )


class ConnectionTimeoutError(AdapterError):
    """The data source service did not answer in time."""

    def __init__(
        self,
        message: str = "Data source service timed out",
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize connection timeout error."""
        super().__init__(
            code=ErrorCode.CONNECTION_TIMEOUT,
            message=message,
            details={"timeout_seconds": timeout_seconds} if timeout_seconds else None,
            retryable=True,
        )


class InvalidResponseError(AdapterError):
    """The service answered with something that is not the expected JSON."""

    def __init__(
        self,
        message: str = "Invalid response from data source service",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid response error."""
        super().__init__(
            code=ErrorCode.INVALID_RESPONSE,
            message=message,
            details=details,
            retryable=False,
        )


class ServiceError(AdapterError):
    """The service answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str = "Data source service returned an error",
    ) -> None:
        """Initialize service error."""
        super().__init__(
            code=ErrorCode.SERVICE_ERROR,
            message=message,
            details={"status_code": status_code},
            retryable=status_code >= 500,
        )
        self.status_code = status_code
