"""Tests for adapter error classes."""

from __future__ import annotations

from kpiboard.adapters.datasource import (
    AdapterError,
    ConnectionFailedError,
    ConnectionTimeoutError,
    ErrorCode,
    InvalidResponseError,
    ServiceError,
)


class TestAdapterErrors:
    """Tests for the adapter error hierarchy."""

    def test_all_are_adapter_errors(self) -> None:
        """Test that every error shares the base class."""
        for error in (
            ConnectionFailedError(),
            ConnectionTimeoutError(),
            InvalidResponseError(),
            ServiceError(500),
        ):
            assert isinstance(error, AdapterError)

    def test_to_dict(self) -> None:
        """Test the serialized form."""
        error = ConnectionTimeoutError(timeout_seconds=10)

        assert error.to_dict() == {
            "error": {
                "code": "CONNECTION_TIMEOUT",
                "message": "Data source service timed out",
                "details": {"timeout_seconds": 10},
                "retryable": True,
            }
        }

    def test_service_error_retryable_only_for_5xx(self) -> None:
        """Test retryability of service errors."""
        assert ServiceError(503).retryable
        assert not ServiceError(404).retryable
        assert ServiceError(404).code == ErrorCode.SERVICE_ERROR

    def test_invalid_response_not_retryable(self) -> None:
        """Test that garbage replies are not retried."""
        assert not InvalidResponseError().retryable
        assert InvalidResponseError().to_dict()["error"]["details"] is None
