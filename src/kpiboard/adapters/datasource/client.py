"""HTTP client for the data source service.

The dashboard never talks to databases or SaaS APIs itself. Connection
tests, data fetches and syncs are delegated to a small companion service
which exposes::

    POST /api/datasources/test   {type, config, credentials}
    POST /api/datasources/fetch  {type, config, credentials, query}
    POST /api/datasources/sync   {type, config, credentials}
    GET  /api/health

Credentials are revealed only into the request body. They are never
logged and never part of an error's details.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from kpiboard.adapters.datasource.errors import (
    ConnectionFailedError,
    ConnectionTimeoutError,
    InvalidResponseError,
    ServiceError,
)
from kpiboard.adapters.datasource.types import ConnectionTestResult

if TYPE_CHECKING:
    from kpiboard.models.data_source import DataSource

logger = structlog.get_logger()


class HttpDataSourceClient:
    """Talks to the data source service over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the service, e.g. ``http://localhost:3007``.
            timeout_seconds: Per-request timeout.
            transport: Optional transport override, used by tests.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def test_connection(self, source: DataSource) -> ConnectionTestResult:
        """Ask the service to open a connection with the source's settings."""
        started = time.monotonic()
        body = await self._post("/api/datasources/test", self._payload(source), source)
        result = self._parse_result(body, source)
        if result.response_time_ms is None:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            result = result.model_copy(update={"response_time_ms": elapsed_ms})
        return result

    async def fetch(self, source: DataSource, query: str | None = None) -> Any:
        """Fetch data from the source; returns the ``data`` member of the reply."""
        payload = self._payload(source)
        payload["query"] = query
        body = await self._post("/api/datasources/fetch", payload, source)
        if not isinstance(body, dict) or "data" not in body:
            raise InvalidResponseError(details={"source_id": source.id, "reason": "missing data"})
        return body["data"]

    async def sync(self, source: DataSource) -> ConnectionTestResult:
        """Ask the service to synchronise the source."""
        body = await self._post("/api/datasources/sync", self._payload(source), source)
        return self._parse_result(body, source)

    async def health(self, health_url: str | None = None) -> bool:
        """Check whether the service answers its health endpoint.

        Args:
            health_url: Root URL for health checks instead of ``base_url``.

        Returns:
            True on a 2xx answer, False on any failure.
        """
        url = f"{(health_url or self.base_url).rstrip('/')}/api/health"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("datasource_service_unhealthy", url=url, error=str(e))
            return False
        return response.is_success

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    @staticmethod
    def _payload(source: DataSource) -> dict[str, Any]:
        return {
            "type": source.type.value,
            "config": source.config.model_dump(mode="json", by_alias=True, exclude_none=True),
            "credentials": source.credentials.reveal(),
        }

    async def _post(self, path: str, payload: dict[str, Any], source: DataSource) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as e:
            logger.warning(
                "datasource_service_timeout",
                path=path,
                source_id=source.id,
                source_type=source.type.value,
            )
            raise ConnectionTimeoutError(timeout_seconds=self.timeout_seconds) from e
        except httpx.RequestError as e:
            logger.error(
                "datasource_service_error",
                path=path,
                source_id=source.id,
                source_type=source.type.value,
                error=str(e),
            )
            raise ConnectionFailedError(details={"source_id": source.id}) from e

        try:
            body = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                details={"source_id": source.id, "status_code": response.status_code}
            ) from e

        # the service reports failed tests as 500 with a {success, message} body
        if not response.is_success and not (isinstance(body, dict) and "success" in body):
            raise ServiceError(response.status_code)

        logger.info(
            "datasource_service_called",
            path=path,
            source_id=source.id,
            source_type=source.type.value,
            status_code=response.status_code,
        )
        return body

    @staticmethod
    def _parse_result(body: Any, source: DataSource) -> ConnectionTestResult:
        try:
            return ConnectionTestResult.model_validate(body)
        except ValidationError as e:
            raise InvalidResponseError(details={"source_id": source.id}) from e
