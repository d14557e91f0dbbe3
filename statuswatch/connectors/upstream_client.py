"""
Upstream status API client.

Fetches the raw per-region/per-service probe payload from the external
status API. The client never raises for transport failures: timeouts,
connection errors and non-2xx responses all come back as an
``UpstreamResponse`` describing the failed probe, so the ingestion engine
can record them as a check of the upstream monitor itself.
"""

import time
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()


class UpstreamResponse(BaseModel):
    """
    Result of one fetch of the upstream status API.

    Attributes:
        status_code: HTTP status code, 0 if no response was received
        latency_ms: Wall-clock duration of the request
        body: Raw response body (None on transport failure)
        error: Failure description, if any
    """

    status_code: int = Field(default=0, ge=0)
    latency_ms: int = Field(default=0, ge=0)
    body: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300 and self.error is None


class UpstreamClient:
    """
    Async client for the upstream status API.

    Attributes:
        url: Upstream status endpoint
        token: Optional bearer token forwarded to the upstream
        timeout_seconds: httpx timeout applied to each phase (connect, read, write, pool)

    Example:
        >>> async with UpstreamClient(url="https://status.example/api") as client:
        ...     response = await client.fetch()
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the upstream client.

        Args:
            url: Upstream status endpoint
            token: Optional bearer token
            timeout_seconds: Per-phase httpx timeout; the ingestion engine bounds
                the whole fetch separately
            transport: Optional httpx transport (used by tests)
        """
        self.url = url
        self.token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

        logger.info(
            "upstream_client_initialized",
            url=url,
            has_token=bool(token),
            timeout_seconds=timeout_seconds,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        self._http_client = self._build_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch(self) -> UpstreamResponse:
        """
        Fetch the upstream payload once.

        Returns:
            UpstreamResponse; failures are described, never raised
        """
        client = self._http_client or self._build_client()
        started = time.monotonic()

        try:
            response = await client.get(self.url, headers=self._headers())
        except httpx.TimeoutException as e:
            latency_ms = int((time.monotonic() - started) * 1000)
            logger.warning("upstream_fetch_timeout", url=self.url, latency_ms=latency_ms)
            return UpstreamResponse(
                latency_ms=latency_ms,
                error=f"Upstream API timeout after {self.timeout_seconds}s: {e.__class__.__name__}",
            )
        except httpx.HTTPError as e:
            latency_ms = int((time.monotonic() - started) * 1000)
            logger.warning("upstream_fetch_failed", url=self.url, error=str(e))
            return UpstreamResponse(
                latency_ms=latency_ms,
                error=f"Upstream API unreachable: {e}",
            )
        finally:
            if client is not self._http_client:
                await client.aclose()

        latency_ms = int((time.monotonic() - started) * 1000)

        if not response.is_success:
            logger.warning(
                "upstream_fetch_error_status",
                url=self.url,
                status_code=response.status_code,
            )
            return UpstreamResponse(
                status_code=response.status_code,
                latency_ms=latency_ms,
                body=response.content,
                error=f"Upstream API error: {response.status_code}",
            )

        logger.info(
            "upstream_fetched",
            status_code=response.status_code,
            latency_ms=latency_ms,
            bytes=len(response.content),
        )
        return UpstreamResponse(
            status_code=response.status_code,
            latency_ms=latency_ms,
            body=response.content,
        )
