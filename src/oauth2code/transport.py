"""HTTP transport for authorization server endpoints.

``TokenTransport`` is the seam the token, revocation and introspection
calls go through. ``HttpxTokenTransport`` is the default implementation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Protocol, Self

import httpx

from oauth2code.models.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Response from an authorization server endpoint.

    ``body`` holds the parsed JSON document, or None when the response had no
    JSON body. Header lookups are case-insensitive.
    """

    status_code: int
    body: Any = None
    headers: httpx.Headers = field(default_factory=httpx.Headers)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, httpx.Headers):
            object.__setattr__(self, "headers", httpx.Headers(self.headers))

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> str | None:
        """OAuth ``error`` member of an error body (RFC 6749 Section 5.2)."""
        if isinstance(self.body, Mapping):
            return self.body.get("error")
        return None


class TokenTransport(Protocol):
    """Posts form-encoded requests to authorization server endpoints."""

    async def post(
        self, url: str, form: Mapping[str, str], headers: Mapping[str, str]
    ) -> TransportResponse:
        """Send a form-encoded POST.

        Non-2xx responses are returned, not raised.

        Raises:
            TransportError: If the endpoint could not be reached
        """
        ...


class HttpxTokenTransport:
    """TokenTransport over ``httpx.AsyncClient``."""

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize the transport.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Client to use instead of creating one; it is not
                closed by ``close``
        """
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def post(
        self, url: str, form: Mapping[str, str], headers: Mapping[str, str]
    ) -> TransportResponse:
        try:
            response = await self._http_client.post(
                url, data=dict(form), headers=dict(headers)
            )
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error calling {url}: {e}") from e

        try:
            body = response.json() if response.content else None
        except ValueError:
            logger.debug(f"Non-JSON response body from {url}")
            body = None

        return TransportResponse(
            status_code=response.status_code,
            body=body,
            headers=response.headers,
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
