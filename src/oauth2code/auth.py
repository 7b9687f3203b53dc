"""httpx authentication backed by an ``OAuth2CodeClient``.

Attaches the Authorization header and, for DPoP-bound tokens, a proof for
each outgoing request. Resource servers that demand a nonce (RFC 9449
Section 9) get one retry with a proof carrying it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Generator

import httpx

from oauth2code.oauth_client import OAuth2CodeClient
from oauth2code.services.tokens import DPOP_NONCE_HEADER, USE_DPOP_NONCE

logger = logging.getLogger(__name__)


def is_resource_server_nonce_challenge(response: httpx.Response) -> bool:
    return (
        response.status_code == 401
        and USE_DPOP_NONCE in response.headers.get("WWW-Authenticate", "")
        and DPOP_NONCE_HEADER in response.headers
    )


class OAuth2CodeAuth(httpx.Auth):
    """Async-only ``httpx.Auth`` for ``httpx.AsyncClient``.

    Example:
        async with httpx.AsyncClient(auth=OAuth2CodeAuth(client)) as http:
            await http.get("https://api.example.com/me")
    """

    def __init__(self, client: OAuth2CodeClient):
        self.client = client

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("OAuth2CodeAuth only supports httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        request.headers["Authorization"] = await self.client.get_authorization()
        self._attach_proof(request)

        response = yield request

        if self.client.dpop_engine is not None and is_resource_server_nonce_challenge(
            response
        ):
            logger.debug(f"Resource server requested a DPoP nonce for {request.url}")
            self._attach_proof(request, nonce=response.headers[DPOP_NONCE_HEADER])
            yield request

    def _attach_proof(self, request: httpx.Request, nonce: str | None = None) -> None:
        proof = self.client.dpop_proof(request.method, str(request.url), nonce=nonce)
        if proof is not None:
            request.headers["DPoP"] = proof
