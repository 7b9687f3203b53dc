"""Token revocation (RFC 7009) and introspection (RFC 7662) calls."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from oauth2code.models.config import ClientCredentials
from oauth2code.models.errors import TokenEndpointError, TokenError
from oauth2code.models.tokens import IntrospectionResponse, TokenKind
from oauth2code.transport import TokenTransport, TransportResponse

logger = logging.getLogger(__name__)


class TokenRevocationService:
    """Posts tokens to the revocation and introspection endpoints."""

    def __init__(self, client: ClientCredentials, transport: TokenTransport):
        self.client = client
        self.transport = transport

    async def revoke(self, revoke_url: str, token: str, kind: TokenKind) -> bool:
        """Revoke a token.

        Returns:
            True once the endpoint acknowledged the request

        Raises:
            TokenEndpointError: If the endpoint answered with an error
        """
        response = await self._post(revoke_url, token, kind)
        logger.info(f"Revoked {kind.value}")
        return response.is_success

    async def introspect(
        self, introspect_url: str, token: str, kind: TokenKind
    ) -> IntrospectionResponse:
        """Introspect a token.

        Raises:
            TokenEndpointError: If the endpoint answered with an error
            TokenError: If the response is not an introspection document
        """
        response = await self._post(introspect_url, token, kind)
        try:
            return IntrospectionResponse.model_validate(response.body)
        except ValidationError as e:
            raise TokenError(f"Invalid introspection response: {e}") from e

    async def _post(self, url: str, token: str, kind: TokenKind) -> TransportResponse:
        headers = {
            "Authorization": self.client.basic_authorization(),
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form = {"token": token, "token_type_hint": kind.value}

        response = await self.transport.post(url, form, headers)
        if not response.is_success:
            error = TokenEndpointError(
                response.status_code, response.body, response.headers
            )
            logger.warning(f"Request to {url} failed: {error}")
            raise error
        return response
