"""OAuth 2.0 token endpoint exchange service.

Implements RFC 6749 token endpoint interactions for the authorization code
and refresh token grants, with optional DPoP binding (RFC 9449) including
the authorization server nonce challenge.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError

from oauth2code.models.config import ClientCredentials
from oauth2code.models.errors import InvalidTokenResponseError, TokenEndpointError
from oauth2code.models.tokens import TokenResponse
from oauth2code.services.dpop import DPoPProofEngine
from oauth2code.transport import TokenTransport, TransportResponse

logger = logging.getLogger(__name__)

USE_DPOP_NONCE = "use_dpop_nonce"
DPOP_NONCE_HEADER = "DPoP-Nonce"


class TokenGrant(Protocol):
    grant_type: str

    def to_form_data(self) -> dict[str, str]: ...


def nonce_challenge(response: TransportResponse) -> str | None:
    """Return the server nonce if the response is a DPoP nonce challenge.

    RFC 9449 Section 8: the authorization server answers with
    ``error=use_dpop_nonce`` and supplies the nonce in ``DPoP-Nonce``.
    """
    if response.is_success or response.error != USE_DPOP_NONCE:
        return None
    return response.headers.get(DPOP_NONCE_HEADER) or None


class TokenRequestExecutor:
    """Performs token endpoint requests for one client.

    Handles:
    - Form encoding with absent parameters dropped
    - HTTP Basic client authentication (RFC 6749 Section 2.3.1)
    - DPoP proofs for the token endpoint (RFC 9449 Section 5)
    - Re-signing and retrying on ``use_dpop_nonce`` challenges (Section 8)
    """

    def __init__(
        self,
        token_url: str,
        client: ClientCredentials,
        transport: TokenTransport,
        max_nonce_retries: int | None = 3,
    ):
        """Initialize the executor.

        Args:
            token_url: Token endpoint URL
            client: Client credentials for Basic authentication
            transport: Transport used to reach the token endpoint
            max_nonce_retries: Retries allowed for nonce challenges per
                request; None follows challenges indefinitely
        """
        self.token_url = token_url
        self.client = client
        self.transport = transport
        self.max_nonce_retries = max_nonce_retries

    async def request_token(
        self, grant: TokenGrant, dpop: DPoPProofEngine | None = None
    ) -> TokenResponse:
        """Exchange a grant for tokens.

        Args:
            grant: Authorization code or refresh token grant
            dpop: Engine to sign proofs with; None sends no DPoP header

        Returns:
            TokenResponse: Parsed successful token response

        Raises:
            TokenEndpointError: If the endpoint answered with an error
            InvalidTokenResponseError: If a 2xx body is not a token response
            TransportError: If the endpoint could not be reached
        """
        form = grant.to_form_data()
        logger.debug(
            f"Token request: grant_type={grant.grant_type}, "
            f"client_id={self.client.id}, dpop={dpop is not None}"
        )

        nonce: str | None = None
        retries = 0

        while True:
            headers = self._headers()
            if dpop is not None:
                # A fresh proof on every attempt, never a reused one.
                headers["DPoP"] = dpop.proof("POST", self.token_url, nonce=nonce)

            response = await self.transport.post(self.token_url, form, headers)

            if response.is_success:
                return self._parse_token_response(response)

            challenge = nonce_challenge(response) if dpop is not None else None
            if challenge is None:
                break
            if self.max_nonce_retries is not None and retries >= self.max_nonce_retries:
                logger.warning(
                    f"Giving up after {retries} DPoP nonce retries at {self.token_url}"
                )
                break

            retries += 1
            nonce = challenge
            logger.debug(f"Token endpoint requested a DPoP nonce (retry {retries})")

        error = TokenEndpointError(response.status_code, response.body, response.headers)
        logger.warning(f"Token request failed: {error}")
        raise error

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self.client.basic_authorization(),
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

    @staticmethod
    def _parse_token_response(response: TransportResponse) -> TokenResponse:
        if not isinstance(response.body, dict):
            raise InvalidTokenResponseError("Token response is not a JSON object")

        try:
            token_response = TokenResponse.model_validate(response.body)
        except ValidationError as e:
            raise InvalidTokenResponseError(f"Invalid token response format: {e}") from e

        logger.info("Token exchange successful")
        return token_response
