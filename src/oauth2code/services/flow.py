"""OAuth 2.0 authorization code flow orchestration service.

Builds the authorization request (state, PKCE, DPoP key binding), drives
the user authorization step through a prompter and exchanges the returned
code for tokens.
"""

from __future__ import annotations

import logging

from oauth2code.models.config import OAuth2CodeConfig
from oauth2code.models.errors import AuthorizationDeniedError
from oauth2code.models.flow import AuthorizationRequest
from oauth2code.models.security import PKCEParameters
from oauth2code.models.tokens import AuthorizationCodeGrant, TokenResponse
from oauth2code.primitives.pkce import PKCEManager
from oauth2code.prompters import AuthorizationPrompter
from oauth2code.services.dpop import DPoPProofEngine
from oauth2code.services.security import generate_state
from oauth2code.services.tokens import TokenRequestExecutor

logger = logging.getLogger(__name__)


class AuthorizationCodeFlow:
    """Runs one authorization code flow per call to ``run``.

    Each run uses a fresh state value and, when PKCE is enabled, a fresh
    single-use code verifier.
    """

    def __init__(
        self,
        config: OAuth2CodeConfig,
        prompter: AuthorizationPrompter,
        executor: TokenRequestExecutor,
    ):
        self.config = config
        self.prompter = prompter
        self.executor = executor
        self._pkce_manager = PKCEManager(config.pkce) if config.pkce else None

    def build_request(
        self,
        state: str,
        pkce_params: PKCEParameters | None = None,
        dpop: DPoPProofEngine | None = None,
    ) -> AuthorizationRequest:
        client = self.config.client
        return AuthorizationRequest(
            authorization_endpoint=self.config.endpoints.authorization_url,
            client_id=client.id,
            state=state,
            redirect_uri=client.redirect_uri,
            scope=client.scope,
            code_challenge=pkce_params.code_challenge if pkce_params else None,
            code_challenge_method=(
                pkce_params.code_challenge_method if pkce_params else None
            ),
            dpop_jkt=dpop.thumbprint() if dpop else None,
        )

    async def run(self, dpop: DPoPProofEngine | None = None) -> TokenResponse:
        """Authorize the user and exchange the code for tokens.

        Args:
            dpop: Engine whose key the code and tokens are bound to

        Returns:
            TokenResponse: Tokens from the code exchange

        Raises:
            AuthorizationDeniedError: If no code was returned
            TokenEndpointError: If the code exchange failed
        """
        state = generate_state()
        pkce_params = (
            self._pkce_manager.generate_parameters() if self._pkce_manager else None
        )

        request = self.build_request(state, pkce_params, dpop)
        authorization_url = request.build_authorization_url()

        logger.info(f"Requesting user authorization for client {self.config.client.id}")
        result = await self.prompter.open(authorization_url, state)

        if not result.authorization_code or result.error_code:
            raise AuthorizationDeniedError(result.error_code, result.error_description)

        logger.debug("Received authorization code, exchanging for tokens")
        grant = AuthorizationCodeGrant(
            code=result.authorization_code,
            redirect_uri=self.config.client.redirect_uri,
            code_verifier=pkce_params.code_verifier if pkce_params else None,
        )
        return await self.executor.request_token(grant, dpop)
