"""OAuth 2.0 authorization code client with PKCE and DPoP.

Holds the access token for one client, reuses it while it is valid and
coordinates concurrent callers so that at most one authorization or refresh
runs at a time.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Literal, Self

from oauth2code.callbacks import CallbackManager
from oauth2code.models.config import OAuth2CodeConfig
from oauth2code.models.errors import ScopeMismatchError, TokenEndpointError
from oauth2code.models.tokens import (
    AccessTokenState,
    IntrospectionResponse,
    RefreshTokenGrant,
    SessionState,
    TokenKind,
    TokenResponse,
)
from oauth2code.primitives.keys import CryptographyKeyProvider, SigningKeyProvider
from oauth2code.prompters import AuthorizationPrompter
from oauth2code.services.dpop import DEFAULT_ALGORITHM, DPoPKeySource, DPoPProofEngine
from oauth2code.services.flow import AuthorizationCodeFlow
from oauth2code.services.revocation import TokenRevocationService
from oauth2code.services.tokens import TokenRequestExecutor
from oauth2code.transport import HttpxTokenTransport, TokenTransport

logger = logging.getLogger(__name__)


class OAuth2CodeClient:
    """Token lifecycle manager for the OAuth 2.0 authorization code grant.

    ``get_authorization`` returns a ready-to-use Authorization header value.
    A valid cached token is returned without any I/O. Otherwise the client
    refreshes with its refresh token, or runs the authorization code flow
    through the prompter, optionally binding the token to a DPoP key.

    Concurrent callers share one acquisition: the first closes the gate,
    the others wait for it to open and then check the cached token again.
    """

    def __init__(
        self,
        config: OAuth2CodeConfig,
        prompter: AuthorizationPrompter,
        transport: TokenTransport | None = None,
        key_provider: SigningKeyProvider | None = None,
        refresh_token: str | Awaitable[str | None] | None = None,
        dpop_key: DPoPKeySource | Awaitable[DPoPKeySource | None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the client.

        Args:
            config: Immutable client configuration
            prompter: Handles the user authorization step
            transport: Endpoint transport; an ``HttpxTokenTransport`` owned
                by this client is created when omitted
            key_provider: DPoP key backend
            refresh_token: Stored refresh token, or an awaitable resolving to
                one (resolved at the first acquisition)
            dpop_key: Stored DPoP key material to reuse instead of generating
                a key, or a JWS algorithm name to generate one with; may be
                an awaitable resolving to either. Enables DPoP even without
                ``config.dpop_algorithm``
            clock: Source of the current Unix time
        """
        self.config = config
        self.prompter = prompter
        self._owns_transport = transport is None
        self.transport = transport or HttpxTokenTransport(timeout=config.timeout)
        self.key_provider = key_provider or CryptographyKeyProvider(
            rsa_key_size=config.rsa_key_size
        )
        self._clock = clock

        self.callbacks = CallbackManager()
        self.executor = TokenRequestExecutor(
            config.endpoints.token_url,
            config.client,
            self.transport,
            max_nonce_retries=config.max_nonce_retries,
        )
        self.flow = AuthorizationCodeFlow(config, prompter, self.executor)
        self.revocation = TokenRevocationService(config.client, self.transport)

        self._session = SessionState()
        if refresh_token is None or isinstance(refresh_token, str):
            self._session.refresh_token = refresh_token
        else:
            self._session.pending_refresh_token = refresh_token
        self._session.pending_dpop_key = dpop_key
        self._dpop_enabled = config.dpop_algorithm is not None or dpop_key is not None
        self._dpop_algorithm = config.dpop_algorithm
        self._resolve_lock = asyncio.Lock()

        self._gate: asyncio.Event | None = None
        if config.waiting_start:
            self.start_wait()

    @property
    def is_waiting(self) -> bool:
        """True while an acquisition is in flight or the gate is held."""
        return self._gate is not None

    @property
    def access_token(self) -> AccessTokenState | None:
        """Snapshot of the cached access token, valid or not."""
        return self._session.access_token

    @property
    def dpop_engine(self) -> DPoPProofEngine | None:
        return self._session.dpop

    def get_refresh_token(self) -> str | None:
        """Current refresh token.

        A refresh token supplied as an awaitable reads as None until the first
        acquisition, ``revoke`` or ``introspect`` resolves it.
        """
        return self._session.refresh_token

    def start_wait(self) -> bool:
        """Close the acquisition gate.

        Callers of ``get_authorization`` that need a new token wait until
        ``end_wait`` is called.

        Returns:
            False if the gate was already closed
        """
        if self._gate is not None:
            return False
        self._gate = asyncio.Event()
        return True

    def end_wait(self) -> None:
        """Open the acquisition gate and release all waiters."""
        gate, self._gate = self._gate, None
        if gate is not None:
            gate.set()

    async def get_authorization(self) -> str:
        """Return an Authorization header value, acquiring a token if needed.

        Raises:
            AuthorizationDeniedError: If the user authorization step failed
            ScopeMismatchError: If fewer scopes were granted than configured
            TokenEndpointError: If the token endpoint answered with an error
            TransportError: If the token endpoint could not be reached
        """
        token = await self.get_token()
        return token.authorization

    async def get_token(self) -> AccessTokenState:
        """Structured form of ``get_authorization``."""
        while True:
            token = self._session.access_token
            if token is not None and token.is_valid(self._clock()):
                return token

            if self._gate is None:
                break

            # Whoever holds the gate may have failed; check again afterwards.
            await self._gate.wait()

        self.start_wait()
        try:
            return await self._acquire()
        finally:
            self.end_wait()

    def dpop_proof(
        self, method: str, uri: str, nonce: str | None = None
    ) -> str | None:
        """DPoP proof for a resource request made with the current token.

        Returns:
            Compact proof bound to the access token, or None without DPoP
        """
        engine = self._session.dpop
        if engine is None:
            return None

        token = self._session.access_token
        access_token = token.access_token if token is not None else None
        return engine.proof(method, uri, access_token=access_token, nonce=nonce)

    async def revoke(self, kind: TokenKind | str = TokenKind.ACCESS) -> bool:
        """Revoke the stored token of the given kind (RFC 7009).

        Returns:
            False if no revocation endpoint is configured; True if there was
            nothing to revoke or the endpoint acknowledged the revocation

        Raises:
            TokenEndpointError: If the endpoint answered with an error
        """
        kind = TokenKind(kind)
        revoke_url = self.config.endpoints.revoke_url
        if not revoke_url:
            return False

        await self._resolve_pending()
        token = self._stored_token(kind)
        if token is None:
            return True

        revoked = await self.revocation.revoke(revoke_url, token, kind)
        self._forget(kind, token)
        return revoked

    async def introspect(
        self, kind: TokenKind | str = TokenKind.ACCESS
    ) -> IntrospectionResponse | Literal[False] | None:
        """Introspect the stored token of the given kind (RFC 7662).

        Returns:
            False if no introspection endpoint is configured, None if there
            is no token of that kind, otherwise the server's response
        """
        kind = TokenKind(kind)
        introspect_url = self.config.endpoints.introspect_url
        if not introspect_url:
            return False

        await self._resolve_pending()
        token = self._stored_token(kind)
        if token is None:
            return None

        return await self.revocation.introspect(introspect_url, token, kind)

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport and isinstance(self.transport, HttpxTokenTransport):
            await self.transport.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _acquire(self) -> AccessTokenState:
        await self._resolve_pending()

        refresh_token = self._session.refresh_token
        if refresh_token:
            response = await self._refresh(refresh_token)
        else:
            response = await self._authorize()

        return await self._store(response)

    async def _resolve_pending(self) -> None:
        # Acquisition, revoke and introspect may race to resolve the same values.
        async with self._resolve_lock:
            await self._resolve_pending_values()

    async def _resolve_pending_values(self) -> None:
        session = self._session

        if session.pending_refresh_token is not None:
            pending, session.pending_refresh_token = session.pending_refresh_token, None
            refresh_token = await pending
            if refresh_token and session.refresh_token is None:
                session.refresh_token = refresh_token

        if session.pending_dpop_key is not None:
            source, session.pending_dpop_key = session.pending_dpop_key, None
            if inspect.isawaitable(source):
                source = await source
            if isinstance(source, str):
                # An algorithm name: the next cycle generates and announces the key.
                self._dpop_algorithm = source
            elif source is not None:
                session.dpop = await DPoPProofEngine.create(
                    source, self.key_provider, self._clock
                )
                session.use_imported_key = session.dpop is not None

    async def _refresh(self, refresh_token: str) -> TokenResponse:
        logger.debug("Refreshing access token")
        dpop = await self._dpop_for_cycle(fresh=False)
        grant = RefreshTokenGrant(
            refresh_token=refresh_token, scope=self.config.client.scope
        )

        try:
            return await self.executor.request_token(grant, dpop)
        except TokenEndpointError as e:
            if e.error == "invalid_grant":
                logger.warning("Refresh token was rejected, discarding it")
                self._session.refresh_token = None
            raise

    async def _authorize(self) -> TokenResponse:
        logger.debug("No refresh token, starting authorization code flow")
        dpop = await self._dpop_for_cycle(fresh=True)
        return await self.flow.run(dpop)

    async def _dpop_for_cycle(self, fresh: bool) -> DPoPProofEngine | None:
        """Pick the DPoP engine for an acquisition.

        Authorization cycles get a new key unless the caller supplied one
        that has not been used yet. Refresh cycles keep the live key, which
        the refresh token is bound to.
        """
        if not self._dpop_enabled:
            return None

        session = self._session
        if session.use_imported_key:
            session.use_imported_key = False
            return session.dpop
        if session.dpop is not None and not fresh:
            return session.dpop

        algorithm = self._dpop_algorithm or (
            session.dpop.algorithm if session.dpop is not None else DEFAULT_ALGORITHM
        )
        engine = await DPoPProofEngine.create(algorithm, self.key_provider, self._clock)
        session.dpop = engine
        if engine is not None:
            logger.info(f"Created {algorithm} DPoP keypair")
            await self.callbacks.call_dpop_keypair_created(
                engine.material, engine.export_material()
            )
        return engine

    async def _store(self, response: TokenResponse) -> AccessTokenState:
        issued_at = self._clock()
        session = self._session

        required = self.config.client.required_scopes
        granted = response.granted_scopes
        if required and granted is not None and not required <= granted:
            session.refresh_token = None
            logger.warning("Token response lacks required scopes, discarding tokens")
            raise ScopeMismatchError(required, granted)

        if response.refresh_token:
            session.refresh_token = response.refresh_token
            await self.callbacks.call_refresh_token_issued(response.refresh_token)

        if session.dpop is not None and response.token_type.lower() != "dpop":
            logger.warning(
                f"Server issued a {response.token_type} token, dropping DPoP key"
            )
            session.dpop = None

        if response.expires_in is None:
            logger.warning("Token response has no expires_in, token will not be cached")

        token = response.to_token_state(issued_at)
        session.access_token = token
        logger.info(f"Acquired {token.token_type} access token")
        return token

    def _stored_token(self, kind: TokenKind) -> str | None:
        if kind is TokenKind.REFRESH:
            return self._session.refresh_token
        token = self._session.access_token
        return token.access_token if token is not None else None

    def _forget(self, kind: TokenKind, token: str) -> None:
        if kind is TokenKind.REFRESH:
            if self._session.refresh_token == token:
                self._session.refresh_token = None
        else:
            current = self._session.access_token
            if current is not None and current.access_token == token:
                self._session.access_token = None
