import logging
from typing import Any, Awaitable, Callable

from oauth2code.models.security import DPoPKeyMaterial

logger = logging.getLogger(__name__)


class CallbackManager:
    """Manages event callbacks for token lifecycle changes."""

    def __init__(self):
        self._refresh_token_issued: Callable[[str], Awaitable[None]] | None = None
        self._dpop_keypair_created: (
            Callable[[DPoPKeyMaterial, dict[str, Any]], Awaitable[None]] | None
        ) = None

    def on_refresh_token_issued(self, callback: Callable[[str], Awaitable[None]]) -> None:
        """Register your callback for when the server issues a refresh token.

        Use it to persist the refresh token; pass it back to a new client as
        ``refresh_token`` to skip the authorization step after a restart.

        Args:
            callback: Your async function called with the new refresh token.
        """
        self._refresh_token_issued = callback

    async def call_refresh_token_issued(self, refresh_token: str) -> None:
        """Invoke your registered refresh token callback."""
        if self._refresh_token_issued:
            try:
                await self._refresh_token_issued(refresh_token)
            except Exception:
                logger.exception("Refresh token callback failed")

    def on_dpop_keypair_created(
        self, callback: Callable[[DPoPKeyMaterial, dict[str, Any]], Awaitable[None]]
    ) -> None:
        """Register your callback for when a new DPoP keypair is generated.

        Your callback receives the key material and its exported, JSON
        serializable form. Pass either back to a new client as ``dpop_key``
        to keep DPoP-bound refresh tokens usable after a restart.

        Args:
            callback: Your async function called with the material and export.
        """
        self._dpop_keypair_created = callback

    async def call_dpop_keypair_created(
        self, material: DPoPKeyMaterial, exported: dict[str, Any]
    ) -> None:
        """Invoke your registered DPoP keypair callback."""
        if self._dpop_keypair_created:
            try:
                await self._dpop_keypair_created(material, exported)
            except Exception:
                logger.exception("DPoP keypair callback failed")
