"""User authorization step for the authorization code flow.

The client hands an authorization URL and its ``state`` to an
``AuthorizationPrompter`` and waits for the outcome. How the user reaches
the URL (browser, embedded view, copy and paste) is up to the prompter.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol
from urllib.parse import parse_qs, urlsplit

from oauth2code.models.errors import AuthorizationError
from oauth2code.models.flow import AuthorizationResult
from oauth2code.services.security import validate_state

logger = logging.getLogger(__name__)


class AuthorizationPrompter(Protocol):
    """Protocol for handling the user authorization step."""

    async def open(self, url: str, state: str) -> AuthorizationResult:
        """Send the user to the authorization URL and wait for the outcome.

        Args:
            url: Authorization request URL
            state: Correlation value carried in the URL

        Returns:
            The authorization code, or the error code the server returned
        """
        ...


def parse_authorization_response(callback_url: str) -> dict[str, str]:
    """Extract response parameters from a redirect URL.

    Reads the fragment (``response_mode=fragment``) and falls back to the
    query string.

    Raises:
        AuthorizationError: If the URL carries no response parameters
    """
    parts = urlsplit(callback_url)
    raw = parts.fragment or parts.query
    if not raw:
        raise AuthorizationError("Callback URL carries no authorization response")

    params = parse_qs(raw, keep_blank_values=True)
    return {key: values[0] for key, values in params.items() if values}


class CallbackUrlPrompter:
    """Prompter that delegates to a callback returning the redirect URL.

    Suitable for CLI tools and custom integrations: the callback shows the
    URL to the user (or opens a browser) and returns the URL the
    authorization server redirected to. The response ``state`` must match.
    """

    def __init__(self, callback_handler: Callable[[str], Awaitable[str]]):
        """Initialize the prompter.

        Args:
            callback_handler: Async function called with the authorization
                URL; returns the redirect URL
        """
        self.callback_handler = callback_handler

    async def open(self, url: str, state: str) -> AuthorizationResult:
        callback_url = await self.callback_handler(url)
        params = parse_authorization_response(callback_url)

        validate_state(state, params.get("state"))

        result = AuthorizationResult(
            authorization_code=params.get("code") or None,
            error_code=params.get("error") or None,
            error_description=params.get("error_description"),
        )
        if result.is_error():
            logger.warning(f"Authorization response contained error: {result.error_code}")
        return result
