"""Exception hierarchy for the OAuth 2.0 code flow client.

Provides specific exception types for different failure modes to enable
precise error handling and recovery strategies.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class AuthorizationError(OAuth2Error):
    """Raised when user authorization fails."""

    pass


class AuthorizationDeniedError(AuthorizationError):
    """Raised when the prompter returned an error code or no code at all.

    Attributes:
        error_code: OAuth error code from the authorization response, or None
            if the prompter resolved without either a code or an error.
    """

    def __init__(self, error_code: str | None, description: str | None = None):
        self.error_code = error_code
        self.description = description
        message = f"Authorization denied: {error_code or 'no authorization code'}"
        if description:
            message += f" ({description})"
        super().__init__(message)


class StateValidationError(AuthorizationError):
    """Raised when OAuth state parameter validation fails.

    This indicates either a missing state parameter or a state mismatch,
    which could indicate a CSRF attack or authorization server issue.
    """

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class InvalidTokenResponseError(TokenError):
    """Raised when a successful token endpoint response is not a token."""

    pass


class ScopeMismatchError(TokenError):
    """Raised when the granted scope is narrower than the required scopes."""

    def __init__(self, required: set[str], granted: set[str]):
        self.required = required
        self.granted = granted
        missing = " ".join(sorted(required - granted))
        super().__init__(f"Granted scope is missing required scopes: {missing}")


class TransportError(OAuth2Error):
    """Raised when an endpoint could not be reached or answered with an error.

    Network failures carry no status code.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TokenEndpointError(TransportError):
    """Raised when an endpoint answered with a non-2xx status.

    Carries the structured OAuth error (RFC 6749 Section 5.2) when the body
    had one.
    """

    def __init__(
        self,
        status_code: int,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ):
        self.body = body
        self.headers = dict(headers or {})
        self.error: str | None = None
        self.error_description: str | None = None
        if isinstance(body, Mapping):
            self.error = body.get("error")
            self.error_description = body.get("error_description")

        message = f"Endpoint returned {status_code}"
        if self.error:
            message += f": {self.error}"
        if self.error_description:
            message += f" - {self.error_description}"
        super().__init__(message, status_code)


class DPoPError(OAuth2Error):
    """Raised when DPoP proof material cannot be produced."""

    pass


class UnsupportedAlgorithmError(DPoPError):
    """Raised when an algorithm cannot be used for DPoP proofs."""

    pass


class KeyGenerationError(DPoPError):
    """Raised when a signing keypair could not be generated or imported."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass
