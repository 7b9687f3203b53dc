"""Security utilities for OAuth 2.0 flows.

Provides cryptographically secure parameter generation and validation
for the state parameter and DPoP proof identifiers.
"""

from __future__ import annotations

import secrets
import string

from oauth2code.models.errors import StateValidationError

_URL_SAFE_ALPHABET = string.ascii_letters + string.digits + "-_"


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    The state parameter correlates the authorization response with the
    request that produced it and protects against CSRF.

    Returns:
        Cryptographically secure random state string (32 characters)
    """
    return "".join(secrets.choice(_URL_SAFE_ALPHABET) for _ in range(32))


def generate_jti(length: int = 21) -> str:
    """Generate a unique identifier for a DPoP proof (RFC 9449 ``jti``)."""
    return "".join(secrets.choice(_URL_SAFE_ALPHABET) for _ in range(length))


def validate_state(expected: str, actual: str | None) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State parameter from original authorization request
        actual: State parameter from the authorization response

    Raises:
        StateValidationError: If state parameters don't match
    """
    if actual is None:
        raise StateValidationError("Authorization response missing state parameter")
    if not secrets.compare_digest(expected, actual):
        raise StateValidationError("State parameter mismatch - possible CSRF attack")
