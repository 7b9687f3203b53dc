"""PKCE (Proof Key for Code Exchange) generator.

Implements RFC 7636 code verifier generation and challenge derivation to
prevent authorization code interception attacks.
"""

from __future__ import annotations

import secrets
import string

from oauth2code.models.errors import PKCEError
from oauth2code.models.security import PKCEMethod, PKCEParameters
from oauth2code.primitives.encoding import sha256_b64url

# RFC 7636 Section 4.1 unreserved characters
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"


class PKCEManager:
    """Generates PKCE parameters for authorization code flows.

    This implementation follows RFC 7636 requirements:
    - Supports the S256 (SHA256 + base64url) and plain challenge methods
    - Generates cryptographically secure code verifiers
    """

    def __init__(self, method: PKCEMethod = "S256"):
        self.method = method

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization attempt.

        Returns:
            PKCEParameters: Immutable parameters for the authorization attempt

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = generate_code_verifier()
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=derive_code_challenge(code_verifier, self.method),
                code_challenge_method=self.method,
            )
        except ValueError as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e


def generate_code_verifier(length: int = 128) -> str:
    """Generate a cryptographically secure code verifier.

    RFC 7636 Section 4.1: code verifier must be 43-128 characters long
    and use only unreserved characters:
        [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"

    Returns:
        A code verifier, 128 characters unless told otherwise
    """
    if not (43 <= length <= 128):
        raise ValueError("code_verifier length must be 43-128")
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def derive_code_challenge(code_verifier: str, method: PKCEMethod = "S256") -> str:
    """Derive the code challenge for a verifier.

    RFC 7636 Section 4.2:
        plain: code_challenge = code_verifier
        S256:  code_challenge = BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    """
    if method == "plain":
        return code_verifier
    if method == "S256":
        return sha256_b64url(code_verifier)
    raise PKCEError(f"Unsupported code challenge method: {method}")
