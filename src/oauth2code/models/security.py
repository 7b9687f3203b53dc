"""Security-related models for OAuth 2.0 code flows.

Contains PKCE parameters and DPoP key material.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from cryptography.hazmat.primitives.asymmetric import ec, rsa

PKCEMethod = Literal["S256", "plain"]

PrivateKey = ec.EllipticCurvePrivateKey | rsa.RSAPrivateKey
PublicKey = ec.EllipticCurvePublicKey | rsa.RSAPublicKey


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters (RFC 7636).

    Generated fresh for each authorization attempt. The verifier is
    single-use and discarded after the code exchange.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: PKCEMethod = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
        if self.code_challenge_method not in ("S256", "plain"):
            raise ValueError(
                f"Unsupported code challenge method: {self.code_challenge_method}"
            )


@dataclass(frozen=True)
class DPoPKeyMaterial:
    """Asymmetric signing keypair tagged with its JWS algorithm.

    Owned by a DPoP proof engine. Use ``DPoPProofEngine.export_material`` to
    obtain a JSON-serializable form suitable for persistence.
    """

    algorithm: str
    public_key: PublicKey = field(repr=False)
    private_key: PrivateKey = field(repr=False)


ExportedKeyMaterial = dict[str, Any]
