"""DPoP (Demonstrating Proof-of-Possession) proof engine.

Implements RFC 9449 proof JWT creation and RFC 7638 JWK thumbprints for a
single signing keypair. One engine is live per DPoP session; the client
drops it when the server stops issuing DPoP-bound tokens.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Mapping
from functools import partial
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from oauth2code.models.errors import DPoPError
from oauth2code.models.security import DPoPKeyMaterial, ExportedKeyMaterial
from oauth2code.primitives.encoding import sha256_b64url
from oauth2code.primitives.jwt import SignedToken
from oauth2code.primitives.keys import CryptographyKeyProvider, SigningKeyProvider
from oauth2code.services.security import generate_jti

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "ES256"

# RFC 7638 Section 3.2: required members only, in lexicographic order.
THUMBPRINT_MEMBERS: dict[str, tuple[str, ...]] = {
    "EC": ("crv", "kty", "x", "y"),
    "RSA": ("e", "kty", "n"),
    "oct": ("k", "kty"),
}

DPoPKeySource = str | DPoPKeyMaterial | Mapping[str, Any]


def compute_thumbprint(jwk: Mapping[str, Any]) -> str:
    """Compute the SHA-256 JWK thumbprint (RFC 7638).

    Args:
        jwk: Key in JWK form; members beyond the required set are ignored

    Returns:
        Base64url-encoded SHA-256 digest without padding
    """
    kty = jwk.get("kty")
    if kty not in THUMBPRINT_MEMBERS:
        raise ValueError(f"Unsupported JWK key type: {kty}")

    canonical = {member: jwk[member] for member in THUMBPRINT_MEMBERS[kty]}
    return sha256_b64url(json.dumps(canonical, separators=(",", ":")))


def normalize_htu(uri: str) -> str:
    """Strip query and fragment from a request URI (RFC 9449 Section 4.2)."""
    parts = urlsplit(uri)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class DPoPProofEngine:
    """Owns one DPoP keypair and signs proofs with it.

    Use ``create`` rather than the constructor: it handles key generation
    and import, and degrades to None when no usable keypair can be produced.
    """

    def __init__(
        self,
        material: DPoPKeyMaterial,
        key_provider: SigningKeyProvider | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._material = material
        self._key_provider = key_provider or CryptographyKeyProvider()
        self._clock = clock
        self._public_jwk = self._key_provider.public_jwk(material)
        self._thumbprint: str | None = None

    @classmethod
    async def create(
        cls,
        source: DPoPKeySource = DEFAULT_ALGORITHM,
        key_provider: SigningKeyProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> DPoPProofEngine | None:
        """Create an engine from an algorithm name or existing key material.

        Args:
            source: JWS algorithm to generate a new key for, a
                ``DPoPKeyMaterial``, or a mapping produced by
                ``export_material``
            key_provider: Key backend, ``CryptographyKeyProvider`` by default
            clock: Source of the ``iat`` claim

        Returns:
            The engine, or None if no usable keypair could be produced
        """
        provider = key_provider or CryptographyKeyProvider()

        try:
            if isinstance(source, DPoPKeyMaterial):
                material = source
            elif isinstance(source, Mapping):
                material = provider.import_jwk(
                    source["algorithm"], source["private_key"]
                )
            else:
                # RSA key generation is slow enough to stall the event loop.
                material = await asyncio.to_thread(provider.generate, source)
        except (DPoPError, KeyError) as e:
            logger.warning(f"DPoP key unavailable, continuing without DPoP: {e}")
            return None

        if material.public_key is None or material.private_key is None:
            logger.warning("DPoP key provider returned an incomplete keypair")
            return None

        return cls(material, provider, clock)

    @property
    def algorithm(self) -> str:
        return self._material.algorithm

    @property
    def material(self) -> DPoPKeyMaterial:
        return self._material

    @property
    def public_jwk(self) -> dict[str, Any]:
        """Public members of the key, as placed in the proof header."""
        return dict(self._public_jwk)

    def proof(
        self,
        method: str,
        uri: str,
        access_token: str | None = None,
        nonce: str | None = None,
    ) -> str:
        """Build and sign a DPoP proof JWT (RFC 9449 Section 4.2).

        Args:
            method: HTTP method of the request the proof accompanies
            uri: Target URI of that request
            access_token: Access token sent with the request; bound via ``ath``
            nonce: Server-provided nonce, if one has been issued

        Returns:
            Compact serialized proof for the ``DPoP`` header
        """
        header = {
            "typ": "dpop+jwt",
            "alg": self.algorithm,
            "jwk": self.public_jwk,
        }
        payload: dict[str, Any] = {
            "jti": generate_jti(),
            "htm": method.upper(),
            "htu": normalize_htu(uri),
            "iat": int(self._clock()),
        }
        if access_token:
            payload["ath"] = sha256_b64url(access_token)
        if nonce:
            payload["nonce"] = nonce

        token = SignedToken.encode(header, payload).sign(
            partial(self._key_provider.sign, self._material)
        )
        return str(token)

    def thumbprint(self) -> str:
        """SHA-256 JWK thumbprint of the public key, computed once."""
        if self._thumbprint is None:
            self._thumbprint = compute_thumbprint(self._public_jwk)
        return self._thumbprint

    def export_material(self) -> ExportedKeyMaterial:
        """Export the keypair in a JSON-serializable form for persistence.

        The result can be passed back to ``create`` to restore the engine.
        """
        return {
            "algorithm": self.algorithm,
            "public_key": self.public_jwk,
            "private_key": self._key_provider.export_jwk(self._material),
        }

    def verify(self, proof: str) -> bool:
        """Check that a compact proof was signed by this engine's key."""
        signing_input, _, _ = proof.rpartition(".")
        token = SignedToken.decode(proof)
        if token.signature is None:
            return False
        return self._key_provider.verify(
            self._material, signing_input.encode("utf-8"), token.signature
        )
