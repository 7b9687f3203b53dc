"""Compact JWS serialization for DPoP proofs and other JWT-shaped tokens.

A token is three base64url segments (header JSON, payload JSON, signature)
joined by ``.``. The signing input is exactly the bytes before the final
``.``. An unsigned token renders with an empty third segment.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from oauth2code.primitives.encoding import b64url_decode, b64url_encode


def _to_json(value: dict[str, Any]) -> str:
    return json.dumps(value, separators=(",", ":"))


@dataclass(frozen=True)
class SignedToken:
    header: dict[str, Any]
    payload: dict[str, Any]
    signature: bytes | None = field(default=None, repr=False)

    @classmethod
    def encode(cls, header: dict[str, Any], payload: dict[str, Any]) -> SignedToken:
        """Create an unsigned token."""
        return cls(header=dict(header), payload=dict(payload))

    @classmethod
    def decode(cls, compact: str) -> SignedToken:
        """Parse a compact token without verifying its signature."""
        parts = compact.split(".")
        if len(parts) != 3:
            raise ValueError("Compact token must have exactly three segments")

        header_b64, payload_b64, signature_b64 = parts
        try:
            header = json.loads(b64url_decode(header_b64))
            payload = json.loads(b64url_decode(payload_b64))
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"Malformed compact token: {e}") from e

        signature = b64url_decode(signature_b64) if signature_b64 else None
        return cls(header=header, payload=payload, signature=signature)

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    @property
    def signing_input(self) -> bytes:
        header_b64 = b64url_encode(_to_json(self.header))
        payload_b64 = b64url_encode(_to_json(self.payload))
        return f"{header_b64}.{payload_b64}".encode("utf-8")

    def sign(self, signer: Callable[[bytes], bytes]) -> SignedToken:
        """Return a signed copy of this token.

        Args:
            signer: Produces the JWS signature for the signing input

        Raises:
            ValueError: If the token is already signed
        """
        if self.is_signed:
            raise ValueError("Token is already signed")
        return SignedToken(
            header=self.header,
            payload=self.payload,
            signature=signer(self.signing_input),
        )

    def __str__(self) -> str:
        signature = b64url_encode(self.signature) if self.signature else ""
        return f"{self.signing_input.decode('utf-8')}.{signature}"
