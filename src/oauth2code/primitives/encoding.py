"""Base64url and digest helpers shared by PKCE, JWT and DPoP code."""

from __future__ import annotations

import base64
import hashlib


def b64url_encode(data: bytes | str) -> str:
    """Base64url-encode without padding (RFC 7515 Section 2)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(data: str) -> bytes:
    """Decode unpadded base64url."""
    padding = -len(data) % 4
    return base64.urlsafe_b64decode(data + "=" * padding)


def sha256_b64url(value: str) -> str:
    """BASE64URL(SHA256(value)), as used by S256 PKCE, ``ath`` and thumbprints."""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return b64url_encode(digest)

