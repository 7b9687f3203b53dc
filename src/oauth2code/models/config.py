"""Immutable configuration for an OAuth 2.0 authorization code client.

Configuration is fixed for the lifetime of a client instance. Derived and
rotating values (the normalized PKCE mode aside) live in the client's
session state instead.
"""

from __future__ import annotations

import base64
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oauth2code.models.security import PKCEMethod
from oauth2code.primitives.algorithms import DPOP_ALGORITHMS


class ClientCredentials(BaseModel):
    """OAuth 2.0 client identity.

    Scopes keep their configured order for the ``scope`` parameter and are
    compared as a set when validating a token response.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    secret: str | None = None  # None for public clients
    redirect_uri: str | None = None
    scopes: tuple[str, ...] | None = None

    @field_validator("scopes")
    @classmethod
    def dedupe_scopes(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if v is None:
            return None
        return tuple(dict.fromkeys(s for s in v if s))

    @property
    def scope(self) -> str | None:
        """Space-joined scopes, or None when no scopes are configured."""
        if not self.scopes:
            return None
        return " ".join(self.scopes)

    @property
    def required_scopes(self) -> set[str]:
        return set(self.scopes or ())

    def basic_authorization(self) -> str:
        """HTTP Basic client authentication (RFC 6749 Section 2.3.1).

        Public clients send an empty secret.
        """
        user = quote(self.id, safe="")
        password = quote(self.secret or "", safe="")
        encoded = base64.b64encode(f"{user}:{password}".encode("utf-8"))
        return f"Basic {encoded.decode('ascii')}"


class EndpointSet(BaseModel):
    """Authorization server endpoints."""

    model_config = ConfigDict(frozen=True)

    authorization_url: str
    token_url: str
    introspect_url: str | None = None
    revoke_url: str | None = None


class OAuth2CodeConfig(BaseModel):
    """Complete configuration for ``OAuth2CodeClient``.

    ``pkce=True`` is shorthand for ``"S256"``; the normalized value is what
    the client reads. ``dpop_algorithm`` enables DPoP token binding with a
    freshly generated key of that algorithm.
    """

    model_config = ConfigDict(frozen=True)

    client: ClientCredentials
    endpoints: EndpointSet
    pkce: PKCEMethod | None = None
    dpop_algorithm: str | None = None

    # Start with the acquisition gate closed until end_wait() is called.
    waiting_start: bool = False

    # None retries DPoP nonce challenges for as long as the server sends them.
    max_nonce_retries: int | None = Field(default=3, ge=0)

    rsa_key_size: int = Field(default=4096, ge=2048)
    timeout: float = 30.0

    @field_validator("pkce", mode="before")
    @classmethod
    def normalize_pkce(cls, v: object) -> object:
        if v is True:
            return "S256"
        if v is False:
            return None
        return v

    @field_validator("dpop_algorithm")
    @classmethod
    def validate_dpop_algorithm(cls, v: str | None) -> str | None:
        if v is not None and v not in DPOP_ALGORITHMS:
            raise ValueError(
                f"DPoP requires an asymmetric JWS algorithm, got {v!r}"
            )
        return v
