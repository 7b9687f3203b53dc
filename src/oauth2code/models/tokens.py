"""Token state and token endpoint models.

Contains the cached access token state, token endpoint request/response
models, and the client's mutable session state.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from oauth2code.services.dpop import DPoPKeySource, DPoPProofEngine


class TokenKind(str, Enum):
    """Token kinds accepted by revocation and introspection.

    Values double as the RFC 7009 ``token_type_hint``.
    """

    ACCESS = "access_token"
    REFRESH = "refresh_token"


@dataclass(frozen=True)
class AccessTokenState:
    """Cached access token.

    Immutable: the client replaces the whole object on each acquisition, so
    readers never observe a half-updated token.
    """

    access_token: str = field(repr=False)
    token_type: str
    expires_at: float  # Unix timestamp

    def is_valid(self, now: float) -> bool:
        return self.expires_at > now

    @property
    def authorization(self) -> str:
        """Value for the HTTP Authorization header."""
        return f"{self.token_type} {self.access_token}"

    @property
    def is_dpop_bound(self) -> bool:
        return self.token_type.lower() == "dpop"


class TokenResponse(BaseModel):
    """OAuth 2.0 successful token response (RFC 6749 Section 5.1)."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: str
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    @property
    def granted_scopes(self) -> set[str] | None:
        """Granted scopes, or None if the server omitted ``scope``."""
        if self.scope is None:
            return None
        return set(self.scope.split())

    def to_token_state(self, issued_at: float) -> AccessTokenState:
        """Build the cached token state relative to the response time."""
        return AccessTokenState(
            access_token=self.access_token,
            token_type=self.token_type,
            expires_at=issued_at + (self.expires_in or 0),
        )


class IntrospectionResponse(BaseModel):
    """OAuth 2.0 token introspection response (RFC 7662 Section 2.2).

    Server-specific members are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    active: bool
    scope: str | None = None
    client_id: str | None = None
    username: str | None = None
    token_type: str | None = None
    exp: int | None = None
    iat: int | None = None
    sub: str | None = None


def _form(data: Mapping[str, str | None]) -> dict[str, str]:
    # Absent and empty parameters are never sent.
    return {key: value for key, value in data.items() if value}


@dataclass(frozen=True)
class AuthorizationCodeGrant:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3)."""

    code: str = field(repr=False)
    redirect_uri: str | None = None
    code_verifier: str | None = field(default=None, repr=False)  # RFC 7636

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        return _form(
            {
                "grant_type": self.grant_type,
                "code": self.code,
                "redirect_uri": self.redirect_uri,
                "code_verifier": self.code_verifier,
            }
        )


@dataclass(frozen=True)
class RefreshTokenGrant:
    """Refresh token request parameters (RFC 6749 Section 6)."""

    refresh_token: str = field(repr=False)
    scope: str | None = None

    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        return _form(
            {
                "grant_type": self.grant_type,
                "refresh_token": self.refresh_token,
                "scope": self.scope,
            }
        )


@dataclass
class SessionState:
    """Mutable state owned by one client instance.

    Only the serialized acquisition path writes to it.
    """

    access_token: AccessTokenState | None = None
    refresh_token: str | None = field(default=None, repr=False)
    dpop: DPoPProofEngine | None = None

    # Values supplied at construction that are resolved inside the gate.
    pending_refresh_token: Awaitable[str | None] | None = field(
        default=None, repr=False
    )
    pending_dpop_key: (
        DPoPKeySource | Awaitable[DPoPKeySource | None] | None
    ) = field(default=None, repr=False)

    # Imported key material that the next authorization cycle should use
    # instead of generating a key.
    use_imported_key: bool = False
