"""Authorization flow models.

Contains models for authorization requests and prompter results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters (RFC 6749 Section 4.1.1)."""

    authorization_endpoint: str
    client_id: str
    state: str
    redirect_uri: str | None = None
    scope: str | None = None
    code_challenge: str | None = None  # RFC 7636
    code_challenge_method: str | None = None
    dpop_jkt: str | None = None  # RFC 9449 Section 10
    response_mode: str = "fragment"

    def to_query_params(self) -> dict[str, str]:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "response_mode": self.response_mode,
            "state": self.state,
        }

        if self.scope:
            params["scope"] = self.scope
        if self.redirect_uri:
            params["redirect_uri"] = self.redirect_uri
        if self.code_challenge:
            params["code_challenge"] = self.code_challenge
            params["code_challenge_method"] = self.code_challenge_method or "S256"
        if self.dpop_jkt:
            params["dpop_jkt"] = self.dpop_jkt

        return params

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL.

        Query parameters already present on the endpoint are kept unless
        overridden.
        """
        parts = urlsplit(self.authorization_endpoint)
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        query.update(self.to_query_params())
        return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of the user authorization step."""

    authorization_code: str | None = field(default=None, repr=False)
    error_code: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        return self.error_code is None and self.authorization_code is not None

    def is_error(self) -> bool:
        return self.error_code is not None
