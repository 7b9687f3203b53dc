import asyncio
from dataclasses import dataclass
from typing import Any

from oauth2code.models.config import ClientCredentials, EndpointSet, OAuth2CodeConfig
from oauth2code.models.flow import AuthorizationResult
from oauth2code.primitives.jwt import SignedToken
from oauth2code.transport import TransportResponse

TOKEN_URL = "https://auth.example.com/token"
AUTHORIZATION_URL = "https://auth.example.com/authorize"
REVOKE_URL = "https://auth.example.com/revoke"
INTROSPECT_URL = "https://auth.example.com/introspect"


@dataclass
class PostCall:
    url: str
    form: dict[str, str]
    headers: dict[str, str]

    @property
    def proof(self) -> SignedToken | None:
        proof = self.headers.get("DPoP")
        return SignedToken.decode(proof) if proof else None


class StubTransport:
    """TokenTransport that replays queued responses and records requests."""

    def __init__(self, *responses: TransportResponse):
        self.responses = list(responses)
        self.calls: list[PostCall] = []
        self.delay: float = 0.0

    def queue(self, *responses: TransportResponse) -> None:
        self.responses.extend(responses)

    async def post(self, url, form, headers) -> TransportResponse:
        self.calls.append(PostCall(url, dict(form), dict(headers)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.responses:
            raise AssertionError(f"Unexpected request to {url}")
        return self.responses.pop(0)


class StubPrompter:
    """AuthorizationPrompter returning a fixed result."""

    def __init__(
        self,
        authorization_code: str | None = "auth-code-123",
        error_code: str | None = None,
        delay: float = 0.0,
    ):
        self.result = AuthorizationResult(
            authorization_code=authorization_code, error_code=error_code
        )
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def open(self, url: str, state: str) -> AuthorizationResult:
        self.calls.append((url, state))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def token_success(
    access_token: str = "access-token-1",
    token_type: str = "Bearer",
    expires_in: int | None = 3600,
    **extra: Any,
) -> TransportResponse:
    body = {"access_token": access_token, "token_type": token_type, **extra}
    if expires_in is not None:
        body["expires_in"] = expires_in
    return TransportResponse(status_code=200, body=body)


def token_error(
    error: str, status_code: int = 400, headers: dict[str, str] | None = None
) -> TransportResponse:
    return TransportResponse(
        status_code=status_code, body={"error": error}, headers=headers or {}
    )


def nonce_challenge(nonce: str) -> TransportResponse:
    return token_error("use_dpop_nonce", headers={"DPoP-Nonce": nonce})


def make_config(
    scopes: tuple[str, ...] | None = None,
    revoke_url: str | None = None,
    introspect_url: str | None = None,
    **overrides: Any,
) -> OAuth2CodeConfig:
    return OAuth2CodeConfig(
        client=ClientCredentials(
            id="client-456",
            secret="s3cret",
            redirect_uri="https://myapp.com/callback",
            scopes=scopes,
        ),
        endpoints=EndpointSet(
            authorization_url=AUTHORIZATION_URL,
            token_url=TOKEN_URL,
            revoke_url=revoke_url,
            introspect_url=introspect_url,
        ),
        **overrides,
    )
