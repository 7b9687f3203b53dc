import pytest

from oauth2code.models.errors import TokenEndpointError, TokenError
from oauth2code.models.tokens import TokenKind
from oauth2code.services.revocation import TokenRevocationService
from oauth2code.transport import TransportResponse
from tests.helpers import INTROSPECT_URL, REVOKE_URL, StubTransport, make_config, token_error


class TestTokenRevocationService:
    def setup_method(self):
        self.transport = StubTransport()
        self.service = TokenRevocationService(make_config().client, self.transport)

    async def test_revoke_posts_token_with_type_hint(self):
        # Arrange
        self.transport.queue(TransportResponse(status_code=200))

        # Act
        revoked = await self.service.revoke(REVOKE_URL, "refresh-1", TokenKind.REFRESH)

        # Assert
        assert revoked is True
        (call,) = self.transport.calls
        assert call.url == REVOKE_URL
        assert call.form == {"token": "refresh-1", "token_type_hint": "refresh_token"}
        assert call.headers["Authorization"].startswith("Basic ")

    async def test_revoke_error_raises(self):
        self.transport.queue(token_error("unsupported_token_type"))

        with pytest.raises(TokenEndpointError) as exc_info:
            await self.service.revoke(REVOKE_URL, "t", TokenKind.ACCESS)

        assert exc_info.value.error == "unsupported_token_type"

    async def test_introspect_parses_response(self):
        # Arrange
        self.transport.queue(
            TransportResponse(
                status_code=200,
                body={"active": True, "scope": "read", "exp": 1700003600, "acr": "1"},
            )
        )

        # Act
        result = await self.service.introspect(INTROSPECT_URL, "access-1", TokenKind.ACCESS)

        # Assert
        assert result.active is True
        assert result.scope == "read"
        assert result.model_extra == {"acr": "1"}
        assert self.transport.calls[0].form["token_type_hint"] == "access_token"

    async def test_introspect_rejects_invalid_body(self):
        self.transport.queue(TransportResponse(status_code=200, body={"scope": "read"}))

        with pytest.raises(TokenError):
            await self.service.introspect(INTROSPECT_URL, "t", TokenKind.ACCESS)
