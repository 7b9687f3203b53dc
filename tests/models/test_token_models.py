from oauth2code.models.flow import AuthorizationRequest, AuthorizationResult
from oauth2code.models.tokens import (
    AccessTokenState,
    AuthorizationCodeGrant,
    RefreshTokenGrant,
    TokenResponse,
)


class TestAccessTokenState:
    def test_validity_is_strict(self):
        state = AccessTokenState(access_token="t", token_type="Bearer", expires_at=100.0)
        assert state.is_valid(99.9)
        assert not state.is_valid(100.0)

    def test_authorization_header_value(self):
        state = AccessTokenState(access_token="abc", token_type="DPoP", expires_at=0)
        assert state.authorization == "DPoP abc"
        assert state.is_dpop_bound

    def test_repr_hides_token(self):
        state = AccessTokenState(access_token="secret", token_type="Bearer", expires_at=0)
        assert "secret" not in repr(state)


class TestTokenResponse:
    def test_to_token_state(self):
        # Arrange
        response = TokenResponse(access_token="a", token_type="Bearer", expires_in=60)

        # Act
        state = response.to_token_state(issued_at=1000.0)

        # Assert
        assert state.expires_at == 1060.0

    def test_missing_expires_in_expires_immediately(self):
        response = TokenResponse(access_token="a", token_type="Bearer")
        assert not response.to_token_state(issued_at=1000.0).is_valid(1000.0)

    def test_granted_scopes(self):
        assert TokenResponse(access_token="a", token_type="b").granted_scopes is None
        response = TokenResponse(access_token="a", token_type="b", scope="read  write")
        assert response.granted_scopes == {"read", "write"}

    def test_extra_members_are_kept(self):
        response = TokenResponse.model_validate(
            {"access_token": "a", "token_type": "b", "id_token": "x"}
        )
        assert response.model_extra == {"id_token": "x"}


class TestGrants:
    def test_authorization_code_grant_drops_absent_values(self):
        grant = AuthorizationCodeGrant(code="code-1")
        assert grant.to_form_data() == {
            "grant_type": "authorization_code",
            "code": "code-1",
        }

    def test_authorization_code_grant_full(self):
        grant = AuthorizationCodeGrant(
            code="code-1", redirect_uri="https://app/cb", code_verifier="v" * 43
        )
        assert grant.to_form_data() == {
            "grant_type": "authorization_code",
            "code": "code-1",
            "redirect_uri": "https://app/cb",
            "code_verifier": "v" * 43,
        }

    def test_refresh_grant(self):
        grant = RefreshTokenGrant(refresh_token="r-1", scope="read")
        assert grant.to_form_data() == {
            "grant_type": "refresh_token",
            "refresh_token": "r-1",
            "scope": "read",
        }


class TestAuthorizationRequest:
    def test_minimal_query(self):
        request = AuthorizationRequest(
            authorization_endpoint="https://auth.example.com/authorize",
            client_id="client",
            state="xyz",
        )
        assert request.to_query_params() == {
            "client_id": "client",
            "response_type": "code",
            "response_mode": "fragment",
            "state": "xyz",
        }

    def test_existing_endpoint_query_is_kept(self):
        request = AuthorizationRequest(
            authorization_endpoint="https://auth.example.com/authorize?tenant=acme",
            client_id="client",
            state="xyz",
        )
        url = request.build_authorization_url()
        assert url.startswith("https://auth.example.com/authorize?tenant=acme&")
        assert "state=xyz" in url


class TestAuthorizationResult:
    def test_success_and_error(self):
        assert AuthorizationResult(authorization_code="c").is_success()
        error = AuthorizationResult(error_code="access_denied")
        assert error.is_error()
        assert not error.is_success()
        empty = AuthorizationResult()
        assert not empty.is_success()
        assert not empty.is_error()
