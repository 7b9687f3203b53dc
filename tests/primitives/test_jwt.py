import base64
import json

import pytest

from oauth2code.primitives.encoding import b64url_decode, b64url_encode
from oauth2code.primitives.jwt import SignedToken


class TestSignedTokenEncoding:
    def setup_method(self):
        self.header = {"typ": "dpop+jwt", "alg": "ES256"}
        self.payload = {"htm": "POST", "htu": "https://auth.example.com/token"}

    def test_unsigned_token_has_empty_signature_segment(self):
        # Act
        compact = str(SignedToken.encode(self.header, self.payload))

        # Assert
        header_b64, payload_b64, signature_b64 = compact.split(".")
        assert signature_b64 == ""
        assert json.loads(b64url_decode(header_b64)) == self.header
        assert json.loads(b64url_decode(payload_b64)) == self.payload

    def test_segments_have_no_padding(self):
        # Arrange - lengths that would need padding in standard base64
        token = SignedToken.encode({"a": "b"}, {"c": "dd"})

        # Act
        compact = str(token.sign(lambda data: b"\x01\x02"))

        # Assert
        assert "=" not in compact
        assert "+" not in compact and "/" not in compact

    def test_signer_receives_exact_signing_input(self):
        # Arrange
        seen = []

        def signer(data: bytes) -> bytes:
            seen.append(data)
            return b"signature-bytes"

        # Act
        compact = str(SignedToken.encode(self.header, self.payload).sign(signer))

        # Assert - the signed bytes are everything before the final "."
        signing_input, _, signature_b64 = compact.rpartition(".")
        assert seen == [signing_input.encode("utf-8")]
        assert b64url_decode(signature_b64) == b"signature-bytes"

    def test_sign_returns_new_token_and_leaves_original_unsigned(self):
        # Arrange
        token = SignedToken.encode(self.header, self.payload)

        # Act
        signed = token.sign(lambda data: b"sig")

        # Assert
        assert not token.is_signed
        assert signed.is_signed
        with pytest.raises(ValueError):
            signed.sign(lambda data: b"again")

    def test_decode_parses_compact_token(self):
        # Arrange
        compact = str(SignedToken.encode(self.header, self.payload).sign(lambda d: b"x"))

        # Act
        decoded = SignedToken.decode(compact)

        # Assert
        assert decoded.header == self.header
        assert decoded.payload == self.payload
        assert decoded.signature == b"x"

    @pytest.mark.parametrize("compact", ["only.two", "a.b.c.d", "!!!.e30."])
    def test_decode_rejects_malformed_tokens(self, compact):
        with pytest.raises(ValueError):
            SignedToken.decode(compact)


class TestBase64Url:
    def test_encode_matches_urlsafe_base64_without_padding(self):
        data = b"\xfb\xff\xfe"
        assert b64url_encode(data) == base64.urlsafe_b64encode(data).decode().rstrip("=")

    def test_decode_restores_padding(self):
        assert b64url_decode(b64url_encode(b"ab")) == b"ab"
