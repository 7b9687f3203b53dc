import hashlib
from unittest.mock import MagicMock

import pytest

from oauth2code.models.errors import KeyGenerationError
from oauth2code.primitives.encoding import b64url_encode
from oauth2code.primitives.jwt import SignedToken
from oauth2code.primitives.keys import CryptographyKeyProvider
from oauth2code.services.dpop import DPoPProofEngine, compute_thumbprint, normalize_htu
from tests.helpers import TOKEN_URL, FakeClock


class TestDPoPProof:
    async def setup_engine(self, algorithm: str = "ES256") -> DPoPProofEngine:
        self.clock = FakeClock()
        engine = await DPoPProofEngine.create(
            algorithm, CryptographyKeyProvider(rsa_key_size=2048), self.clock
        )
        assert engine is not None
        return engine

    async def test_proof_header_and_claims(self):
        # Arrange
        engine = await self.setup_engine()

        # Act
        proof = SignedToken.decode(engine.proof("post", TOKEN_URL))

        # Assert
        assert proof.header == {
            "typ": "dpop+jwt",
            "alg": "ES256",
            "jwk": engine.public_jwk,
        }
        assert "d" not in proof.header["jwk"]
        assert proof.payload["htm"] == "POST"
        assert proof.payload["htu"] == TOKEN_URL
        assert proof.payload["iat"] == int(self.clock.now)
        assert len(proof.payload["jti"]) >= 16
        assert "ath" not in proof.payload
        assert "nonce" not in proof.payload

    async def test_access_token_hash_and_nonce(self):
        # Arrange
        engine = await self.setup_engine()
        expected_ath = b64url_encode(hashlib.sha256(b"access-token-1").digest())

        # Act
        proof = SignedToken.decode(
            engine.proof(
                "GET",
                "https://api.example.com/me?x=1#frag",
                access_token="access-token-1",
                nonce="n-1",
            )
        )

        # Assert
        assert proof.payload["ath"] == expected_ath
        assert proof.payload["nonce"] == "n-1"
        assert proof.payload["htu"] == "https://api.example.com/me"

    async def test_each_proof_has_a_new_jti(self):
        engine = await self.setup_engine()
        first = SignedToken.decode(engine.proof("POST", TOKEN_URL))
        second = SignedToken.decode(engine.proof("POST", TOKEN_URL))
        assert first.payload["jti"] != second.payload["jti"]

    @pytest.mark.parametrize("algorithm", ["ES256", "ES384", "PS256"])
    async def test_signature_verifies(self, algorithm):
        # Arrange
        engine = await self.setup_engine(algorithm)

        # Act
        proof = engine.proof("POST", TOKEN_URL)

        # Assert
        assert engine.verify(proof)
        other = engine.proof("GET", TOKEN_URL)
        signing_input = proof.rpartition(".")[0]
        assert not engine.verify(f"{signing_input}.{other.rpartition('.')[2]}")


class TestThumbprint:
    def test_uses_required_members_in_lexicographic_order(self):
        # Arrange - extra members must be ignored
        jwk = {"y": "Y", "x": "X", "kty": "EC", "crv": "P-256", "kid": "k", "alg": "ES256"}
        canonical = b'{"crv":"P-256","kty":"EC","x":"X","y":"Y"}'

        # Act & Assert
        expected = b64url_encode(hashlib.sha256(canonical).digest())
        assert compute_thumbprint(jwk) == expected

    def test_rsa_members(self):
        canonical = b'{"e":"AQAB","kty":"RSA","n":"abc"}'
        expected = b64url_encode(hashlib.sha256(canonical).digest())
        assert compute_thumbprint({"kty": "RSA", "n": "abc", "e": "AQAB"}) == expected

    def test_unknown_key_type(self):
        with pytest.raises(ValueError):
            compute_thumbprint({"kty": "OKP", "x": "X"})

    async def test_engine_thumbprint_is_stable(self):
        # Arrange
        engine = await DPoPProofEngine.create("ES256")

        # Act
        first = engine.thumbprint()
        second = engine.thumbprint()

        # Assert
        assert first == second == compute_thumbprint(engine.public_jwk)


class TestKeyMaterial:
    async def test_export_and_restore_preserves_thumbprint(self):
        # Arrange
        engine = await DPoPProofEngine.create("ES384")
        exported = engine.export_material()

        # Act
        restored = await DPoPProofEngine.create(exported)

        # Assert
        assert exported["algorithm"] == "ES384"
        assert exported["public_key"] == engine.public_jwk
        assert restored.thumbprint() == engine.thumbprint()
        assert engine.verify(restored.proof("POST", TOKEN_URL))

    async def test_create_from_key_material(self):
        material = CryptographyKeyProvider().generate("ES256")
        engine = await DPoPProofEngine.create(material)
        assert engine.material is material

    async def test_create_returns_none_when_generation_fails(self):
        # Arrange
        provider = MagicMock()
        provider.generate.side_effect = KeyGenerationError("no entropy")

        # Act
        engine = await DPoPProofEngine.create("ES256", provider)

        # Assert
        assert engine is None

    @pytest.mark.parametrize(
        "source",
        ["HS256", {"algorithm": "HS256", "private_key": {"kty": "oct", "k": "c2VjcmV0"}}],
    )
    async def test_create_returns_none_for_unusable_algorithm(self, source):
        assert await DPoPProofEngine.create(source) is None

    async def test_create_returns_none_for_incomplete_export(self):
        assert await DPoPProofEngine.create({"algorithm": "ES256"}) is None


@pytest.mark.parametrize(
    "uri,expected",
    [
        ("https://a.example.com/token", "https://a.example.com/token"),
        ("https://a.example.com/token?x=1", "https://a.example.com/token"),
        ("https://a.example.com/p#frag", "https://a.example.com/p"),
    ],
)
def test_normalize_htu(uri, expected):
    assert normalize_htu(uri) == expected
