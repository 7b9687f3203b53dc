"""Asymmetric key generation, JWK conversion and raw signing for DPoP.

``SigningKeyProvider`` is the seam the DPoP proof engine depends on;
``CryptographyKeyProvider`` is the default implementation built on the
``cryptography`` package, with JWK conversion done by ``joserfc``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from joserfc.errors import JoseError
from joserfc.jwk import ECKey, RSAKey

from oauth2code.models.errors import KeyGenerationError
from oauth2code.models.security import DPoPKeyMaterial, PrivateKey, PublicKey
from oauth2code.primitives.algorithms import AlgorithmSpec, get_dpop_algorithm

logger = logging.getLogger(__name__)

DEFAULT_RSA_KEY_SIZE = 4096

# Public members placed in proof headers; anything else the JWK library adds
# (kid, use) is left out.
PUBLIC_MEMBERS: dict[str, tuple[str, ...]] = {
    "EC": ("kty", "crv", "x", "y"),
    "RSA": ("kty", "n", "e"),
}


class SigningKeyProvider(Protocol):
    """Generates, converts and uses asymmetric keypairs for one algorithm."""

    def generate(self, algorithm: str) -> DPoPKeyMaterial:
        """Generate a new keypair.

        Raises:
            KeyGenerationError: If no usable keypair could be produced
        """
        ...

    def import_jwk(
        self, algorithm: str, private_jwk: Mapping[str, Any]
    ) -> DPoPKeyMaterial:
        """Rebuild a keypair from a private JWK."""
        ...

    def export_jwk(self, material: DPoPKeyMaterial) -> dict[str, Any]:
        """Export the private key (including public members) as a JWK."""
        ...

    def public_jwk(self, material: DPoPKeyMaterial) -> dict[str, Any]:
        """Export only the public members of the key as a JWK."""
        ...

    def sign(self, material: DPoPKeyMaterial, data: bytes) -> bytes:
        """Produce a JWS signature over data."""
        ...

    def verify(self, material: DPoPKeyMaterial, data: bytes, signature: bytes) -> bool:
        """Check a JWS signature produced by ``sign``."""
        ...


class CryptographyKeyProvider:
    """SigningKeyProvider backed by ``cryptography`` and ``joserfc``.

    Supports ECDSA on P-256/P-384/P-521 (ES256/384/512), RSASSA-PKCS1-v1_5
    (RS256/384/512) and RSASSA-PSS (PS256/384/512). ECDSA signatures use the
    raw ``r || s`` encoding required by JWS, not DER. Keys are generated and
    converted to and from JWK with ``joserfc``.
    """

    def __init__(self, rsa_key_size: int = DEFAULT_RSA_KEY_SIZE):
        self.rsa_key_size = rsa_key_size

    def generate(self, algorithm: str) -> DPoPKeyMaterial:
        spec = get_dpop_algorithm(algorithm)

        try:
            if spec.family == "ES":
                key = ECKey.generate_key(spec.curve_name, private=True)
            else:
                key = RSAKey.generate_key(self.rsa_key_size, private=True)
            material = self._material(algorithm, key)
        except (JoseError, ValueError, TypeError) as e:
            raise KeyGenerationError(f"Failed to generate {algorithm} key: {e}") from e

        logger.debug(f"Generated {algorithm} keypair")
        return material

    def import_jwk(
        self, algorithm: str, private_jwk: Mapping[str, Any]
    ) -> DPoPKeyMaterial:
        spec = get_dpop_algorithm(algorithm)

        try:
            return self._material(algorithm, self._import(spec, private_jwk))
        except (JoseError, KeyError, ValueError, TypeError) as e:
            raise KeyGenerationError(f"Failed to import {algorithm} key: {e}") from e

    def export_jwk(self, material: DPoPKeyMaterial) -> dict[str, Any]:
        return dict(self._to_jwk_key(material.private_key).as_dict(private=True))

    def public_jwk(self, material: DPoPKeyMaterial) -> dict[str, Any]:
        jwk = self._to_jwk_key(material.public_key).as_dict(private=False)
        return {member: jwk[member] for member in PUBLIC_MEMBERS[jwk["kty"]]}

    def sign(self, material: DPoPKeyMaterial, data: bytes) -> bytes:
        spec = get_dpop_algorithm(material.algorithm)
        private_key = material.private_key

        if spec.family == "ES":
            der = private_key.sign(data, ec.ECDSA(spec.hash()))
            r, s = decode_dss_signature(der)
            size = spec.coordinate_size
            return r.to_bytes(size, "big") + s.to_bytes(size, "big")

        return private_key.sign(data, self._rsa_padding(spec), spec.hash())

    def verify(self, material: DPoPKeyMaterial, data: bytes, signature: bytes) -> bool:
        spec = get_dpop_algorithm(material.algorithm)
        public_key = material.public_key

        try:
            if spec.family == "ES":
                size = spec.coordinate_size
                if len(signature) != 2 * size:
                    return False
                r = int.from_bytes(signature[:size], "big")
                s = int.from_bytes(signature[size:], "big")
                public_key.verify(
                    encode_dss_signature(r, s), data, ec.ECDSA(spec.hash())
                )
            else:
                public_key.verify(signature, data, self._rsa_padding(spec), spec.hash())
        except InvalidSignature:
            return False
        return True

    @staticmethod
    def _rsa_padding(spec: AlgorithmSpec) -> padding.AsymmetricPadding:
        if spec.family == "PS":
            hash_algorithm = spec.hash()
            return padding.PSS(
                mgf=padding.MGF1(hash_algorithm),
                salt_length=hash_algorithm.digest_size,
            )
        return padding.PKCS1v15()

    @staticmethod
    def _material(algorithm: str, key: ECKey | RSAKey) -> DPoPKeyMaterial:
        private_key = key.private_key
        if private_key is None:
            raise ValueError(f"{algorithm} key has no private part")
        return DPoPKeyMaterial(
            algorithm=algorithm,
            public_key=private_key.public_key(),
            private_key=private_key,
        )

    @staticmethod
    def _import(spec: AlgorithmSpec, jwk: Mapping[str, Any]) -> ECKey | RSAKey:
        if spec.family == "ES":
            if jwk.get("kty") != "EC":
                raise ValueError(f"Expected an EC key for {spec.name}")
            if jwk.get("crv") != spec.curve_name:
                raise ValueError(
                    f"{spec.name} requires curve {spec.curve_name}, got {jwk.get('crv')}"
                )
            return ECKey.import_key(dict(jwk))

        if jwk.get("kty") != "RSA":
            raise ValueError(f"Expected an RSA key for {spec.name}")
        # joserfc recovers the CRT primes when only n, e and d are given.
        return RSAKey.import_key(dict(jwk))

    @staticmethod
    def _to_jwk_key(key: PrivateKey | PublicKey) -> ECKey | RSAKey:
        if isinstance(key, (ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey)):
            pem = key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        else:
            pem = key.public_bytes(
                serialization.Encoding.PEM,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )

        if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
            return ECKey.import_key(pem)
        return RSAKey.import_key(pem)
