"""JWS algorithm table for DPoP proof signing.

Maps JWS algorithm names (RFC 7518 Section 3.1) onto the signature scheme,
hash and key parameters needed to generate keys and sign proofs. HMAC
algorithms are listed for completeness but rejected for DPoP, which
requires an asymmetric proof.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, get_args

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from oauth2code.models.errors import UnsupportedAlgorithmError

JWTAlgorithm = Literal[
    "HS256",
    "HS384",
    "HS512",
    "RS256",
    "RS384",
    "RS512",
    "PS256",
    "PS384",
    "PS512",
    "ES256",
    "ES384",
    "ES512",
]

DPoPAlgorithm = Literal[
    "RS256",
    "RS384",
    "RS512",
    "PS256",
    "PS384",
    "PS512",
    "ES256",
    "ES384",
    "ES512",
]

DPOP_ALGORITHMS: frozenset[str] = frozenset(get_args(DPoPAlgorithm))

_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "256": hashes.SHA256,
    "384": hashes.SHA384,
    "512": hashes.SHA512,
}

# ES512 uses P-521, not P-512.
_CURVES: dict[str, tuple[str, type[ec.EllipticCurve], int]] = {
    "256": ("P-256", ec.SECP256R1, 32),
    "384": ("P-384", ec.SECP384R1, 48),
    "512": ("P-521", ec.SECP521R1, 66),
}


@dataclass(frozen=True)
class AlgorithmSpec:
    """Signing parameters for one JWS algorithm."""

    name: str
    family: Literal["RS", "PS", "ES", "HS"]
    hash_bits: str

    def hash(self) -> hashes.HashAlgorithm:
        return _HASHES[self.hash_bits]()

    @property
    def is_asymmetric(self) -> bool:
        return self.family != "HS"

    @property
    def curve_name(self) -> str:
        return _CURVES[self.hash_bits][0]

    def curve(self) -> ec.EllipticCurve:
        return _CURVES[self.hash_bits][1]()

    @property
    def coordinate_size(self) -> int:
        """Byte length of one EC coordinate (and of r, s in a signature)."""
        return _CURVES[self.hash_bits][2]


def get_algorithm(name: str) -> AlgorithmSpec:
    """Look up a JWS algorithm by name.

    Raises:
        UnsupportedAlgorithmError: If the name is not a known JWS algorithm
    """
    if name not in get_args(JWTAlgorithm):
        raise UnsupportedAlgorithmError(f"Unknown JWS algorithm: {name}")
    return AlgorithmSpec(name=name, family=name[:2], hash_bits=name[2:])


def get_dpop_algorithm(name: str) -> AlgorithmSpec:
    """Look up an algorithm and ensure it is usable for DPoP proofs."""
    spec = get_algorithm(name)
    if not spec.is_asymmetric:
        raise UnsupportedAlgorithmError(
            f"{name} is symmetric; DPoP requires an asymmetric algorithm"
        )
    return spec


def curve_algorithm(curve_name: str) -> str:
    """Return the ES algorithm matching a JWK ``crv`` value."""
    for bits, (crv, _, _) in _CURVES.items():
        if crv == curve_name:
            return f"ES{bits}"
    raise UnsupportedAlgorithmError(f"Unsupported curve: {curve_name}")
