"""
Artifact signing.

Signs artifact bytes with a secp256k1 private key so the upload endpoint can
verify who produced them. Signatures use deterministic nonces (RFC 6979), so
identical bytes always yield the identical signature.
"""

from typing import Protocol

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec


class Signer(Protocol):
    """Anything that signs a byte string."""

    def sign(self, data: bytes) -> bytes:
        ...


class EcdsaSigner:
    """
    ECDSA secp256k1 signer over a SHA-256 digest.

    Args:
        private_key_hex: 32 byte private key as hex, with or without 0x prefix
    """

    def __init__(self, private_key_hex: str):
        key = private_key_hex.strip()
        if key.startswith(("0x", "0X")):
            key = key[2:]
        try:
            secret = int(key, 16)
        except ValueError:
            raise ValueError("private key must be hex encoded")
        if len(key) != 64 or secret == 0:
            raise ValueError("private key must be 32 bytes")

        self._key = ec.derive_private_key(secret, ec.SECP256K1())
        try:
            self._algorithm = ec.ECDSA(hashes.SHA256(), deterministic_signing=True)
        except (TypeError, UnsupportedAlgorithm) as e:
            raise ValueError(f"deterministic ECDSA is not available: {e}")

    def sign(self, data: bytes) -> bytes:
        """Return the DER encoded signature of data."""
        return self._key.sign(data, self._algorithm)

    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self._key.public_key()
