"""RSA public key reconstruction and challenge signature verification.

The card exports its public key as::

    [expLen:u16 BE][exponent][modLen:u16 BE][modulus]

Both integers are unsigned big-endian. Signatures are SHA1withRSA
(PKCS#1 v1.5), the scheme the card program implements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from citizencard.core.base.errors import MalformedResponse

lg = logging.getLogger(__name__)

MAX_EXPONENT_LENGTH = 10
MAX_MODULUS_LENGTH = 256
_MIN_LENGTH = 7


@dataclass(frozen=True)
class PublicKeyMaterial:
    """Raw RSA public key components as exported by the card."""

    exponent: bytes
    modulus: bytes

    @property
    def e(self) -> int:
        return int.from_bytes(self.exponent, "big")

    @property
    def n(self) -> int:
        return int.from_bytes(self.modulus, "big")

    @property
    def key_size(self) -> int:
        return self.n.bit_length()


def _read_length(data: bytes, offset: int, what: str) -> int:
    if offset + 2 > len(data):
        raise MalformedResponse(
            f"public key truncated: no room for {what} length at offset {offset}"
        )
    return int.from_bytes(data[offset : offset + 2], "big")


def parse_public_key(data: bytes) -> PublicKeyMaterial:
    """Parse the card's public key export, rejecting any malformed layout."""
    if len(data) < _MIN_LENGTH:
        raise MalformedResponse(
            f"public key too short: {len(data)} bytes (need at least {_MIN_LENGTH})"
        )

    exp_len = _read_length(data, 0, "exponent")
    if not 0 < exp_len <= MAX_EXPONENT_LENGTH:
        raise MalformedResponse(
            f"invalid exponent length: {exp_len} (must be 1..{MAX_EXPONENT_LENGTH})"
        )
    if 2 + exp_len > len(data):
        raise MalformedResponse(
            f"public key truncated: exponent needs {exp_len} bytes, {len(data) - 2} left"
        )
    exponent = bytes(data[2 : 2 + exp_len])

    mod_offset = 2 + exp_len
    mod_len = _read_length(data, mod_offset, "modulus")
    if not 0 < mod_len <= MAX_MODULUS_LENGTH:
        raise MalformedResponse(
            f"invalid modulus length: {mod_len} (must be 1..{MAX_MODULUS_LENGTH})"
        )
    start = mod_offset + 2
    if start + mod_len > len(data):
        raise MalformedResponse(
            f"public key truncated: modulus needs {mod_len} bytes, {len(data) - start} left"
        )
    modulus = bytes(data[start : start + mod_len])

    lg.debug("public key: exponent %d bytes, modulus %d bytes", exp_len, mod_len)
    return PublicKeyMaterial(exponent=exponent, modulus=modulus)


def serialize_public_key(material: PublicKeyMaterial) -> bytes:
    """Inverse of parse_public_key."""
    if not 0 < len(material.exponent) <= MAX_EXPONENT_LENGTH:
        raise ValueError(f"exponent length out of range: {len(material.exponent)}")
    if not 0 < len(material.modulus) <= MAX_MODULUS_LENGTH:
        raise ValueError(f"modulus length out of range: {len(material.modulus)}")
    if 4 + len(material.exponent) + len(material.modulus) < _MIN_LENGTH:
        raise ValueError(f"public key export must be at least {_MIN_LENGTH} bytes")
    buf = bytearray()
    buf.extend(len(material.exponent).to_bytes(2, "big"))
    buf.extend(material.exponent)
    buf.extend(len(material.modulus).to_bytes(2, "big"))
    buf.extend(material.modulus)
    return bytes(buf)


def material_from_key(public_key: rsa.RSAPublicKey) -> PublicKeyMaterial:
    """Minimal big-endian components of an RSA public key."""
    numbers = public_key.public_numbers()
    return PublicKeyMaterial(
        exponent=numbers.e.to_bytes((numbers.e.bit_length() + 7) // 8, "big"),
        modulus=numbers.n.to_bytes((numbers.n.bit_length() + 7) // 8, "big"),
    )


def to_public_key(material: PublicKeyMaterial) -> rsa.RSAPublicKey:
    """Build an RSA public key from unsigned big-endian components."""
    try:
        return rsa.RSAPublicNumbers(material.e, material.n).public_key()
    except ValueError as exc:
        raise MalformedResponse(f"not a usable RSA public key: {exc}") from exc


def verify_signature(
    signature: bytes,
    public_key: rsa.RSAPublicKey,
    challenge: bytes | str,
) -> bool:
    """Check a SHA1withRSA signature over challenge.

    Returns False for a signature that does not verify. Raises ValueError
    when the signature is empty or the key is missing.
    """
    if not signature:
        raise ValueError("signature is empty")
    if public_key is None:
        raise ValueError("public key is missing")
    if isinstance(challenge, str):
        challenge = challenge.encode("ascii")
    try:
        public_key.verify(signature, challenge, padding.PKCS1v15(), hashes.SHA1())
    except InvalidSignature:
        lg.info("signature verification: INVALID")
        return False
    lg.info("signature verification: VALID")
    return True
