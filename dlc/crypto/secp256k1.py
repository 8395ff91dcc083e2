"""
secp256k1 helpers on top of the `ecdsa` library.

Points are `ecdsa.ellipticcurve.PointJacobi` instances. On the wire they are
33-byte compressed SEC1 encodings; oracle keys and nonces are 32-byte x-only
(BIP340) encodings that lift to the even-y point.
"""

import hashlib
import logging
from typing import Optional

from ecdsa import SECP256k1, SigningKey, VerifyingKey, BadSignatureError
from ecdsa.der import UnexpectedDER
from ecdsa.ellipticcurve import INFINITY
from ecdsa.errors import MalformedPointError
from ecdsa.util import sigdecode_der

from ..errors import MalformedInputError

log = logging.getLogger(__name__)


G = SECP256k1.generator
N = SECP256k1.order
P = SECP256k1.curve.p()


def sha256(data: bytes) -> bytes:
    """SHA256 hash."""
    return hashlib.sha256(data).digest()


def tagged_hash(tag: str, msg: bytes) -> bytes:
    """BIP340 tagged hash: SHA256(SHA256(tag) || SHA256(tag) || msg)."""
    tag_hash = sha256(tag.encode())
    return sha256(tag_hash + tag_hash + msg)


def int_from_bytes(data: bytes) -> int:
    return int.from_bytes(data, "big")


def bytes_from_int(n: int) -> bytes:
    return n.to_bytes(32, "big")


def parse_point(data: bytes):
    """
    Decode a 33-byte compressed point.

    Raises:
        MalformedInputError: wrong length/prefix or x not on the curve
    """
    if len(data) != 33 or data[0] not in (0x02, 0x03):
        raise MalformedInputError(f"Expected 33-byte compressed point, got {data.hex()[:16]}...")
    if int_from_bytes(data[1:]) >= P:
        raise MalformedInputError("Point x coordinate exceeds field size")
    try:
        return VerifyingKey.from_string(data, curve=SECP256k1).pubkey.point
    except (MalformedPointError, ValueError) as e:
        raise MalformedInputError(f"Invalid secp256k1 point: {e}")


def serialize_point(point) -> bytes:
    """Compressed format: 02/03 + x"""
    if point == INFINITY:
        raise MalformedInputError("Cannot serialize the point at infinity")
    prefix = b'\x02' if point.y() % 2 == 0 else b'\x03'
    return prefix + point.x().to_bytes(32, 'big')


def lift_x(x_only: bytes):
    """Even-y point for a 32-byte x coordinate, or None if there is none."""
    if len(x_only) != 32 or int_from_bytes(x_only) >= P:
        return None
    try:
        return parse_point(b'\x02' + x_only)
    except MalformedInputError:
        return None


def pubkey_from_privkey(privkey: bytes) -> bytes:
    """Derive the compressed public key for a 32-byte secret."""
    sk = SigningKey.from_string(privkey, curve=SECP256k1)
    return serialize_point(sk.get_verifying_key().pubkey.point)


def ecdsa_verify(pubkey: bytes, der_signature: bytes, digest: bytes) -> bool:
    """
    Verify a DER-encoded ECDSA signature over a 32-byte digest.

    Undecodable keys or signatures verify as False.
    """
    try:
        vk = VerifyingKey.from_string(pubkey, curve=SECP256k1)
        return vk.verify_digest(der_signature, digest, sigdecode=sigdecode_der)
    except BadSignatureError:
        return False
    except (UnexpectedDER, MalformedPointError, ValueError) as e:
        log.debug(f"Malformed ECDSA input: {e}")
        return False


def scalar_from_bytes(data: bytes, allow_zero: bool = False) -> Optional[int]:
    """32-byte big-endian scalar in [1, N) (or [0, N)), None otherwise."""
    if len(data) != 32:
        return None
    n = int_from_bytes(data)
    if n >= N or (n == 0 and not allow_zero):
        return None
    return n
