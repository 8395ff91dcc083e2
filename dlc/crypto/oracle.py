"""
Oracle commitment and sigpoint computation.

The oracle publishes an x-only public key P and, per event, an x-only nonce R.
Attesting outcome m means publishing the BIP340 scalar

    s = k + e*d,   e = H_BIP0340/challenge(R || P || m)

so before attestation anyone can compute the sigpoint s*G = R + e*P. CET adaptor
signatures are encrypted to that point; the attestation decrypts them.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from ecdsa.ellipticcurve import INFINITY

from ..errors import MalformedInputError
from .secp256k1 import (
    G, N,
    tagged_hash, int_from_bytes, bytes_from_int,
    lift_x, serialize_point, scalar_from_bytes,
)

log = logging.getLogger(__name__)


CHALLENGE_TAG = "BIP0340/challenge"


def _challenge(r_value: bytes, pubkey: bytes, outcome: bytes) -> int:
    return int_from_bytes(tagged_hash(CHALLENGE_TAG, r_value + pubkey + outcome)) % N


@dataclass(frozen=True)
class OracleInfo:
    """Oracle public key and event nonce, both 32-byte x-only."""
    pubkey: bytes
    r_value: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "OracleInfo":
        """Decode pubkey (32) || r_value (32)."""
        if len(data) != 64:
            raise MalformedInputError(f"Oracle info must be 64 bytes, got {len(data)}")
        return cls(pubkey=bytes(data[:32]), r_value=bytes(data[32:]))

    @classmethod
    def from_secrets(cls, privkey: bytes, nonce: bytes) -> "OracleInfo":
        """Commitment for an oracle key and event nonce (test and tooling use)."""
        d = scalar_from_bytes(privkey)
        k = scalar_from_bytes(nonce)
        if d is None or k is None:
            raise MalformedInputError("Oracle secret out of range")
        return cls(
            pubkey=serialize_point(G * d)[1:],
            r_value=serialize_point(G * k)[1:],
        )

    def to_bytes(self) -> bytes:
        return self.pubkey + self.r_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pubkey": self.pubkey.hex(),
            "r_value": self.r_value.hex(),
        }

    def compute_sigpoint(self, outcome: bytes) -> Optional[bytes]:
        """
        Expected attestation point for an outcome.

        Returns:
            33-byte compressed sigpoint, or None if the commitment does not
            decode to valid curve points
        """
        p_point = lift_x(self.pubkey)
        r_point = lift_x(self.r_value)
        if p_point is None or r_point is None:
            log.debug(f"Oracle commitment does not decode: {self.to_bytes().hex()[:32]}...")
            return None

        sigpoint = r_point + p_point * _challenge(self.r_value, self.pubkey, outcome)
        if sigpoint == INFINITY:
            return None
        return serialize_point(sigpoint)


def attest(privkey: bytes, nonce: bytes, outcome: bytes) -> bytes:
    """
    BIP340 attestation scalar for an outcome.

    Args:
        privkey: oracle's 32-byte secret
        nonce: 32-byte event nonce committed to in OracleInfo.r_value
        outcome: 32-byte outcome id

    Returns:
        32-byte s; s*G equals OracleInfo.compute_sigpoint(outcome)
    """
    d = scalar_from_bytes(privkey)
    k = scalar_from_bytes(nonce)
    if d is None or k is None:
        raise MalformedInputError("Oracle secret out of range")

    # x-only keys stand for the even-y point
    p_point = G * d
    if p_point.y() % 2:
        d = N - d
    r_point = G * k
    if r_point.y() % 2:
        k = N - k

    pubkey = serialize_point(p_point)[1:]
    r_value = serialize_point(r_point)[1:]
    e = _challenge(r_value, pubkey, outcome)
    return bytes_from_int((k + e * d) % N)
