"""
ECDSA adaptor signatures (one-time verifiably encrypted signatures).

An adaptor signature over message m under signing key X, encrypted to point Y,
can be checked by anyone but only becomes a valid ECDSA signature once the
discrete log y of Y is known. For a CET, Y is the oracle's sigpoint for the
outcome and y is the oracle's attestation scalar.

Encrypt (signer, secret x):
    k random, R_a = k*G, R = k*Y, r = x(R)
    s' = k^-1 * (m + r*x)
    DLEQ proof that log_G(R_a) == log_Y(R)

Verify:
    DLEQ proof holds
    x(R_a) == x(s'^-1 * (m*G + r*X))

Decrypt (with y):
    s = s' * y^-1, signature is (r, s)

Wire format:
    AdaptorSignature  R (33) || s' (32)              = 65 bytes
    AdaptorProof      R_a (33) || e (32) || s (32)   = 97 bytes
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Tuple

from ecdsa.ellipticcurve import INFINITY
from ecdsa.util import sigencode_der

from ..errors import MalformedInputError
from .secp256k1 import (
    G, N,
    tagged_hash, int_from_bytes, bytes_from_int,
    parse_point, serialize_point, scalar_from_bytes,
)

log = logging.getLogger(__name__)


ADAPTOR_SIGNATURE_SIZE = 65
ADAPTOR_PROOF_SIZE = 97
DLEQ_TAG = "DLEQ"


@dataclass(frozen=True)
class AdaptorSignature:
    """Encrypted ECDSA signature: nonce point R = k*Y and scalar s'."""
    nonce_point: bytes  # 33 bytes compressed
    s_prime: bytes      # 32 bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "AdaptorSignature":
        if len(data) != ADAPTOR_SIGNATURE_SIZE:
            raise MalformedInputError(
                f"Adaptor signature must be {ADAPTOR_SIGNATURE_SIZE} bytes, got {len(data)}"
            )
        return cls(nonce_point=bytes(data[:33]), s_prime=bytes(data[33:]))

    def to_bytes(self) -> bytes:
        return self.nonce_point + self.s_prime


@dataclass(frozen=True)
class AdaptorProof:
    """DLEQ proof binding R_a = k*G to the signature's R = k*Y."""
    r_a: bytes  # 33 bytes compressed
    e: bytes    # 32 bytes challenge
    s: bytes    # 32 bytes response

    @classmethod
    def from_bytes(cls, data: bytes) -> "AdaptorProof":
        if len(data) != ADAPTOR_PROOF_SIZE:
            raise MalformedInputError(
                f"Adaptor proof must be {ADAPTOR_PROOF_SIZE} bytes, got {len(data)}"
            )
        return cls(r_a=bytes(data[:33]), e=bytes(data[33:65]), s=bytes(data[65:]))

    def to_bytes(self) -> bytes:
        return self.r_a + self.e + self.s


def _random_scalar() -> int:
    return secrets.randbelow(N - 1) + 1


def _dleq_challenge(y_point, r_a, r, a1, a2) -> int:
    data = b"".join(serialize_point(p) for p in (y_point, r_a, r, a1, a2))
    return int_from_bytes(tagged_hash(DLEQ_TAG, data)) % N


def dleq_prove(k: int, y_point, r_a, r) -> Tuple[int, int]:
    """Prove R_a = k*G and R = k*Y share the discrete log k. Returns (e, s)."""
    a = _random_scalar()
    e = _dleq_challenge(y_point, r_a, r, G * a, y_point * a)
    return e, (a + e * k) % N


def dleq_verify(y_point, r_a, r, e: int, s: int) -> bool:
    a1 = G * s + r_a * (N - e)
    a2 = y_point * s + r * (N - e)
    if a1 == INFINITY or a2 == INFINITY:
        return False
    return _dleq_challenge(y_point, r_a, r, a1, a2) == e


def adaptor_sign(privkey: bytes, encryption_key: bytes,
                 msg32: bytes) -> Tuple[AdaptorSignature, AdaptorProof]:
    """
    Produce an adaptor signature over msg32 encrypted to encryption_key.

    Args:
        privkey: 32-byte signing secret
        encryption_key: 33-byte compressed point Y (e.g. an oracle sigpoint)
        msg32: 32-byte message digest (transaction sighash)

    Returns:
        (AdaptorSignature, AdaptorProof)
    """
    x = scalar_from_bytes(privkey)
    if x is None:
        raise MalformedInputError("Private key out of range")
    y_point = parse_point(encryption_key)
    m = int_from_bytes(msg32) % N

    while True:
        k = _random_scalar()
        r_a = G * k
        r_point = y_point * k
        r = r_point.x() % N
        if r == 0:
            continue
        s_prime = pow(k, -1, N) * (m + r * x) % N
        if s_prime != 0:
            break

    e, s = dleq_prove(k, y_point, r_a, r_point)
    sig = AdaptorSignature(serialize_point(r_point), bytes_from_int(s_prime))
    proof = AdaptorProof(serialize_point(r_a), bytes_from_int(e), bytes_from_int(s))
    return sig, proof


def adaptor_verify(pubkey: bytes, msg32: bytes, encryption_key: bytes,
                   sig: AdaptorSignature, proof: AdaptorProof) -> bool:
    """
    Check an adaptor signature and its DLEQ proof.

    Returns False for any failure, including undecodable points or scalars.
    """
    try:
        x_point = parse_point(pubkey)
        y_point = parse_point(encryption_key)
        r_point = parse_point(sig.nonce_point)
        r_a = parse_point(proof.r_a)
    except MalformedInputError as e:
        log.debug(f"Adaptor verify: {e}")
        return False

    s_prime = scalar_from_bytes(sig.s_prime)
    e = scalar_from_bytes(proof.e, allow_zero=True)
    s = scalar_from_bytes(proof.s, allow_zero=True)
    if s_prime is None or e is None or s is None:
        log.debug("Adaptor verify: scalar out of range")
        return False

    if not dleq_verify(y_point, r_a, r_point, e, s):
        log.debug("Adaptor verify: DLEQ proof rejected")
        return False

    r = r_point.x() % N
    if r == 0:
        return False
    m = int_from_bytes(msg32) % N
    s_inv = pow(s_prime, -1, N)
    derived = G * (m * s_inv % N) + x_point * (r * s_inv % N)
    if derived == INFINITY:
        return False
    return derived.x() == r_a.x()


def adaptor_decrypt(sig: AdaptorSignature, decryption_key: bytes) -> bytes:
    """
    Complete an adaptor signature with the discrete log of its encryption key.

    Returns:
        Low-S DER-encoded ECDSA signature (no sighash byte)
    """
    y = scalar_from_bytes(decryption_key)
    s_prime = scalar_from_bytes(sig.s_prime)
    if y is None or s_prime is None:
        raise MalformedInputError("Decryption key or s' out of range")
    r = parse_point(sig.nonce_point).x() % N
    s = s_prime * pow(y, -1, N) % N
    if s > N // 2:
        s = N - s
    return sigencode_der(r, s, N)
