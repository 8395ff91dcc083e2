"""
Cryptographic primitives for DLC verification.

- secp256k1: point encoding, tagged hashes, ECDSA verification
- adaptor: ECDSA adaptor signatures with DLEQ proofs
- oracle: oracle commitments, sigpoints and attestations
"""

from .adaptor import (
    AdaptorSignature,
    AdaptorProof,
    adaptor_sign,
    adaptor_verify,
    adaptor_decrypt,
)
from .oracle import OracleInfo, attest
from .secp256k1 import ecdsa_verify, pubkey_from_privkey

__all__ = [
    "AdaptorSignature",
    "AdaptorProof",
    "adaptor_sign",
    "adaptor_verify",
    "adaptor_decrypt",
    "OracleInfo",
    "attest",
    "ecdsa_verify",
    "pubkey_from_privkey",
]
