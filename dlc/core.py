"""
Core types for the DLC transaction builder.

Offer, Accept and Sign arrive from the negotiation layer already parsed. Every
field is optional so a message can be handed over while the protocol is still
in flight; each builder operation checks for the fields it needs.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Union

from bitcoin.core import COutPoint, lx
from bitcoin.core.script import SIGHASH_ALL

from .crypto.adaptor import AdaptorSignature, AdaptorProof
from .crypto.oracle import OracleInfo
from .errors import MalformedInputError


# A payout/change destination: raw scriptPubKey bytes or an address string
Destination = Union[bytes, str]


# =============================================================================
# Constants
# =============================================================================

TX_VERSION = 2
NON_FINAL_SEQUENCE = 0xFFFFFFFE

# Outputs below this are dropped from CETs
DUST_LIMIT_SATS = 1000

# Funding weight model (weight units)
FUNDING_BASE_WEIGHT = 286       # version, locktime, counts, multisig output
FUNDING_INPUT_WEIGHT = 272      # per funding input

# Projected settlement (CET/refund) weight, pre-paid inside the funding output
SETTLEMENT_BASE_WEIGHT = 500
SETTLEMENT_OUTPUT_OVERHEAD = 8  # amount field per payout output


# =============================================================================
# Negotiation records
# =============================================================================

@dataclass(frozen=True)
class FundingInput:
    """A UTXO a party contributes to the funding transaction."""
    txid: str       # Display-order hex, as returned by bitcoind
    vout: int
    value: int      # Sats held by the referenced output

    @property
    def outpoint(self) -> COutPoint:
        return COutPoint(lx(self.txid), self.vout)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "vout": self.vout,
            "value": self.value,
        }


@dataclass(frozen=True)
class Timeouts:
    """Contract locktimes (block height or unix timestamp)."""
    contract_maturity: int  # CET locktime
    contract_timeout: int   # Refund locktime


@dataclass(frozen=True)
class ContractOutcome:
    """One row of the outcome table: outcome id -> payout to the initiator."""
    outcome: bytes  # 32-byte outcome id
    sats: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.hex(),
            "sats": self.sats,
        }


@dataclass(frozen=True)
class FeeRate:
    """Fee rate in sat/vbyte."""
    sat_per_vbyte: int

    def get_fee(self, vbytes: int) -> int:
        return self.sat_per_vbyte * vbytes


@dataclass(frozen=True)
class CetAdaptorSignature:
    """Adaptor signature over one CET plus its DLEQ proof."""
    signature: AdaptorSignature
    proof: AdaptorProof

    @classmethod
    def from_bytes(cls, signature: bytes, proof: bytes) -> "CetAdaptorSignature":
        return cls(
            signature=AdaptorSignature.from_bytes(signature),
            proof=AdaptorProof.from_bytes(proof),
        )


@dataclass(frozen=True)
class RefundSignature:
    """Plain ECDSA signature over the refund transaction."""
    pubkey: bytes           # Key the signer claims to have used
    signature: bytes        # DER, without the sighash byte
    sighash: int = SIGHASH_ALL

    @classmethod
    def from_transaction_signature(cls, pubkey: bytes, sig: bytes) -> "RefundSignature":
        """Split a Bitcoin transaction signature (DER || hashtype)."""
        if len(sig) < 9:
            raise MalformedInputError(f"Transaction signature too short: {len(sig)} bytes")
        return cls(pubkey=pubkey, signature=sig[:-1], sighash=sig[-1])

    def to_transaction_signature(self) -> bytes:
        return self.signature + bytes([self.sighash])


@dataclass
class CetSigs:
    """A party's signature bundle: one adaptor signature per outcome + refund."""
    outcome_sigs: Dict[bytes, CetAdaptorSignature] = field(default_factory=dict)
    refund_sig: Optional[RefundSignature] = None


@dataclass
class Offer:
    """Initiator's offer."""
    funding_pubkey: Optional[bytes] = None
    payout_address: Optional[Destination] = None
    total_collateral: Optional[int] = None
    fee_rate: Optional[FeeRate] = None
    timeouts: Optional[Timeouts] = None
    contract_info: Optional[List[ContractOutcome]] = None
    oracle_info: Optional[OracleInfo] = None
    funding_inputs: Optional[List[FundingInput]] = None
    change_address: Optional[Destination] = None


@dataclass
class Accept:
    """Acceptor's reply, carrying its signatures over every CET and the refund."""
    funding_pubkey: Optional[bytes] = None
    payout_address: Optional[Destination] = None
    total_collateral: Optional[int] = None
    funding_inputs: Optional[List[FundingInput]] = None
    change_address: Optional[Destination] = None
    cet_sigs: Optional[CetSigs] = None


@dataclass
class Sign:
    """Initiator's signatures, sent after Accept."""
    cet_sigs: Optional[CetSigs] = None


# =============================================================================
# Utilities
# =============================================================================

def outcome_id(outcome: str) -> bytes:
    """Outcome id for a human-readable outcome: SHA256 of its UTF-8 text."""
    return hashlib.sha256(outcome.encode("utf-8")).digest()
