"""
dlc - Discreet Log Contract transaction builder

Builds the funding, refund and contract execution transactions (CETs) of a
two-party DLC from already-parsed negotiation messages, and verifies the
counterparty's adaptor signatures before funds are committed.

Usage:
    from dlc import DLCTransactionBuilder, Offer, Accept, Sign

    builder = DLCTransactionBuilder(is_initiator=True, offer=offer, accept=accept)

    funding = builder.build_funding()      # unsigned funding tx
    refund = builder.build_refund()        # refund after contract_timeout
    cet = builder.build_cet(outcome)       # settlement for one outcome

    if builder.verify_remote_cet_sigs() and builder.verify_remote_refund_signature():
        ...  # safe to sign and broadcast funding
"""

from .core import (
    Offer,
    Accept,
    Sign,
    FundingInput,
    Timeouts,
    ContractOutcome,
    FeeRate,
    CetAdaptorSignature,
    RefundSignature,
    CetSigs,
    outcome_id,
    DUST_LIMIT_SATS,
    NON_FINAL_SEQUENCE,
    TX_VERSION,
)

from .errors import (
    DLCError,
    InsufficientStateError,
    InvalidOutcomeError,
    MissingSignatureError,
    MalformedInputError,
    AmountError,
)

from .crypto.adaptor import AdaptorSignature, AdaptorProof
from .crypto.oracle import OracleInfo

from .tx.builder import DLCTransactionBuilder, DLCConfig, CetSigStatus, Party, FundingCoin

__version__ = "0.1.0"
__all__ = [
    # Messages
    "Offer",
    "Accept",
    "Sign",
    "FundingInput",
    "Timeouts",
    "ContractOutcome",
    "FeeRate",
    "CetAdaptorSignature",
    "RefundSignature",
    "CetSigs",
    "AdaptorSignature",
    "AdaptorProof",
    "OracleInfo",
    # Utilities
    "outcome_id",
    "DUST_LIMIT_SATS",
    "NON_FINAL_SEQUENCE",
    "TX_VERSION",
    # Errors
    "DLCError",
    "InsufficientStateError",
    "InvalidOutcomeError",
    "MissingSignatureError",
    "MalformedInputError",
    "AmountError",
    # Builder
    "DLCTransactionBuilder",
    "DLCConfig",
    "CetSigStatus",
    "Party",
    "FundingCoin",
]
