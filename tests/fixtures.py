"""
Shared contract fixtures for the DLC tests.

Contract:
    Offer:  inputs 1,000,000 + 500,000 sats, collateral 1,000,000, 2 sat/vB
    Accept: input 600,000 sats, collateral 500,000
    Outcomes (payout to initiator, total collateral 1,500,000):
        heads  1,500,000   acceptor output is dust
        tails          0   initiator output is dust
        draw   1,000,000
        edge         999   initiator output just below dust
"""

import os
import sys
from dataclasses import replace

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ecdsa import SigningKey, SECP256k1
from ecdsa.util import sigencode_der_canonize

from dlc.core import (
    Offer, Accept, Sign, FundingInput, Timeouts, ContractOutcome, FeeRate,
    CetAdaptorSignature, RefundSignature, CetSigs, outcome_id,
)
from dlc.crypto.adaptor import adaptor_sign
from dlc.crypto.oracle import OracleInfo
from dlc.crypto.secp256k1 import pubkey_from_privkey
from dlc.tx.builder import DLCTransactionBuilder


INITIATOR_PRIVKEY = bytes.fromhex("11" * 32)
ACCEPTOR_PRIVKEY = bytes.fromhex("22" * 32)
ORACLE_PRIVKEY = bytes.fromhex("33" * 32)
ORACLE_NONCE = bytes.fromhex("44" * 32)
STRANGER_PRIVKEY = bytes.fromhex("55" * 32)

INITIATOR_PUBKEY = pubkey_from_privkey(INITIATOR_PRIVKEY)
ACCEPTOR_PUBKEY = pubkey_from_privkey(ACCEPTOR_PRIVKEY)
STRANGER_PUBKEY = pubkey_from_privkey(STRANGER_PRIVKEY)

# P2WPKH-shaped scriptPubKeys (22 bytes)
OFFER_PAYOUT = bytes([0x00, 0x14]) + bytes([0xa1]) * 20
OFFER_CHANGE = bytes([0x00, 0x14]) + bytes([0xa2]) * 20
ACCEPT_PAYOUT = bytes([0x00, 0x14]) + bytes([0xb1]) * 20
ACCEPT_CHANGE = bytes([0x00, 0x14]) + bytes([0xb2]) * 20

HEADS = outcome_id("heads")
TAILS = outcome_id("tails")
DRAW = outcome_id("draw")
EDGE = outcome_id("edge")

CONTRACT_MATURITY = 100
CONTRACT_TIMEOUT = 200


def make_offer(**overrides) -> Offer:
    offer = Offer(
        funding_pubkey=INITIATOR_PUBKEY,
        payout_address=OFFER_PAYOUT,
        total_collateral=1_000_000,
        fee_rate=FeeRate(2),
        timeouts=Timeouts(contract_maturity=CONTRACT_MATURITY,
                          contract_timeout=CONTRACT_TIMEOUT),
        contract_info=[
            ContractOutcome(HEADS, 1_500_000),
            ContractOutcome(TAILS, 0),
            ContractOutcome(DRAW, 1_000_000),
            ContractOutcome(EDGE, 999),
        ],
        oracle_info=OracleInfo.from_secrets(ORACLE_PRIVKEY, ORACLE_NONCE),
        funding_inputs=[
            FundingInput("aa" * 32, 0, 1_000_000),
            FundingInput("bb" * 32, 1, 500_000),
        ],
        change_address=OFFER_CHANGE,
    )
    return replace(offer, **overrides)


def make_accept(**overrides) -> Accept:
    accept = Accept(
        funding_pubkey=ACCEPTOR_PUBKEY,
        payout_address=ACCEPT_PAYOUT,
        total_collateral=500_000,
        funding_inputs=[FundingInput("cc" * 32, 2, 600_000)],
        change_address=ACCEPT_CHANGE,
    )
    return replace(accept, **overrides)


def sign_refund(builder: DLCTransactionBuilder, privkey: bytes) -> bytes:
    """DER signature over the refund sighash."""
    sk = SigningKey.from_string(privkey, curve=SECP256k1)
    return sk.sign_digest(builder.refund_sighash(), sigencode=sigencode_der_canonize)


def make_cet_sigs(builder: DLCTransactionBuilder, privkey: bytes) -> CetSigs:
    """Signature bundle as the owner of `privkey` would send it."""
    offer = builder.offer
    outcome_sigs = {}
    for entry in offer.contract_info:
        sigpoint = offer.oracle_info.compute_sigpoint(entry.outcome)
        sig, proof = adaptor_sign(privkey, sigpoint, builder.cet_sighash(entry.outcome))
        outcome_sigs[entry.outcome] = CetAdaptorSignature(sig, proof)

    refund_sig = RefundSignature(
        pubkey=pubkey_from_privkey(privkey),
        signature=sign_refund(builder, privkey),
    )
    return CetSigs(outcome_sigs=outcome_sigs, refund_sig=refund_sig)


def make_signed_contract():
    """(offer, accept, sign) with valid bundles from both parties."""
    offer = make_offer()
    unsigned = DLCTransactionBuilder(True, offer, make_accept(), None)
    accept = make_accept(cet_sigs=make_cet_sigs(unsigned, ACCEPTOR_PRIVKEY))
    sign = Sign(cet_sigs=make_cet_sigs(unsigned, INITIATOR_PRIVKEY))
    return offer, accept, sign
