"""
DLC transaction builder.

Derives the funding transaction, the refund transaction and one CET per
outcome from the negotiation messages, and verifies the counterparty's
signatures over them before funds are committed.

Transactions:
    Funding  inputs:  offer inputs, then accept inputs (unsigned)
             outputs: P2WSH 2-of-2 collateral, offer change, accept change
    Refund   spends funding:0 at contract_timeout,
             pays each party its collateral back
    CET      spends funding:0 at contract_maturity,
             pays the outcome table split, dust outputs dropped

Nothing is cached: every call re-derives the funding transaction, so results
always reflect the current messages and funding override.
"""

import os
import logging
import threading
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Tuple

from bitcoin.core import (
    CMutableTransaction, CMutableTxIn, CMutableTxOut, COutPoint, CScript,
    CTxOut, MoneyRange, b2lx,
)
from bitcoin.core.script import SignatureHash, SIGHASH_ALL, SIGVERSION_WITNESS_V0

from ..core import (
    Offer, Accept, Sign, CetSigs, Destination,
    TX_VERSION, NON_FINAL_SEQUENCE, DUST_LIMIT_SATS,
    FUNDING_BASE_WEIGHT, FUNDING_INPUT_WEIGHT,
    SETTLEMENT_BASE_WEIGHT, SETTLEMENT_OUTPUT_OVERHEAD,
)
from ..crypto.adaptor import adaptor_verify
from ..crypto.secp256k1 import ecdsa_verify
from ..errors import (
    InsufficientStateError, InvalidOutcomeError, MissingSignatureError, AmountError,
)
from .script import multisig_script, p2wsh_script_pubkey, destination_to_script

log = logging.getLogger(__name__)


@dataclass
class DLCConfig:
    """
    Builder configuration.

    Both parties must use the same dust_limit: it decides which CET outputs
    exist, so a mismatch yields different sighashes and remote CET signatures
    then fail to verify.
    """
    network: str = "signet"             # Used only to decode address strings
    dust_limit: int = DUST_LIMIT_SATS   # CET outputs below this are dropped

    @classmethod
    def from_env(cls) -> "DLCConfig":
        return cls(
            network=os.environ.get("DLC_NETWORK", "signet"),
            dust_limit=int(os.environ.get("DLC_DUST_LIMIT", DUST_LIMIT_SATS)),
        )


class CetSigStatus(Enum):
    """Per-outcome result of remote CET signature checking."""
    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"  # Well-formed, does not verify
    BAD_SIGPOINT = "bad_sigpoint"            # Oracle commitment yields no point
    MISSING = "missing"                      # No signature for this outcome


@dataclass(frozen=True)
class Party:
    """A contract party: funding pubkey plus its signature bundle."""
    pubkey: bytes
    cet_sigs: CetSigs


@dataclass(frozen=True)
class FundingCoin:
    """The funding output every settlement transaction spends."""
    outpoint: COutPoint
    txout: CTxOut
    witness_script: CScript

    @property
    def amount(self) -> int:
        return self.txout.nValue


class DLCTransactionBuilder:
    """
    Builds and verifies the transactions of a two-party DLC.

    Construction never fails on missing data; each operation raises
    InsufficientStateError when the fields it needs have not arrived yet.
    """

    def __init__(self, is_initiator: bool, offer: Optional[Offer] = None,
                 accept: Optional[Accept] = None, sign: Optional[Sign] = None,
                 config: Optional[DLCConfig] = None):
        self.is_initiator = is_initiator
        self.offer = offer
        self.accept = accept
        self.sign = sign
        self.config = config or DLCConfig()

        self._override_lock = threading.Lock()
        self._funding_override = None

        self.initiator = self._resolve_party(
            offer.funding_pubkey if offer else None,
            sign.cet_sigs if sign else None,
        )
        self.acceptor = self._resolve_party(
            accept.funding_pubkey if accept else None,
            accept.cet_sigs if accept else None,
        )
        if is_initiator:
            self.me, self.remote = self.initiator, self.acceptor
        else:
            self.me, self.remote = self.acceptor, self.initiator

    @staticmethod
    def _resolve_party(pubkey: Optional[bytes], cet_sigs: Optional[CetSigs]) -> Optional[Party]:
        if pubkey is None or cet_sigs is None:
            return None
        return Party(pubkey, cet_sigs)

    @property
    def funding_override(self):
        """Externally built funding transaction, returned as-is by build_funding()."""
        with self._override_lock:
            return self._funding_override

    @funding_override.setter
    def funding_override(self, tx):
        with self._override_lock:
            self._funding_override = tx

    # =========================================================================
    # Funding
    # =========================================================================

    def get_funding_script(self) -> CScript:
        """2-of-2 multisig witness script, always (initiator, acceptor) order."""
        if (self.offer is None or self.accept is None
                or self.offer.funding_pubkey is None or self.accept.funding_pubkey is None):
            raise InsufficientStateError("Not enough data received to create the funding script")
        return multisig_script([self.offer.funding_pubkey, self.accept.funding_pubkey])

    def build_funding(self) -> CMutableTransaction:
        """
        Build the unsigned funding transaction.

        The collateral output carries a fee buffer for the future settlement
        transaction; each party pays half of the combined funding + settlement
        vbytes out of its change.
        """
        override = self.funding_override
        if override is not None:
            return override

        offer, accept = self.offer, self.accept
        if (offer is None or accept is None
                or offer.funding_inputs is None or accept.funding_inputs is None):
            raise InsufficientStateError("Not enough data received to create the funding")
        if (offer.total_collateral is None or accept.total_collateral is None
                or offer.fee_rate is None):
            raise InsufficientStateError("Not enough data received to create the funding")

        funding_script = self.get_funding_script()
        offer_change = self._script_for(offer.change_address)
        accept_change = self._script_for(accept.change_address)

        tx = CMutableTransaction(nLockTime=0, nVersion=TX_VERSION)
        for inp in offer.funding_inputs + accept.funding_inputs:
            tx.vin.append(CMutableTxIn(inp.outpoint, CScript(), NON_FINAL_SEQUENCE))

        total_change_length = len(offer_change) + len(accept_change)
        weight = (FUNDING_BASE_WEIGHT + 4 * total_change_length
                  + FUNDING_INPUT_WEIGHT * len(tx.vin))
        total_output_length = total_change_length + SETTLEMENT_OUTPUT_OVERHEAD
        max_future_weight = SETTLEMENT_BASE_WEIGHT + 4 * total_output_length

        fee_rate = offer.fee_rate
        self._add_output(
            tx,
            offer.total_collateral + accept.total_collateral
            + fee_rate.get_fee(max_future_weight // 4),
            p2wsh_script_pubkey(funding_script),
        )

        # Floor division: the remainder is charged to neither party
        vbytes_per_user = (max_future_weight + weight) // 8
        fee_per_user = fee_rate.get_fee(vbytes_per_user)

        offer_input = sum(i.value for i in offer.funding_inputs)
        self._add_output(tx, offer_input - offer.total_collateral - fee_per_user, offer_change)

        accept_input = sum(i.value for i in accept.funding_inputs)
        self._add_output(tx, accept_input - accept.total_collateral - fee_per_user, accept_change)

        log.debug(f"Funding: {len(tx.vin)} inputs, collateral output {tx.vout[0].nValue} sats, "
                  f"fee per party {fee_per_user} sats")
        return tx

    def get_funding_coin(self) -> FundingCoin:
        """Output 0 of the funding transaction with its witness script."""
        funding = self.build_funding()
        return FundingCoin(
            outpoint=COutPoint(funding.GetTxid(), 0),
            txout=funding.vout[0],
            witness_script=self.get_funding_script(),
        )

    def funding_txid(self) -> str:
        """Display-order txid of the funding transaction."""
        return b2lx(self.build_funding().GetTxid())

    # =========================================================================
    # Settlement
    # =========================================================================

    def _require_settlement_data(self, what: str):
        offer, accept = self.offer, self.accept
        if (offer is None or accept is None or offer.timeouts is None
                or offer.total_collateral is None or accept.total_collateral is None):
            raise InsufficientStateError(f"Not enough data received to create the {what}")

    def _settlement_tx(self, locktime: int) -> CMutableTransaction:
        funding = self.build_funding()
        tx = CMutableTransaction(nLockTime=locktime, nVersion=TX_VERSION)
        tx.vin.append(CMutableTxIn(COutPoint(funding.GetTxid(), 0), CScript(), NON_FINAL_SEQUENCE))
        return tx

    def build_refund(self) -> CMutableTransaction:
        """Refund: each party gets its collateral back after contract_timeout."""
        self._require_settlement_data("refund")
        offer, accept = self.offer, self.accept

        tx = self._settlement_tx(offer.timeouts.contract_timeout)
        self._add_output(tx, offer.total_collateral, self._script_for(offer.payout_address))
        self._add_output(tx, accept.total_collateral, self._script_for(accept.payout_address))
        return tx

    def payouts(self, outcome: bytes) -> Tuple[int, int]:
        """(initiator, acceptor) split for an outcome, before dust pruning."""
        self._require_settlement_data("CET")
        if self.offer.contract_info is None:
            raise InsufficientStateError("Not enough data received to create the CET")

        if not isinstance(outcome, (bytes, bytearray)):
            raise InvalidOutcomeError(f"Outcome id must be bytes, got {type(outcome).__name__}")

        matches = [c.sats for c in self.offer.contract_info if c.outcome == outcome]
        if not matches:
            raise InvalidOutcomeError(f"Invalid outcome {outcome.hex()}")
        if len(matches) > 1:
            raise InvalidOutcomeError(f"Outcome {outcome.hex()} listed {len(matches)} times")

        initiator_payout = matches[0]
        collateral = self.offer.total_collateral + self.accept.total_collateral
        return initiator_payout, collateral - initiator_payout

    def build_cet(self, outcome: bytes) -> CMutableTransaction:
        """CET for one outcome; outputs below the dust limit are removed."""
        initiator_payout, acceptor_payout = self.payouts(outcome)
        offer, accept = self.offer, self.accept

        tx = self._settlement_tx(offer.timeouts.contract_maturity)
        self._add_output(tx, initiator_payout, self._script_for(offer.payout_address))
        self._add_output(tx, acceptor_payout, self._script_for(accept.payout_address))

        kept = [out for out in tx.vout if out.nValue >= self.config.dust_limit]
        if len(kept) != len(tx.vout):
            log.debug(f"CET {outcome.hex()[:16]}: dropped {len(tx.vout) - len(kept)} dust output(s)")
            tx.vout = kept
        return tx

    # =========================================================================
    # Signature hashes
    # =========================================================================

    def _signature_hash(self, tx: CMutableTransaction) -> bytes:
        coin = self.get_funding_coin()
        return SignatureHash(
            script=coin.witness_script,
            txTo=tx,
            inIdx=0,
            hashtype=SIGHASH_ALL,
            amount=coin.amount,
            sigversion=SIGVERSION_WITNESS_V0,
        )

    def cet_sighash(self, outcome: bytes) -> bytes:
        """BIP143 SIGHASH_ALL digest of the CET for an outcome."""
        return self._signature_hash(self.build_cet(outcome))

    def refund_sighash(self) -> bytes:
        """BIP143 SIGHASH_ALL digest of the refund transaction."""
        return self._signature_hash(self.build_refund())

    # =========================================================================
    # Remote signature verification
    # =========================================================================

    def _require_cet_verification_data(self):
        if self.remote is None or self.offer is None or self.offer.contract_info is None:
            raise InsufficientStateError("Not enough data received to verify the sigs")
        if self.offer.oracle_info is None:
            raise InsufficientStateError("Not enough data received to verify the sigs")

    def _check_cet_sig(self, outcome: bytes) -> CetSigStatus:
        cet_sig = self.remote.cet_sigs.outcome_sigs.get(outcome)
        if cet_sig is None:
            raise MissingSignatureError(f"No remote signature for outcome {outcome.hex()}")

        sigpoint = self.offer.oracle_info.compute_sigpoint(outcome)
        if sigpoint is None:
            return CetSigStatus.BAD_SIGPOINT

        msg = self.cet_sighash(outcome)
        if adaptor_verify(self.remote.pubkey, msg, sigpoint, cet_sig.signature, cet_sig.proof):
            return CetSigStatus.VALID
        return CetSigStatus.INVALID_SIGNATURE

    def verify_remote_cet_sigs(self) -> bool:
        """
        Check the remote adaptor signature of every CET.

        Stops at the first outcome that fails.

        Raises:
            InsufficientStateError: remote party, outcome table or oracle missing
            MissingSignatureError: an outcome has no remote signature
        """
        self._require_cet_verification_data()

        for entry in self.offer.contract_info:
            status = self._check_cet_sig(entry.outcome)
            if status is not CetSigStatus.VALID:
                log.warning(f"Remote CET signature for {entry.outcome.hex()[:16]}... "
                            f"rejected: {status.value}")
                return False
        return True

    def check_remote_cet_sigs(self) -> Dict[bytes, CetSigStatus]:
        """Per-outcome status of every remote CET signature, without stopping early."""
        self._require_cet_verification_data()

        results = {}
        for entry in self.offer.contract_info:
            try:
                results[entry.outcome] = self._check_cet_sig(entry.outcome)
            except MissingSignatureError:
                results[entry.outcome] = CetSigStatus.MISSING
        return results

    def verify_remote_refund_signature(self) -> bool:
        """
        Check the remote signature over the refund transaction.

        The embedded pubkey must be the remote funding key, the sighash mode
        must be SIGHASH_ALL and the ECDSA signature must verify.
        """
        if self.remote is None:
            raise InsufficientStateError("Not enough data received to verify refund signature")
        refund_sig = self.remote.cet_sigs.refund_sig
        if refund_sig is None:
            raise MissingSignatureError("No remote refund signature")

        refund = self.build_refund()
        if refund_sig.pubkey != self.remote.pubkey:
            log.warning("Remote refund signature carries a foreign pubkey")
            return False
        if refund_sig.sighash != SIGHASH_ALL:
            log.warning(f"Remote refund signature uses sighash {refund_sig.sighash:#x}")
            return False
        if not ecdsa_verify(self.remote.pubkey, refund_sig.signature, self._signature_hash(refund)):
            log.warning("Remote refund signature does not verify")
            return False
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _script_for(self, destination: Optional[Destination]) -> CScript:
        return destination_to_script(destination, self.config.network)

    @staticmethod
    def _add_output(tx: CMutableTransaction, amount: int, script_pubkey: CScript):
        if not MoneyRange(amount):
            raise AmountError(f"Output amount {amount} sats out of range")
        tx.vout.append(CMutableTxOut(amount, script_pubkey))
