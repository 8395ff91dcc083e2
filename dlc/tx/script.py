"""
Scripts used by DLC transactions.

Funding output (P2WSH of a 2-of-2 multisig):
    witnessScript: OP_2 <initiator_pubkey> <acceptor_pubkey> OP_2 OP_CHECKMULTISIG
    scriptPubKey:  OP_0 <SHA256(witnessScript)>

Key order is fixed (initiator, acceptor) so both parties derive the same bytes.
"""

import hashlib
import logging
import threading
from contextlib import contextmanager
from typing import Sequence

import bitcoin
import bitcoin.core
from bitcoin import SelectParams
from bitcoin.core import CScript
from bitcoin.core.script import CScriptOp, OP_0, OP_CHECKMULTISIG

from ..core import Destination
from ..errors import InsufficientStateError, MalformedInputError

log = logging.getLogger(__name__)


SUPPORTED_NETWORKS = ("mainnet", "testnet", "signet", "regtest")

_params_lock = threading.Lock()


@contextmanager
def _chain_params(network: str):
    """Select `network` for the duration of the block, then restore the previous params."""
    with _params_lock:
        prev_params, prev_core = bitcoin.params, bitcoin.core.coreparams
        SelectParams(network)
        try:
            yield
        finally:
            bitcoin.params, bitcoin.core.coreparams = prev_params, prev_core


def multisig_script(pubkeys: Sequence[bytes], required: int = 2) -> CScript:
    """
    Bare m-of-n CHECKMULTISIG script, keys kept in the given order.

    Args:
        pubkeys: 33-byte compressed pubkeys
        required: signatures needed (m)
    """
    if not 1 <= required <= len(pubkeys) <= 16:
        raise ValueError(f"Invalid multisig {required}-of-{len(pubkeys)}")
    for pk in pubkeys:
        if len(pk) != 33:
            raise MalformedInputError("Pubkeys must be 33 bytes (compressed)")

    return CScript(
        [CScriptOp.encode_op_n(required)]
        + list(pubkeys)
        + [CScriptOp.encode_op_n(len(pubkeys)), OP_CHECKMULTISIG]
    )


def p2wsh_script_pubkey(witness_script: bytes) -> CScript:
    """Witness program = SHA256(script)"""
    return CScript([OP_0, hashlib.sha256(witness_script).digest()])


def destination_to_script(destination: Destination, network: str = "signet") -> CScript:
    """
    Resolve a payout/change destination to its scriptPubKey.

    Args:
        destination: raw scriptPubKey bytes, or an address for `network`
        network: mainnet, testnet, signet or regtest

    Returns:
        scriptPubKey

    Address strings are decoded under `network` without leaving it selected:
    python-bitcoinlib chain params are process-global, so the previous
    selection is restored afterwards.
    """
    if destination is None:
        raise InsufficientStateError("Destination not received yet")
    if isinstance(destination, (bytes, bytearray)):
        return CScript(destination)
    if not isinstance(destination, str):
        raise TypeError(f"Unsupported destination type: {type(destination).__name__}")
    if network not in SUPPORTED_NETWORKS:
        raise ValueError(f"Unknown network: {network}")

    from bitcoin.wallet import CBitcoinAddress, CBitcoinAddressError

    with _chain_params(network):
        try:
            return CBitcoinAddress(destination).to_scriptPubKey()
        except CBitcoinAddressError as e:
            raise MalformedInputError(f"Invalid {network} address {destination}: {e}")
