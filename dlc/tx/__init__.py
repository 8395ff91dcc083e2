"""
Transaction construction for DLCs.

- script: funding multisig, P2WSH and destination scripts
- builder: funding, refund and CET builders plus remote signature checks
"""

from .builder import DLCTransactionBuilder, DLCConfig, CetSigStatus, Party, FundingCoin
from .script import multisig_script, p2wsh_script_pubkey, destination_to_script

__all__ = [
    "DLCTransactionBuilder",
    "DLCConfig",
    "CetSigStatus",
    "Party",
    "FundingCoin",
    "multisig_script",
    "p2wsh_script_pubkey",
    "destination_to_script",
]
