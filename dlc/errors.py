"""
Error taxonomy for the DLC transaction builder.

Every error is raised synchronously and never retried internally. The class
tells the caller what to do next:

    InsufficientStateError  wait for more protocol messages, then call again
    InvalidOutcomeError     caller/protocol bug, abort
    MissingSignatureError   counterparty sent an incomplete bundle
    MalformedInputError     counterparty or oracle sent undecodable data
    AmountError             collateral/fee arithmetic went out of range

A signature that decodes fine but does not verify is not an error: the
verifier returns False for it.
"""


class DLCError(Exception):
    """Base class for all DLC builder errors."""


class InsufficientStateError(DLCError, RuntimeError):
    """Operation invoked before the negotiation fields it needs arrived."""


class InvalidOutcomeError(DLCError, ValueError):
    """Outcome id is not (uniquely) present in the offer's outcome table."""


class MissingSignatureError(DLCError, KeyError):
    """Signature bundle has no entry for a required outcome or the refund."""

    def __str__(self) -> str:
        # KeyError repr()s its argument
        return str(self.args[0]) if self.args else ""


class MalformedInputError(DLCError, ValueError):
    """Encoded point, scalar or signature could not be decoded."""


class AmountError(DLCError, ValueError):
    """Computed output amount is negative or exceeds the money range."""
