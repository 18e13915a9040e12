"""
Exception hierarchy for the spend pipeline.

Every stage raises a subclass of SpendError. Nothing is recovered locally;
the spend entry point turns any SpendError into a host abort.
"""

from __future__ import annotations


class SpendError(Exception):
    """Base class for all spend pipeline failures."""

    pass


class DecodeError(SpendError):
    """Malformed hex, or a hash/key/tag of the wrong length."""

    pass


class InvalidEncoding(DecodeError):
    pass


class InvalidTxId(DecodeError):
    pass


class ScriptBuildError(DecodeError):
    """A pushed element or the whole script exceeds consensus limits."""

    pass


class AddressError(SpendError):
    """Invalid address encoding or network mismatch."""

    pass


class AddressDerivationFailed(AddressError):
    pass


class InvalidDestinationAddress(AddressError):
    pass


class InvalidChangeAddress(AddressError):
    pass


class DigestError(SpendError):
    """The signing digest could not be computed."""

    pass


class DigestComputationFailed(DigestError):
    pass


class ScriptParseError(DigestError):
    """A data push runs past the end of the script."""

    pass


class SignatureError(SpendError):
    pass


class MissingKeyMaterial(SpendError):
    pass


class AmountError(SpendError):
    pass


class InsufficientFundsError(AmountError):
    pass


class InvalidAmountError(AmountError):
    pass


class InvalidTxVersion(SpendError):
    """The transaction version does not fit the signed 32-bit nVersion field."""

    pass


class SpendAborted(Exception):
    """Raised by the process host when a spend call is aborted."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
