"""
tagspend - build, sign and serialize spends of tag-committed P2WSH outputs

The witness script is <pubkey> OP_CHECKSIGVERIFY <tag>; spending it reveals
the tag together with a signature over the BIP143 digest.
"""

__version__ = "0.1.0"

from tagspend.constants import DEFAULT_TX_VERSION, SIGHASH_ALL, STANDARD_DUST_LIMIT
from tagspend.errors import (
    AddressDerivationFailed,
    AddressError,
    DecodeError,
    DigestComputationFailed,
    DigestError,
    InsufficientFundsError,
    InvalidChangeAddress,
    InvalidDestinationAddress,
    InvalidEncoding,
    InvalidTxId,
    InvalidTxVersion,
    MissingKeyMaterial,
    SignatureError,
    SpendAborted,
    SpendError,
)
from tagspend.finalizer import finalize, serialize_unsigned
from tagspend.models import ChangeAddressNetwork, NetworkType, SigningHandoff, SpendMode, Utxo
from tagspend.script import create_tag_script, create_tag_script_p2wsh
from tagspend.signer import LocalSigner, PresignedSigner, Signer, verify_signature
from tagspend.spend import Host, ProcessHost, complete_handoff, spend
from tagspend.transaction import Transaction, TxInput, TxOutput
from tagspend.tx_builder import SpendTxBuilder, build_spend_transaction

__all__ = [
    "AddressDerivationFailed",
    "AddressError",
    "ChangeAddressNetwork",
    "DEFAULT_TX_VERSION",
    "DecodeError",
    "DigestComputationFailed",
    "DigestError",
    "Host",
    "InsufficientFundsError",
    "InvalidChangeAddress",
    "InvalidDestinationAddress",
    "InvalidEncoding",
    "InvalidTxId",
    "InvalidTxVersion",
    "LocalSigner",
    "MissingKeyMaterial",
    "NetworkType",
    "PresignedSigner",
    "ProcessHost",
    "SIGHASH_ALL",
    "STANDARD_DUST_LIMIT",
    "SignatureError",
    "Signer",
    "SigningHandoff",
    "SpendAborted",
    "SpendError",
    "SpendMode",
    "SpendTxBuilder",
    "Transaction",
    "TxInput",
    "TxOutput",
    "Utxo",
    "build_spend_transaction",
    "complete_handoff",
    "create_tag_script",
    "create_tag_script_p2wsh",
    "finalize",
    "serialize_unsigned",
    "spend",
    "verify_signature",
]
