"""
Core data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from tagspend.constants import MAX_SATOSHIS


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


class SpendMode(str, Enum):
    """How a spend call finishes.

    PREPARE stops after the digest and returns a signing handoff for an
    offline signer. SIGN signs inline with held key material and returns the
    finalized raw transaction.
    """

    PREPARE = "prepare"
    SIGN = "sign"


class ChangeAddressNetwork(str, Enum):
    """Which chain parameters the change address is decoded against.

    MAINNET keeps the historical behavior: the change address is always
    decoded against main-chain parameters, whatever network the rest of the
    transaction targets. CONSISTENT decodes it against the transaction's
    own network.
    """

    MAINNET = "mainnet"
    CONSISTENT = "consistent"


class Utxo(BaseModel):
    """The single coin being spent. The txid is in RPC (display) byte order."""

    txid: str
    vout: int = Field(..., ge=0, le=0xFFFFFFFF)
    amount: int = Field(..., ge=0, le=MAX_SATOSHIS, description="Value of the coin in sats")

    model_config = {"frozen": True}

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


class SigningHandoff(BaseModel):
    """Snapshot of an unsigned spend, handed to an out-of-band signer.

    Serialized with the keys RawTxHex, InputIndex, SigHashHex and
    RedeemScriptHex.
    """

    raw_tx_hex: str = Field(..., alias="RawTxHex")
    input_index: int = Field(0, alias="InputIndex", ge=0)
    sighash_hex: str = Field(..., alias="SigHashHex")
    redeem_script_hex: str = Field(..., alias="RedeemScriptHex")

    model_config = {"frozen": True, "populate_by_name": True}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> SigningHandoff:
        return cls.model_validate_json(data)
