"""
Bitcoin transaction wire format.

Serialization follows the standard format (BIP144 for witness data):

    version | [marker flag] | inputs | outputs | [witnesses] | locktime

The marker/flag pair is only written when at least one input carries
witness data, so an unsigned transaction serializes in the legacy format.
"""

from __future__ import annotations

import copy
import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any

from tagspend.constants import DEFAULT_LOCKTIME, DEFAULT_SEQUENCE, DEFAULT_TX_VERSION, HASH_SIZE
from tagspend.errors import DecodeError


class TransactionParseError(DecodeError):
    pass


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_varint(value: int) -> bytes:
    """Encode integer as Bitcoin varint (CompactSize)."""
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read a varint, returning (value, new_offset)."""
    if offset >= len(data):
        raise TransactionParseError(f"Unexpected end of data reading varint at {offset}")
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    size = {0xFD: 2, 0xFE: 4, 0xFF: 8}[first]
    if offset + size > len(data):
        raise TransactionParseError(f"Truncated varint at {offset - 1}")
    return int.from_bytes(data[offset : offset + size], "little"), offset + size


def serialize_bytes(data: bytes) -> bytes:
    """Length-prefixed byte string."""
    return encode_varint(len(data)) + data


def txid_to_bytes(txid: str) -> bytes:
    """Convert an RPC-order txid to the little-endian bytes used on the wire."""
    return bytes.fromhex(txid)[::-1]


@dataclass
class TxInput:
    """Transaction input. txid is in RPC (big-endian display) order."""

    txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = DEFAULT_SEQUENCE
    witness: list[bytes] = field(default_factory=list)

    def serialize_outpoint(self) -> bytes:
        return txid_to_bytes(self.txid) + struct.pack("<I", self.vout)

    def serialize(self) -> bytes:
        return (
            self.serialize_outpoint()
            + serialize_bytes(self.script_sig)
            + struct.pack("<I", self.sequence)
        )

    def serialize_witness(self) -> bytes:
        return encode_varint(len(self.witness)) + b"".join(
            serialize_bytes(item) for item in self.witness
        )


@dataclass
class TxOutput:
    """Transaction output."""

    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<q", self.value) + serialize_bytes(self.script_pubkey)


@dataclass
class Transaction:
    version: int = DEFAULT_TX_VERSION
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    locktime: int = DEFAULT_LOCKTIME

    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def copy(self) -> Transaction:
        return copy.deepcopy(self)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize to wire format. Witness data is written only if present."""
        with_witness = include_witness and self.has_witness()

        result = struct.pack("<i", self.version)
        if with_witness:
            result += bytes([0x00, 0x01])

        result += encode_varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.serialize()

        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if with_witness:
            for inp in self.inputs:
                result += inp.serialize_witness()

        result += struct.pack("<I", self.locktime)
        return result

    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, in RPC order."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize())
        return base_size * 3 + total_size

    def vsize(self) -> int:
        return (self.weight() + 3) // 4

    def to_dict(self) -> dict[str, Any]:
        return {
            "txid": self.txid(),
            "wtxid": self.wtxid(),
            "version": self.version,
            "size": len(self.serialize()),
            "vsize": self.vsize(),
            "weight": self.weight(),
            "locktime": self.locktime,
            "vin": [
                {
                    "txid": inp.txid,
                    "vout": inp.vout,
                    "scriptSig": inp.script_sig.hex(),
                    "sequence": inp.sequence,
                    "witness": [item.hex() for item in inp.witness],
                }
                for inp in self.inputs
            ],
            "vout": [
                {"n": n, "value": out.value, "scriptPubKey": out.script_pubkey.hex()}
                for n, out in enumerate(self.outputs)
            ],
        }

    @classmethod
    def parse(cls, raw: bytes) -> Transaction:
        """
        Parse a transaction from wire format (legacy or segwit).

        Raises:
            TransactionParseError: If the data is truncated or has trailing bytes
        """
        reader = _Reader(raw)

        version = struct.unpack("<i", reader.read(4))[0]

        has_witness = False
        if reader.peek(2) == b"\x00\x01":
            has_witness = True
            reader.read(2)

        inputs: list[TxInput] = []
        for _ in range(reader.varint()):
            txid = reader.read(HASH_SIZE)[::-1].hex()
            vout = struct.unpack("<I", reader.read(4))[0]
            script_sig = reader.read(reader.varint())
            sequence = struct.unpack("<I", reader.read(4))[0]
            inputs.append(TxInput(txid=txid, vout=vout, script_sig=script_sig, sequence=sequence))

        outputs: list[TxOutput] = []
        for _ in range(reader.varint()):
            value = struct.unpack("<q", reader.read(8))[0]
            script_pubkey = reader.read(reader.varint())
            outputs.append(TxOutput(value=value, script_pubkey=script_pubkey))

        if has_witness:
            for inp in inputs:
                inp.witness = [reader.read(reader.varint()) for _ in range(reader.varint())]

        locktime = struct.unpack("<I", reader.read(4))[0]

        if not reader.at_end():
            raise TransactionParseError(f"{reader.remaining()} trailing bytes after locktime")

        return cls(version=version, inputs=inputs, outputs=outputs, locktime=locktime)

    @classmethod
    def from_hex(cls, raw_hex: str) -> Transaction:
        try:
            raw = bytes.fromhex(raw_hex)
        except ValueError as e:
            raise TransactionParseError(f"Invalid transaction hex: {e}") from e
        return cls.parse(raw)


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, size: int) -> bytes:
        if self.offset + size > len(self.data):
            raise TransactionParseError(
                f"Unexpected end of data: need {size} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def peek(self, size: int) -> bytes:
        return self.data[self.offset : self.offset + size]

    def varint(self) -> int:
        value, self.offset = read_varint(self.data, self.offset)
        return value

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def at_end(self) -> bool:
        return self.offset == len(self.data)
