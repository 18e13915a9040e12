"""
Script construction for tag-committed P2WSH outputs.

The locking (witness) script is:

    <33-byte pubkey> OP_CHECKSIGVERIFY <tag>

OP_CHECKSIGVERIFY fails the whole script on a bad signature. The tag is only
pushed; no comparison opcode follows it, so the script leaves the tag on the
stack for whoever inspects the revealed witness script.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterator

from coincurve import PublicKey

from tagspend.address import encode_segwit_address
from tagspend.constants import COMPRESSED_PUBKEY_SIZE, MAX_SCRIPT_ELEMENT_SIZE, MAX_SCRIPT_SIZE
from tagspend.errors import InvalidEncoding, ScriptBuildError, ScriptParseError
from tagspend.models import NetworkType

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_DROP = 0x75
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_SHA256 = 0xA8
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC
OP_CHECKSIGVERIFY = 0xAD
OP_CHECKLOCKTIMEVERIFY = 0xB1
OP_CHECKSEQUENCEVERIFY = 0xB2

OPCODE_NAMES: dict[int, str] = {
    OP_0: "OP_0",
    OP_PUSHDATA1: "OP_PUSHDATA1",
    OP_PUSHDATA2: "OP_PUSHDATA2",
    OP_PUSHDATA4: "OP_PUSHDATA4",
    OP_1NEGATE: "OP_1NEGATE",
    0x61: "OP_NOP",
    0x63: "OP_IF",
    0x64: "OP_NOTIF",
    0x67: "OP_ELSE",
    0x68: "OP_ENDIF",
    0x69: "OP_VERIFY",
    0x6A: "OP_RETURN",
    OP_DROP: "OP_DROP",
    OP_DUP: "OP_DUP",
    OP_EQUAL: "OP_EQUAL",
    OP_EQUALVERIFY: "OP_EQUALVERIFY",
    OP_SHA256: "OP_SHA256",
    OP_HASH160: "OP_HASH160",
    0xAA: "OP_HASH256",
    0xAB: "OP_CODESEPARATOR",
    OP_CHECKSIG: "OP_CHECKSIG",
    OP_CHECKSIGVERIFY: "OP_CHECKSIGVERIFY",
    0xAE: "OP_CHECKMULTISIG",
    0xAF: "OP_CHECKMULTISIGVERIFY",
    OP_CHECKLOCKTIMEVERIFY: "OP_CHECKLOCKTIMEVERIFY",
    OP_CHECKSEQUENCEVERIFY: "OP_CHECKSEQUENCEVERIFY",
}
for _n in range(1, 17):
    OPCODE_NAMES[OP_1 + _n - 1] = f"OP_{_n}"


def push_data(data: bytes) -> bytes:
    """Encode a data push using the smallest possible opcode."""
    length = len(data)
    if length > MAX_SCRIPT_ELEMENT_SIZE:
        raise ScriptBuildError(
            f"Element of {length} bytes exceeds the {MAX_SCRIPT_ELEMENT_SIZE}-byte push limit"
        )

    if length == 0 or (length == 1 and data[0] == 0):
        return bytes([OP_0])
    if length == 1 and 1 <= data[0] <= 16:
        return bytes([OP_1 + data[0] - 1])
    if length == 1 and data[0] == 0x81:
        return bytes([OP_1NEGATE])

    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


class ScriptBuilder:
    """Accumulates opcodes and data pushes into a script."""

    def __init__(self) -> None:
        self._script = bytearray()

    def add_op(self, opcode: int) -> ScriptBuilder:
        self._script.append(opcode)
        return self

    def add_data(self, data: bytes) -> ScriptBuilder:
        self._script += push_data(data)
        return self

    def script(self) -> bytes:
        if len(self._script) > MAX_SCRIPT_SIZE:
            raise ScriptBuildError(
                f"Script of {len(self._script)} bytes exceeds the {MAX_SCRIPT_SIZE}-byte limit"
            )
        return bytes(self._script)


def iter_script_ops(script: bytes) -> Iterator[tuple[int, bytes | None]]:
    """
    Walk a script, yielding (opcode, pushed_data) pairs.

    pushed_data is None for non-push opcodes.

    Raises:
        ScriptParseError: If a push claims more bytes than the script holds
    """
    offset = 0
    end = len(script)

    while offset < end:
        opcode = script[offset]
        offset += 1

        if 0 < opcode < OP_PUSHDATA1:
            size = opcode
        elif opcode == OP_PUSHDATA1:
            if offset + 1 > end:
                raise ScriptParseError(f"OP_PUSHDATA1 at offset {offset - 1} missing length")
            size = script[offset]
            offset += 1
        elif opcode == OP_PUSHDATA2:
            if offset + 2 > end:
                raise ScriptParseError(f"OP_PUSHDATA2 at offset {offset - 1} missing length")
            size = int.from_bytes(script[offset : offset + 2], "little")
            offset += 2
        elif opcode == OP_PUSHDATA4:
            if offset + 4 > end:
                raise ScriptParseError(f"OP_PUSHDATA4 at offset {offset - 1} missing length")
            size = int.from_bytes(script[offset : offset + 4], "little")
            offset += 4
        else:
            yield opcode, None
            continue

        if offset + size > end:
            raise ScriptParseError(
                f"Push of {size} bytes at offset {offset} runs past end of script ({end} bytes)"
            )
        yield opcode, script[offset : offset + size]
        offset += size


def check_script_parses(script: bytes) -> None:
    for _ in iter_script_ops(script):
        pass


def disassemble_script(script: bytes) -> str:
    """One-line ASM rendering: data pushes as hex, opcodes by name."""
    parts = []
    for opcode, data in iter_script_ops(script):
        if data is not None:
            parts.append(data.hex())
        else:
            parts.append(OPCODE_NAMES.get(opcode, f"OP_UNKNOWN{opcode}"))
    return " ".join(parts)


def _decode_hex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise InvalidEncoding(f"Invalid {what} hex: {e}") from e


def decode_pubkey(pubkey_hex: str) -> bytes:
    """Decode and validate a compressed secp256k1 public key."""
    pubkey_bytes = _decode_hex(pubkey_hex, "public key")

    if len(pubkey_bytes) != COMPRESSED_PUBKEY_SIZE or pubkey_bytes[0] not in (0x02, 0x03):
        raise InvalidEncoding(
            f"Public key must be {COMPRESSED_PUBKEY_SIZE} bytes, compressed "
            f"(got {len(pubkey_bytes)} bytes)"
        )

    try:
        PublicKey(pubkey_bytes)
    except ValueError as e:
        raise InvalidEncoding(f"Public key is not a point on secp256k1: {pubkey_hex}") from e

    return pubkey_bytes


def create_tag_script(pubkey_hex: str, tag_hex: str) -> bytes:
    """
    Create the witness script <pubkey> OP_CHECKSIGVERIFY <tag>.

    Args:
        pubkey_hex: Compressed public key (33 bytes, hex)
        tag_hex: Tag the spender reveals with the script (hex, any length)

    Returns:
        Witness script bytes
    """
    pubkey_bytes = decode_pubkey(pubkey_hex)
    tag_bytes = _decode_hex(tag_hex, "tag")

    return (
        ScriptBuilder()
        .add_data(pubkey_bytes)
        .add_op(OP_CHECKSIGVERIFY)
        .add_data(tag_bytes)
        .script()
    )


def script_to_p2wsh_address(script: bytes, network: NetworkType | str = NetworkType.MAINNET) -> str:
    """
    Convert a witness script to P2WSH (pay-to-witness-script-hash) address.
    BIP173/BIP141 encoding.

    Args:
        script: The witness script bytes
        network: Network type (mainnet, testnet, signet, regtest)

    Returns:
        Bech32 encoded P2WSH address
    """
    # P2WSH uses SHA256, not HASH160
    witness_program = hashlib.sha256(script).digest()
    return encode_segwit_address(0, witness_program, network)


def script_to_p2wsh_scriptpubkey(script: bytes) -> bytes:
    """P2WSH scriptPubKey (OP_0 <32-byte-hash>) for a witness script."""
    return bytes([OP_0, 0x20]) + hashlib.sha256(script).digest()


def create_tag_script_p2wsh(
    pubkey_hex: str, tag_hex: str, network: NetworkType | str = NetworkType.MAINNET
) -> tuple[str, bytes]:
    """
    Build the tag script and derive its P2WSH address.

    Returns:
        (address, witness_script)
    """
    script = create_tag_script(pubkey_hex, tag_hex)
    address = script_to_p2wsh_address(script, network)
    return address, script
