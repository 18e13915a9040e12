"""
BIP143 signature hash for witness v0 inputs.
"""

from __future__ import annotations

import struct

from tagspend.constants import (
    HASH_SIZE,
    SIGHASH_ALL,
    SIGHASH_ANYONECANPAY,
    SIGHASH_NONE,
    SIGHASH_SINGLE,
)
from tagspend.errors import DigestComputationFailed, ScriptParseError
from tagspend.script import check_script_parses
from tagspend.transaction import Transaction, hash256, serialize_bytes

ZERO_HASH = bytes(HASH_SIZE)


def compute_witness_sighash(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    amount: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    Compute the BIP143 digest a witness v0 signature commits to.

    For P2WSH the scriptCode is the witness script itself.

    Args:
        tx: The transaction being signed, with its final outputs
        input_index: Index of the input to sign
        script_code: Witness script (without length prefix)
        amount: Value of the coin spent by the input, in satoshis
        sighash_type: Sighash flags (SIGHASH_ALL by default)

    Returns:
        32-byte digest

    Raises:
        DigestComputationFailed: Out-of-range input or unparseable script code
    """
    if not 0 <= input_index < len(tx.inputs):
        raise DigestComputationFailed(
            f"Input index {input_index} out of range ({len(tx.inputs)} inputs)"
        )

    try:
        check_script_parses(script_code)
    except ScriptParseError as e:
        raise DigestComputationFailed(f"Malformed script code: {e}") from e

    base_type = sighash_type & 0x1F
    anyone_can_pay = bool(sighash_type & SIGHASH_ANYONECANPAY)

    hash_prevouts = ZERO_HASH
    if not anyone_can_pay:
        hash_prevouts = hash256(b"".join(inp.serialize_outpoint() for inp in tx.inputs))

    hash_sequence = ZERO_HASH
    if not anyone_can_pay and base_type not in (SIGHASH_SINGLE, SIGHASH_NONE):
        hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))

    hash_outputs = ZERO_HASH
    if base_type not in (SIGHASH_SINGLE, SIGHASH_NONE):
        hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))
    elif base_type == SIGHASH_SINGLE and input_index < len(tx.outputs):
        hash_outputs = hash256(tx.outputs[input_index].serialize())

    target = tx.inputs[input_index]

    preimage = (
        struct.pack("<i", tx.version)
        + hash_prevouts
        + hash_sequence
        + target.serialize_outpoint()
        + serialize_bytes(script_code)
        + struct.pack("<q", amount)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )

    return hash256(preimage)
