"""
Witness attachment and final serialization.
"""

from __future__ import annotations

from tagspend.errors import DigestComputationFailed, SignatureError
from tagspend.transaction import Transaction


def serialize_unsigned(tx: Transaction) -> bytes:
    """Serialize without witness data (the handoff format)."""
    return tx.serialize(include_witness=False)


def create_p2wsh_witness_stack(signature: bytes, witness_script: bytes) -> list[bytes]:
    """Witness for the tag script: [signature, witness_script]."""
    return [signature, witness_script]


def attach_witness(tx: Transaction, input_index: int, stack: list[bytes]) -> Transaction:
    """Return a copy of tx with the witness of one input replaced."""
    if not 0 <= input_index < len(tx.inputs):
        raise DigestComputationFailed(
            f"Input index {input_index} out of range ({len(tx.inputs)} inputs)"
        )
    signed = tx.copy()
    signed.inputs[input_index].witness = list(stack)
    return signed


def finalize_transaction(tx: Transaction, signature: bytes, redeem_script: bytes) -> Transaction:
    if not signature:
        raise SignatureError("Cannot finalize with an empty signature")
    return attach_witness(tx, 0, create_p2wsh_witness_stack(signature, redeem_script))


def finalize(tx: Transaction, signature: bytes, redeem_script: bytes) -> bytes:
    """
    Attach [signature, redeem_script] as the witness of input 0 and serialize.

    P2WSH takes the last witness item as the script, so the signature
    must come first.

    Args:
        tx: Unsigned transaction
        signature: DER signature with sighash byte
        redeem_script: Witness script

    Returns:
        Signed transaction bytes (segwit serialization)
    """
    return finalize_transaction(tx, signature, redeem_script).serialize()
