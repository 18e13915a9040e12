"""
The spend entry point.

One call builds the tag script, assembles the spend transaction and either
hands off the digest for offline signing (SpendMode.PREPARE) or signs and
finalizes inline (SpendMode.SIGN). A call either returns a complete artifact
or aborts through its host; nothing partial is ever returned.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import NoReturn

from loguru import logger
from pydantic import ValidationError

from tagspend.config import Settings, get_settings
from tagspend.errors import InvalidEncoding, SignatureError, SpendAborted, SpendError
from tagspend.finalizer import attach_witness, create_p2wsh_witness_stack, finalize
from tagspend.models import SigningHandoff, SpendMode
from tagspend.script import create_tag_script_p2wsh, decode_pubkey, disassemble_script
from tagspend.signer import LocalSigner, Signer, verify_signature
from tagspend.transaction import Transaction
from tagspend.tx_builder import SpendTxBuilder


class Host(ABC):
    """Capabilities the hosting environment provides to a spend call."""

    @abstractmethod
    def log(self, message: str) -> None:
        """Emit a diagnostic line"""

    @abstractmethod
    def abort(self, reason: str) -> NoReturn:
        """Terminate the call, surfacing reason to the caller"""

    @abstractmethod
    def get_secret(self, name: str) -> str | None:
        """Look up a secret by name, None if absent"""


class ProcessHost(Host):
    """Host backed by loguru and the process environment."""

    def __init__(self, environ: Mapping[str, str] | None = None):
        self.environ = os.environ if environ is None else environ

    def log(self, message: str) -> None:
        logger.info(message)

    def abort(self, reason: str) -> NoReturn:
        logger.error(f"Spend aborted: {reason}")
        raise SpendAborted(reason)

    def get_secret(self, name: str) -> str | None:
        return self.environ.get(name) or None


@dataclass
class PreparedSpend:
    """Unsigned spend plus everything needed to sign it."""

    address: str
    redeem_script: bytes
    tx: Transaction
    digest: bytes
    input_index: int = 0

    def handoff(self) -> SigningHandoff:
        return SigningHandoff(
            raw_tx_hex=self.tx.serialize(include_witness=False).hex(),
            input_index=self.input_index,
            sighash_hex=self.digest.hex(),
            redeem_script_hex=self.redeem_script.hex(),
        )


def prepare_spend(settings: Settings) -> PreparedSpend:
    """Build the tag script and the unsigned spend with its digest."""
    address, redeem_script = create_tag_script_p2wsh(
        settings.pubkey, settings.tag, settings.network
    )
    logger.debug(f"Witness script: {disassemble_script(redeem_script)}")

    builder = SpendTxBuilder(
        network=settings.network,
        change_network=settings.change_address_network,
        dust_threshold=settings.dust_threshold,
        version=settings.tx_version,
    )
    tx, digest = builder.build(
        settings.utxo,
        redeem_script,
        settings.destination_address,
        settings.change_address,
        settings.send_amount,
        settings.fee_amount,
    )
    return PreparedSpend(address=address, redeem_script=redeem_script, tx=tx, digest=digest)


def sign_inline(prepared: PreparedSpend, signer: LocalSigner, pubkey: bytes) -> str:
    """Sign the prepared digest and return the finalized transaction hex."""
    if signer.public_key != pubkey:
        raise SignatureError("Private key does not match the public key in the witness script")

    signature = signer.sign(prepared.digest)
    if not verify_signature(pubkey, prepared.digest, signature):
        raise SignatureError("Produced signature does not verify")

    return finalize(prepared.tx, signature, prepared.redeem_script).hex()


def _run(payload: str | None, mode: SpendMode, settings: Settings, host: Host) -> str:
    prepared = prepare_spend(settings)

    if mode == SpendMode.PREPARE:
        return prepared.handoff().to_json()

    host.log(f"Script Address: {prepared.address}")
    host.log(f"Payload: {payload}")

    secret = host.get_secret(settings.private_key_secret)
    with LocalSigner.from_secret(secret) as signer:
        host.log(f"Sighash: {prepared.digest.hex()}")
        raw_tx_hex = sign_inline(prepared, signer, decode_pubkey(settings.pubkey))

    host.log(f"Signed Tx: {raw_tx_hex}")
    return raw_tx_hex


def spend(
    payload: str | None = None,
    *,
    mode: SpendMode = SpendMode.PREPARE,
    settings: Settings | None = None,
    host: Host | None = None,
) -> str:
    """
    Build, and optionally sign, the spend of the tag script UTXO.

    Args:
        payload: Opaque caller payload; logged in SIGN mode, ignored otherwise
        mode: PREPARE returns the signing handoff JSON, SIGN the signed tx hex
        settings: Spend parameters (loaded from the environment if omitted)
        host: Logging/abort/secret capabilities (ProcessHost if omitted)

    Returns:
        Handoff JSON (PREPARE) or finalized raw transaction hex (SIGN)
    """
    settings = settings if settings is not None else get_settings()
    host = host if host is not None else ProcessHost()

    try:
        return _run(payload, SpendMode(mode), settings, host)
    except (SpendError, ValidationError) as e:
        host.abort(str(e))


def complete_handoff(handoff: SigningHandoff, signer: Signer) -> str:
    """
    Finish a PREPARE-mode spend with a signature from any signer.

    Returns:
        Finalized raw transaction hex
    """
    tx = Transaction.from_hex(handoff.raw_tx_hex)
    try:
        digest = bytes.fromhex(handoff.sighash_hex)
        redeem_script = bytes.fromhex(handoff.redeem_script_hex)
    except ValueError as e:
        raise InvalidEncoding(f"Invalid handoff hex: {e}") from e

    signature = signer.sign(digest)
    stack = create_p2wsh_witness_stack(signature, redeem_script)
    return attach_witness(tx, handoff.input_index, stack).serialize().hex()
