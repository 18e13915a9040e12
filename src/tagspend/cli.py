"""
tagspend CLI - derive tag script addresses, prepare, sign and finalize spends.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger

from tagspend.config import get_settings
from tagspend.errors import SpendAborted, SpendError
from tagspend.models import ChangeAddressNetwork, NetworkType, SigningHandoff, SpendMode
from tagspend.script import create_tag_script_p2wsh, disassemble_script
from tagspend.signer import PresignedSigner
from tagspend.spend import complete_handoff, spend
from tagspend.transaction import Transaction

app = typer.Typer(
    name="tagspend",
    help="Spend tag-committed P2WSH outputs",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _spend_overrides(**options: Any) -> dict[str, Any]:
    return {key: value for key, value in options.items() if value is not None}


@app.command()
def address(
    pubkey: str | None = typer.Option(None, "--pubkey", "-k", help="Compressed pubkey (hex)"),
    tag: str | None = typer.Option(None, "--tag", "-t", help="Tag to commit to (hex)"),
    network: NetworkType | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Show the P2WSH address and witness script for a pubkey and tag."""
    setup_logging(log_level)
    settings = get_settings(**_spend_overrides(pubkey=pubkey, tag=tag, network=network))

    try:
        addr, script = create_tag_script_p2wsh(settings.pubkey, settings.tag, settings.network)
    except SpendError as e:
        logger.error(f"Failed to build script: {e}")
        raise typer.Exit(1)

    typer.echo(f"Address: {addr}")
    typer.echo(f"Script:  {script.hex()}")
    typer.echo(f"ASM:     {disassemble_script(script)}")


def _run_spend(mode: SpendMode, payload: str | None, overrides: dict[str, Any]) -> None:
    settings = get_settings(**overrides)
    setup_logging(settings.log_level)

    try:
        result = spend(payload, mode=mode, settings=settings)
    except SpendAborted:
        raise typer.Exit(1)

    typer.echo(result)


@app.command()
def prepare(
    network: NetworkType | None = typer.Option(None, "--network", "-n"),
    pubkey: str | None = typer.Option(None, "--pubkey", "-k"),
    tag: str | None = typer.Option(None, "--tag", "-t"),
    txid: str | None = typer.Option(None, "--txid", help="UTXO txid"),
    vout: int | None = typer.Option(None, "--vout", help="UTXO output index"),
    amount: int | None = typer.Option(None, "--amount", help="UTXO value in sats"),
    destination: str | None = typer.Option(None, "--destination", "-d"),
    change: str | None = typer.Option(None, "--change", "-c"),
    send_amount: int | None = typer.Option(None, "--send", "-s", help="Sats to send"),
    fee_amount: int | None = typer.Option(None, "--fee", "-f", help="Fee in sats"),
    change_network: ChangeAddressNetwork | None = typer.Option(
        None, "--change-network", help="mainnet (historical) or consistent"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Build the unsigned spend and print the signing handoff JSON."""
    _run_spend(
        SpendMode.PREPARE,
        None,
        _spend_overrides(
            network=network,
            pubkey=pubkey,
            tag=tag,
            utxo_txid=txid,
            utxo_vout=vout,
            utxo_amount=amount,
            destination_address=destination,
            change_address=change,
            send_amount=send_amount,
            fee_amount=fee_amount,
            change_address_network=change_network,
            log_level=log_level,
        ),
    )


@app.command()
def sign(
    payload: str | None = typer.Option(None, "--payload", "-p", help="Opaque payload to log"),
    network: NetworkType | None = typer.Option(None, "--network", "-n"),
    pubkey: str | None = typer.Option(None, "--pubkey", "-k"),
    tag: str | None = typer.Option(None, "--tag", "-t"),
    txid: str | None = typer.Option(None, "--txid", help="UTXO txid"),
    vout: int | None = typer.Option(None, "--vout", help="UTXO output index"),
    amount: int | None = typer.Option(None, "--amount", help="UTXO value in sats"),
    destination: str | None = typer.Option(None, "--destination", "-d"),
    change: str | None = typer.Option(None, "--change", "-c"),
    send_amount: int | None = typer.Option(None, "--send", "-s", help="Sats to send"),
    fee_amount: int | None = typer.Option(None, "--fee", "-f", help="Fee in sats"),
    change_network: ChangeAddressNetwork | None = typer.Option(None, "--change-network"),
    key_secret: str | None = typer.Option(
        None, "--key-secret", help="Environment variable holding the private key"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Build, sign inline and print the finalized raw transaction."""
    _run_spend(
        SpendMode.SIGN,
        payload,
        _spend_overrides(
            network=network,
            pubkey=pubkey,
            tag=tag,
            utxo_txid=txid,
            utxo_vout=vout,
            utxo_amount=amount,
            destination_address=destination,
            change_address=change,
            send_amount=send_amount,
            fee_amount=fee_amount,
            change_address_network=change_network,
            private_key_secret=key_secret,
            log_level=log_level,
        ),
    )


@app.command()
def finalize(
    handoff: str = typer.Argument(..., help="Handoff JSON, or path to a file containing it"),
    signature: str = typer.Option(..., "--signature", "-S", help="DER signature + sighash byte"),
    pubkey: str | None = typer.Option(
        None, "--pubkey", "-k", help="Verify the signature against this pubkey first"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Attach an externally produced signature to a prepared spend."""
    setup_logging(log_level)

    if handoff.lstrip().startswith("{"):
        data = handoff
    else:
        handoff_path = Path(handoff)
        if not handoff_path.exists():
            logger.error(f"Handoff file not found: {handoff_path}")
            raise typer.Exit(1)
        data = handoff_path.read_text()

    try:
        signing_handoff = SigningHandoff.from_json(data)
        raw_tx_hex = complete_handoff(
            signing_handoff, PresignedSigner.from_hex(signature, pubkey)
        )
    except ValueError as e:
        logger.error(f"Invalid handoff: {e}")
        raise typer.Exit(1)
    except SpendError as e:
        logger.error(f"Failed to finalize: {e}")
        raise typer.Exit(1)

    typer.echo(raw_tx_hex)


@app.command()
def decode(
    raw_tx: str = typer.Argument(..., help="Raw transaction hex"),
) -> None:
    """Decode a raw transaction to JSON."""
    setup_logging()

    try:
        tx = Transaction.from_hex(raw_tx.strip())
    except SpendError as e:
        logger.error(f"Failed to decode transaction: {e}")
        raise typer.Exit(1)

    typer.echo(json.dumps(tx.to_dict(), indent=2))


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
