"""
Transaction builder for tag script spends.

Builds the unsigned spend transaction from:
- The single UTXO locked to the tag script
- A destination address and amount
- A change address, used only when the change clears the dust limit
- A fixed fee (no estimation)

and computes the BIP143 digest input 0 must be signed over.
"""

from __future__ import annotations

from loguru import logger

from tagspend.address import decode_address
from tagspend.constants import (
    DEFAULT_TX_VERSION,
    HASH_SIZE,
    MAX_SATOSHIS,
    MAX_TX_VERSION,
    MIN_TX_VERSION,
    SIGHASH_ALL,
    STANDARD_DUST_LIMIT,
)
from tagspend.errors import (
    AddressError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidChangeAddress,
    InvalidDestinationAddress,
    InvalidTxId,
    InvalidTxVersion,
)
from tagspend.models import ChangeAddressNetwork, NetworkType, Utxo
from tagspend.sighash import compute_witness_sighash
from tagspend.transaction import Transaction, TxInput, TxOutput


def validate_txid(txid: str) -> None:
    """Check that a txid is a 32-byte hash in hex."""
    try:
        txid_bytes = bytes.fromhex(txid)
    except ValueError as e:
        raise InvalidTxId(f"Invalid txid hex: {txid}") from e
    if len(txid_bytes) != HASH_SIZE:
        raise InvalidTxId(f"Txid must be {HASH_SIZE} bytes, got {len(txid_bytes)}: {txid}")


def calculate_change(utxo_amount: int, send_amount: int, fee_amount: int) -> int:
    """
    Change left after paying the destination and the fee.

    Raises:
        InvalidAmountError: An amount outside its valid range
        InsufficientFundsError: The coin cannot cover send_amount + fee_amount
    """
    if send_amount <= 0:
        raise InvalidAmountError(f"Send amount must be positive, got {send_amount}")
    if fee_amount < 0:
        raise InvalidAmountError(f"Fee amount must not be negative, got {fee_amount}")
    if send_amount > MAX_SATOSHIS:
        raise InvalidAmountError(f"Send amount {send_amount} exceeds the 21M BTC supply")
    if utxo_amount > MAX_SATOSHIS:
        raise InvalidAmountError(f"UTXO amount {utxo_amount} exceeds the 21M BTC supply")

    change = utxo_amount - send_amount - fee_amount
    if change < 0:
        raise InsufficientFundsError(
            f"UTXO holds {utxo_amount} sats, need {send_amount} + {fee_amount} fee "
            f"({-change} sats short)"
        )
    return change


class SpendTxBuilder:
    """
    Builds single-input spends of a P2WSH tag script output.

    The transaction structure:
    - Input 0: the UTXO, empty scriptSig
    - Output 0: destination
    - Output 1: change, only when it exceeds the dust threshold
    """

    def __init__(
        self,
        network: NetworkType | str = NetworkType.MAINNET,
        change_network: ChangeAddressNetwork = ChangeAddressNetwork.MAINNET,
        dust_threshold: int = STANDARD_DUST_LIMIT,
        version: int = DEFAULT_TX_VERSION,
    ):
        self.network = NetworkType(network)
        self.change_network = ChangeAddressNetwork(change_network)
        self.dust_threshold = dust_threshold
        if not MIN_TX_VERSION <= version <= MAX_TX_VERSION:
            raise InvalidTxVersion(f"Transaction version {version} is outside the int32 range")
        self.version = version

    def destination_script(self, address: str) -> bytes:
        try:
            return decode_address(address, self.network, strict=True)
        except AddressError as e:
            raise InvalidDestinationAddress(f"Invalid destination address: {e}") from e

    def change_script(self, address: str) -> bytes:
        if self.change_network == ChangeAddressNetwork.CONSISTENT:
            try:
                return decode_address(address, self.network, strict=True)
            except AddressError as e:
                raise InvalidChangeAddress(f"Invalid change address: {e}") from e

        try:
            script = decode_address(address, NetworkType.MAINNET, strict=False)
        except AddressError as e:
            raise InvalidChangeAddress(
                f"Invalid change address (decoded against mainnet parameters): {e}"
            ) from e

        if self.network != NetworkType.MAINNET:
            try:
                decode_address(address, self.network, strict=True)
            except AddressError:
                logger.warning(
                    f"Change address {address} decoded against mainnet parameters "
                    f"does not belong to {self.network.value}"
                )
        return script

    def build_unsigned_tx(
        self,
        utxo: Utxo,
        dest_address: str,
        change_address: str,
        send_amount: int,
        fee_amount: int,
    ) -> Transaction:
        """Assemble the unsigned transaction (no digest)."""
        validate_txid(utxo.txid)
        dest_script = self.destination_script(dest_address)
        change_amount = calculate_change(utxo.amount, send_amount, fee_amount)

        tx = Transaction(version=self.version)
        tx.inputs.append(TxInput(txid=utxo.txid, vout=utxo.vout))
        tx.outputs.append(TxOutput(value=send_amount, script_pubkey=dest_script))

        if change_amount > self.dust_threshold:
            tx.outputs.append(
                TxOutput(value=change_amount, script_pubkey=self.change_script(change_address))
            )
            logger.debug(f"Change output: {change_amount} sats to {change_address}")
        else:
            logger.debug(
                f"Change {change_amount} sats at or below dust threshold "
                f"{self.dust_threshold}, adding to fee"
            )

        return tx

    def build(
        self,
        utxo: Utxo,
        redeem_script: bytes,
        dest_address: str,
        change_address: str,
        send_amount: int,
        fee_amount: int,
    ) -> tuple[Transaction, bytes]:
        """
        Build the unsigned spend and its signing digest.

        Args:
            utxo: Coin locked to the P2WSH of redeem_script
            redeem_script: Witness script, used as the BIP143 scriptCode
            dest_address: Destination address (must match the network)
            change_address: Change address
            send_amount: Sats paid to the destination
            fee_amount: Sats left for the miner

        Returns:
            (unsigned_tx, digest) where digest is the SIGHASH_ALL digest of input 0
        """
        tx = self.build_unsigned_tx(utxo, dest_address, change_address, send_amount, fee_amount)

        # Outputs are final here; the digest commits to all of them
        digest = compute_witness_sighash(
            tx,
            input_index=0,
            script_code=redeem_script,
            amount=utxo.amount,
            sighash_type=SIGHASH_ALL,
        )

        logger.debug(
            f"Built spend of {utxo.outpoint}: {len(tx.outputs)} outputs, "
            f"fee {utxo.amount - sum(out.value for out in tx.outputs)} sats"
        )
        return tx, digest


def build_spend_transaction(
    utxo: Utxo,
    redeem_script: bytes,
    dest_address: str,
    change_address: str,
    send_amount: int,
    fee_amount: int,
    network: NetworkType | str = NetworkType.MAINNET,
    change_network: ChangeAddressNetwork = ChangeAddressNetwork.MAINNET,
    dust_threshold: int = STANDARD_DUST_LIMIT,
    version: int = DEFAULT_TX_VERSION,
) -> tuple[Transaction, bytes]:
    """
    Build a complete unsigned tag script spend.

    Returns:
        (unsigned_tx, digest)
    """
    builder = SpendTxBuilder(
        network=network,
        change_network=change_network,
        dust_threshold=dust_threshold,
        version=version,
    )
    return builder.build(
        utxo, redeem_script, dest_address, change_address, send_amount, fee_amount
    )
