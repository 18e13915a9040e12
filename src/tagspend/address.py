"""
Bitcoin address encoding and decoding.

Supports:
- P2WPKH / P2WSH (bech32, witness v0)
- P2TR (bech32m, witness v1)
- P2PKH / P2SH (base58check)

Other witness versions and program sizes are rejected.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58
from bip_utils import Bech32ChecksumError, SegwitBech32Decoder, SegwitBech32Encoder

from tagspend.errors import AddressDerivationFailed, AddressError
from tagspend.models import NetworkType


@dataclass(frozen=True)
class NetworkParams:
    """Address-relevant chain parameters for one network."""

    name: NetworkType
    bech32_hrp: str
    pubkey_hash_prefix: int
    script_hash_prefix: int
    wif_prefix: int


MAINNET_PARAMS = NetworkParams(NetworkType.MAINNET, "bc", 0x00, 0x05, 0x80)
TESTNET_PARAMS = NetworkParams(NetworkType.TESTNET, "tb", 0x6F, 0xC4, 0xEF)
SIGNET_PARAMS = NetworkParams(NetworkType.SIGNET, "tb", 0x6F, 0xC4, 0xEF)
REGTEST_PARAMS = NetworkParams(NetworkType.REGTEST, "bcrt", 0x6F, 0xC4, 0xEF)

NETWORKS: dict[NetworkType, NetworkParams] = {
    NetworkType.MAINNET: MAINNET_PARAMS,
    NetworkType.TESTNET: TESTNET_PARAMS,
    NetworkType.SIGNET: SIGNET_PARAMS,
    NetworkType.REGTEST: REGTEST_PARAMS,
}

# Every segwit prefix a lenient decode will accept, whatever the target network
KNOWN_SEGWIT_HRPS = frozenset(p.bech32_hrp for p in NETWORKS.values())

# Witness version -> accepted program sizes (P2WPKH/P2WSH, P2TR)
WITNESS_PROGRAM_SIZES: dict[int, tuple[int, ...]] = {0: (20, 32), 1: (32,)}


def get_network_params(network: NetworkType | str) -> NetworkParams:
    try:
        return NETWORKS[NetworkType(network)]
    except ValueError as e:
        raise AddressError(f"Unknown network: {network}") from e


def check_witness_program(witver: int, witprog: bytes) -> None:
    sizes = WITNESS_PROGRAM_SIZES.get(witver)
    if sizes is None:
        raise AddressError(f"Unsupported witness version: {witver}")
    if len(witprog) not in sizes:
        raise AddressError(
            f"Invalid witness v{witver} program length {len(witprog)} (expected {sizes})"
        )


def witness_program_to_scriptpubkey(witver: int, witprog: bytes) -> bytes:
    """Build OP_n <program> for a witness output."""
    check_witness_program(witver, witprog)
    version_op = 0x00 if witver == 0 else 0x50 + witver
    return bytes([version_op, len(witprog)]) + witprog


def encode_segwit_address(
    witver: int, witprog: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """Encode a witness program as a bech32 (v0) or bech32m (v1) address."""
    try:
        params = get_network_params(network)
        check_witness_program(witver, witprog)
        return SegwitBech32Encoder.Encode(params.bech32_hrp, witver, witprog)
    except (AddressError, ValueError) as e:
        raise AddressDerivationFailed(
            f"Failed to encode witness v{witver} program {witprog.hex()}: {e}"
        ) from e


def _segwit_hrp(address: str) -> str | None:
    sep = address.rfind("1")
    if sep <= 1:
        return None
    hrp = address[:sep].lower()
    return hrp if hrp in KNOWN_SEGWIT_HRPS else None


def _decode_segwit(hrp: str, address: str) -> bytes:
    try:
        witver, witprog = SegwitBech32Decoder.Decode(hrp, address)
    except (Bech32ChecksumError, ValueError) as e:
        raise AddressError(f"Invalid bech32 address {address}: {e}") from e

    witprog = bytes(witprog)
    check_witness_program(witver, witprog)

    # v0 must use the bech32 checksum and v1 bech32m
    if SegwitBech32Encoder.Encode(hrp, witver, witprog) != address.lower():
        raise AddressError(f"Wrong checksum variant for witness v{witver} address: {address}")

    return witness_program_to_scriptpubkey(witver, witprog)


def decode_address(
    address: str, network: NetworkType | str = NetworkType.MAINNET, strict: bool = True
) -> bytes:
    """
    Decode an address into its output script.

    Base58 addresses must carry a version byte of the given network. For
    bech32 addresses, strict mode requires the human-readable part of the
    given network; lenient mode accepts any known segwit prefix. In both
    modes only witness v0 (20 or 32-byte) and v1 (32-byte) programs decode.

    Args:
        address: Address string
        network: Network the address is decoded against
        strict: Reject segwit addresses of other networks

    Returns:
        scriptPubKey bytes

    Raises:
        AddressError: On malformed addresses or a network mismatch
    """
    params = get_network_params(network)
    if not address:
        raise AddressError("Empty address")

    hrp = _segwit_hrp(address)
    if hrp is not None:
        if strict and hrp != params.bech32_hrp:
            raise AddressError(
                f"Address {address} is not for network {params.name.value} "
                f"(expected prefix {params.bech32_hrp}1)"
            )
        return _decode_segwit(hrp, address)

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise AddressError(f"Invalid address encoding: {address}") from e

    if len(decoded) != 21:
        raise AddressError(f"Invalid base58 payload length {len(decoded)}: {address}")

    version = decoded[0]
    payload = decoded[1:]

    if version == params.pubkey_hash_prefix:
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == params.script_hash_prefix:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise AddressError(
        f"Address version 0x{version:02x} is not valid for network {params.name.value}"
    )


def scriptpubkey_to_address(
    scriptpubkey: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """Convert a standard scriptPubKey back to an address."""
    params = get_network_params(network)

    # P2PKH
    if (
        len(scriptpubkey) == 25
        and scriptpubkey[:3] == b"\x76\xa9\x14"
        and scriptpubkey[23:] == b"\x88\xac"
    ):
        payload = bytes([params.pubkey_hash_prefix]) + scriptpubkey[3:23]
        return base58.b58encode_check(payload).decode("ascii")

    # P2SH
    if len(scriptpubkey) == 23 and scriptpubkey[:2] == b"\xa9\x14" and scriptpubkey[22] == 0x87:
        payload = bytes([params.script_hash_prefix]) + scriptpubkey[2:22]
        return base58.b58encode_check(payload).decode("ascii")

    if len(scriptpubkey) >= 4 and scriptpubkey[1] == len(scriptpubkey) - 2:
        version_op = scriptpubkey[0]
        if version_op == 0x00:
            return encode_segwit_address(0, scriptpubkey[2:], network)
        if 0x51 <= version_op <= 0x60:
            return encode_segwit_address(version_op - 0x50, scriptpubkey[2:], network)

    raise AddressError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")
