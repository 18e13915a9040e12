"""
Bitcoin consensus and policy constants used when building tag spends.

Following Bitcoin Core's approach to dust thresholds:
- STANDARD_DUST_LIMIT: the standard P2PKH dust limit (546 sats)
- Change at or below the limit is dropped and folds into the miner fee
"""

from __future__ import annotations

# Standard P2PKH dust limit in Bitcoin Core
STANDARD_DUST_LIMIT = 546  # satoshis

# Transaction defaults
DEFAULT_TX_VERSION = 2
DEFAULT_SEQUENCE = 0xFFFFFFFF
DEFAULT_LOCKTIME = 0

# nVersion is a signed 32-bit field
MIN_TX_VERSION = -(2**31)
MAX_TX_VERSION = 2**31 - 1

# Signature hash types (BIP143 commits to these as a 4-byte little-endian value)
SIGHASH_ALL = 0x01
SIGHASH_NONE = 0x02
SIGHASH_SINGLE = 0x03
SIGHASH_ANYONECANPAY = 0x80

# Script limits enforced by the script builder
MAX_SCRIPT_ELEMENT_SIZE = 520
MAX_SCRIPT_SIZE = 10_000

# Sizes
HASH_SIZE = 32
COMPRESSED_PUBKEY_SIZE = 33
PRIVATE_KEY_SIZE = 32
MAX_SATOSHIS = 21_000_000 * 100_000_000
