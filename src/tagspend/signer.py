"""
Signers for the tag script spend.

A signer turns a 32-byte BIP143 digest into the signature element pushed
into the witness: a DER-encoded ECDSA signature followed by one sighash byte.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import base58
from coincurve import PrivateKey, PublicKey

from tagspend.constants import HASH_SIZE, PRIVATE_KEY_SIZE, SIGHASH_ALL
from tagspend.errors import MissingKeyMaterial, SignatureError

WIF_PREFIXES = (0x80, 0xEF)


def parse_private_key(value: str) -> bytes:
    """
    Parse a private key given as 64-char hex or WIF.

    Raises:
        MissingKeyMaterial: If the value is empty
        SignatureError: If the value is neither valid hex nor valid WIF
    """
    value = value.strip()
    if not value:
        raise MissingKeyMaterial("Private key is empty")

    if len(value) == PRIVATE_KEY_SIZE * 2:
        try:
            return bytes.fromhex(value)
        except ValueError:
            pass

    try:
        raw = base58.b58decode_check(value)
    except ValueError as e:
        raise SignatureError("Invalid private key: expected 64-char hex or WIF") from e

    if raw and raw[0] in WIF_PREFIXES:
        if len(raw) == PRIVATE_KEY_SIZE + 2 and raw[-1] == 0x01:
            return raw[1 : PRIVATE_KEY_SIZE + 1]
        if len(raw) == PRIVATE_KEY_SIZE + 1:
            return raw[1:]
    raise SignatureError(f"Invalid WIF (len={len(raw)})")


def verify_signature(pubkey: bytes, digest: bytes, signature: bytes) -> bool:
    """Verify a witness signature (DER + sighash byte) over a digest."""
    if len(signature) < 2:
        return False
    try:
        return PublicKey(pubkey).verify(signature[:-1], digest, hasher=None)
    except (ValueError, TypeError):
        return False


class Signer(ABC):
    """Anything that can sign a BIP143 digest."""

    @abstractmethod
    def sign(self, digest: bytes) -> bytes:
        """Return DER signature + sighash byte for a 32-byte digest"""


class LocalSigner(Signer):
    """
    Signs with a private key held in memory.

    Signatures are deterministic (RFC6979 nonces) and low-S, as produced by
    libsecp256k1 through coincurve. The key is kept in a bytearray that is
    zeroed by close(); use the signer as a context manager to bound its
    lifetime to one spend.
    """

    def __init__(self, private_key: bytes, sighash_type: int = SIGHASH_ALL):
        if len(private_key) != PRIVATE_KEY_SIZE:
            raise SignatureError(
                f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(private_key)}"
            )
        try:
            PrivateKey(bytes(private_key))
        except ValueError as e:
            raise SignatureError("Private key is not a valid secp256k1 scalar") from e

        self._key = bytearray(private_key)
        self.sighash_type = sighash_type

    @classmethod
    def from_secret(cls, secret: str | None, sighash_type: int = SIGHASH_ALL) -> LocalSigner:
        """Create a signer from a secret value (hex or WIF)."""
        if secret is None or not secret.strip():
            raise MissingKeyMaterial("No private key material available")
        return cls(parse_private_key(secret), sighash_type=sighash_type)

    @property
    def closed(self) -> bool:
        return not any(self._key)

    def _private_key(self) -> PrivateKey:
        if self.closed:
            raise SignatureError("Signer key material has been released")
        return PrivateKey(bytes(self._key))

    @property
    def public_key(self) -> bytes:
        """Compressed public key (33 bytes)."""
        return self._private_key().public_key.format(compressed=True)

    def sign(self, digest: bytes) -> bytes:
        if len(digest) != HASH_SIZE:
            raise SignatureError(f"Digest must be {HASH_SIZE} bytes, got {len(digest)}")

        try:
            # The digest is already SHA256d; hasher=None signs it as-is
            signature = self._private_key().sign(digest, hasher=None)
        except ValueError as e:
            raise SignatureError(f"Signing failed: {e}") from e

        return signature + bytes([self.sighash_type])

    def close(self) -> None:
        for i in range(len(self._key)):
            self._key[i] = 0

    def __enter__(self) -> LocalSigner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class PresignedSigner(Signer):
    """
    Returns a signature produced elsewhere (offline wallet, HSM, remote
    service) for the handoff digest.

    If the signer's public key is known, the signature is checked against
    the digest before it is used.
    """

    def __init__(self, signature: bytes, pubkey: bytes | None = None):
        if not signature:
            raise SignatureError("Empty signature")
        self.signature = signature
        self.pubkey = pubkey

    @classmethod
    def from_hex(cls, signature_hex: str, pubkey_hex: str | None = None) -> PresignedSigner:
        try:
            signature = bytes.fromhex(signature_hex)
            pubkey = bytes.fromhex(pubkey_hex) if pubkey_hex else None
        except ValueError as e:
            raise SignatureError(f"Invalid signature hex: {e}") from e
        return cls(signature, pubkey)

    def sign(self, digest: bytes) -> bytes:
        if self.pubkey is not None and not verify_signature(self.pubkey, digest, self.signature):
            raise SignatureError("Supplied signature does not verify against the digest")
        return self.signature
