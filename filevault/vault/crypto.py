"""
Vault Crypto Core — Key derivation, file encryption/decryption and IV codec.

Payload format (raw bytes, hex-encoded only at the storage boundary):
- key  = SHA-256(UTF-8 secret)                              → 32 bytes
- body = AES-256-CBC(key, iv, PKCS7(plaintext))             → 16·n bytes
- tag  = HMAC-SHA256(HKDF(key, "filevault-cbc-mac"), iv | body) → 32 bytes
- ciphertext = body | tag;  iv stored separately as 32 lowercase hex chars

Security Note:
    Never log plaintext, ciphertext, secrets or derived keys.
    IVs are random 128-bit values from os.urandom, fresh per encryption.
"""
import os
import logging
from typing import NamedTuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .config import SUPPORTED_ALGORITHM, get_config
from .exceptions import ConfigurationError, DecryptionFailed, InvalidIV, RNGFailure
from .material import SecretLike, secret_bytes

logger = logging.getLogger("filevault.vault")

IV_SIZE = 16  # AES block size
IV_HEX_LENGTH = IV_SIZE * 2
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 32  # HMAC-SHA256
BLOCK_SIZE = algorithms.AES.block_size  # bits

_MAC_CONTEXT = b"filevault-cbc-mac"
_HEX_DIGITS = frozenset("0123456789abcdef")


# Cipher and mode for each supported VaultConfig.algorithm value.
_CIPHERS = {
    SUPPORTED_ALGORITHM: (algorithms.AES, modes.CBC),
}


def _cipher(key: bytes, iv: bytes) -> Cipher:
    """Build the configured block cipher for ``key`` and ``iv``.

    Raises:
        ConfigurationError: If the configured algorithm has no cipher.
    """
    algorithm = get_config().algorithm
    try:
        cipher_cls, mode_cls = _CIPHERS[algorithm]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported encryption algorithm: {algorithm}"
        ) from None
    return Cipher(cipher_cls(key), mode_cls(iv))


class EncryptedPayload(NamedTuple):
    """IV and ciphertext produced by :func:`encrypt`, as raw bytes."""

    iv: bytes
    ciphertext: bytes

    @property
    def iv_hex(self) -> str:
        return encode_iv(self.iv)

    @property
    def ciphertext_hex(self) -> str:
        return to_hex(self.ciphertext)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(secret: SecretLike) -> bytes:
    """Derive the 32-byte cipher key from a secret (SHA-256 of its UTF-8 bytes).

    Deterministic, no failure mode for any input. Empty secrets must be
    rejected by callers before reaching this function.

    Args:
        secret: User secret as ``str`` or ``KeyMaterial``.

    Returns:
        32-byte derived key.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(secret_bytes(secret))
    return digest.finalize()


def _mac_key(key: bytes) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic: same secret always yields the same MAC key
        info=_MAC_CONTEXT,
    )
    return hkdf.derive(key)


def _tag(key: bytes, iv: bytes, body: bytes) -> hmac.HMAC:
    mac = hmac.HMAC(_mac_key(key), hashes.SHA256())
    mac.update(iv)
    mac.update(body)
    return mac


# ---------------------------------------------------------------------------
# Hex codec (storage boundary only)
# ---------------------------------------------------------------------------

def encode_iv(iv: bytes) -> str:
    """Encode a 16-byte IV as 32 lowercase hex characters.

    Raises:
        InvalidIV: If ``iv`` is not exactly 16 bytes.
    """
    if len(iv) != IV_SIZE:
        raise InvalidIV(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    return iv.hex()


def parse_iv(iv_hex: str) -> bytes:
    """Decode a stored IV, rejecting anything but exactly 32 lowercase hex characters.

    Raises:
        InvalidIV: On wrong length, characters outside [0-9a-f] or a
            non-string value.
    """
    if not isinstance(iv_hex, str):
        raise InvalidIV("IV must be a hex string")
    if len(iv_hex) != IV_HEX_LENGTH:
        raise InvalidIV(
            f"IV must be exactly {IV_HEX_LENGTH} hex characters, got {len(iv_hex)}"
        )
    if not _HEX_DIGITS.issuperset(iv_hex):
        raise InvalidIV("IV must be lowercase hex")
    return bytes.fromhex(iv_hex)


def to_hex(data: bytes) -> str:
    """Hex-encode ciphertext for storage."""
    return data.hex()


def from_hex(data: str) -> bytes:
    """Decode hex ciphertext read from storage.

    Raises:
        DecryptionFailed: If ``data`` is not valid hex.
    """
    try:
        return bytes.fromhex(data)
    except (ValueError, TypeError) as exc:
        raise DecryptionFailed("Stored ciphertext is not valid hex") from exc


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------

def _random_iv() -> bytes:
    try:
        iv = os.urandom(IV_SIZE)
    except (OSError, NotImplementedError) as exc:
        raise RNGFailure("System random source is unavailable") from exc
    if len(iv) != IV_SIZE:
        raise RNGFailure("System random source returned a short read")
    return iv


def encrypt(plaintext: bytes, secret: SecretLike) -> EncryptedPayload:
    """Encrypt a file payload with AES-256-CBC under a fresh random IV.

    Args:
        plaintext: File bytes (any length, including empty).
        secret: User secret as ``str`` or ``KeyMaterial``.

    Returns:
        ``EncryptedPayload(iv, ciphertext)`` as raw bytes.

    Raises:
        RNGFailure: If the system RNG fails. Never falls back to a fixed IV.
    """
    iv = _random_iv()
    key = derive_key(secret)
    try:
        padder = padding.PKCS7(BLOCK_SIZE).padder()
        padded = padder.update(bytes(plaintext)) + padder.finalize()
        encryptor = _cipher(key, iv).encryptor()
        body = encryptor.update(padded) + encryptor.finalize()
        tag = _tag(key, iv, body).finalize()
    finally:
        del key
    return EncryptedPayload(iv=iv, ciphertext=body + tag)


def decrypt(ciphertext: bytes, secret: SecretLike, iv: bytes) -> bytes:
    """Decrypt a payload produced by :func:`encrypt`.

    The tag is checked in constant time before the cipher runs, then PKCS7
    padding is validated. The three causes of failure (wrong key, wrong IV,
    corrupt ciphertext) are indistinguishable here.

    Args:
        ciphertext: Raw ciphertext bytes (body followed by tag).
        secret: User secret as ``str`` or ``KeyMaterial``.
        iv: Raw 16-byte IV.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        InvalidIV: If ``iv`` is not exactly 16 bytes.
        DecryptionFailed: On tag, block or padding validation failure.
    """
    if len(iv) != IV_SIZE:
        raise InvalidIV(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    block_bytes = BLOCK_SIZE // 8
    body_len = len(ciphertext) - TAG_SIZE
    if body_len < block_bytes or body_len % block_bytes:
        raise DecryptionFailed("Ciphertext has an invalid length")
    body = bytes(ciphertext[:body_len])
    tag = bytes(ciphertext[body_len:])
    key = derive_key(secret)
    try:
        try:
            _tag(key, iv, body).verify(tag)
        except InvalidSignature as exc:
            raise DecryptionFailed("Ciphertext authentication failed") from exc
        decryptor = _cipher(key, iv).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            raise DecryptionFailed("Ciphertext padding is invalid") from exc
    finally:
        del key


def decrypt_stored(ciphertext: bytes, secret: SecretLike, iv_hex: str) -> bytes:
    """Decrypt with an IV as stored at rest (hex), validating it first.

    Raises:
        InvalidIV: Before any cipher call if ``iv_hex`` is malformed.
        DecryptionFailed: As :func:`decrypt`.
    """
    iv = parse_iv(iv_hex)
    return decrypt(ciphertext, secret, iv)
