"""
Vault Key Rotation — Credential rotation and file re-encryption steps.

Two protocols:

Vault key (credential only):
    verify current → check new secret policy → hash new secret.
    No file ciphertext is touched; files keyed to the vault stay bound to
    the secret that was active when they were uploaded.

File key (ciphertext):
    decrypt with current → encrypt with new → (caller) overwrite blob
    → (caller) persist IV, then type/credential.
    Decryption must succeed before anything new is produced, so ciphertext
    is never replaced on the strength of an unverified secret.

Security Note:
    Plaintext exists in memory only between the decrypt and encrypt calls.
    Never log plaintext, ciphertext or secrets.
"""
import logging

from .crypto import EncryptedPayload, decrypt, encrypt
from .exceptions import InvalidCredential
from .material import SecretLike
from .verifier import check_secret_strength, hash_secret, require_secret, verify_secret

logger = logging.getLogger("filevault.vault")


def create_vault_credential(secret: SecretLike, rounds: int | None = None) -> str:
    """Hash the initial vault secret. The caller stores it on a new vault."""
    require_secret(secret)
    return hash_secret(secret, rounds=rounds)


def rotate_vault_credential(
    current_secret: SecretLike,
    new_secret: SecretLike,
    stored_credential: str,
    min_length: int | None = None,
    rounds: int | None = None,
) -> str:
    """Replace a vault's key credential.

    Args:
        current_secret: Secret the caller claims is the vault's current key.
        new_secret: Replacement secret.
        stored_credential: The vault's current KeyCredential.
        min_length: Policy minimum for ``new_secret`` (config default 8).
        rounds: PBKDF2 rounds for the new credential (config default).

    Returns:
        New KeyCredential; the caller persists it and bumps ``updated_at``.

    Raises:
        InvalidCredential: If ``current_secret`` does not verify.
        WeakSecret: If ``new_secret`` fails the length policy.
    """
    require_secret(current_secret)
    if not verify_secret(current_secret, stored_credential):
        raise InvalidCredential("Current vault key is incorrect")
    check_secret_strength(new_secret, min_length=min_length)
    return hash_secret(new_secret, rounds=rounds)


def stale_files_warning(count: int) -> str | None:
    """User-facing notice after a vault key change, or ``None`` if no file is affected."""
    if count <= 0:
        return None
    noun = "file is" if count == 1 else "files are"
    return (
        f"{count} {noun} still encrypted with the previous vault key. "
        "Use the key that was active when each file was uploaded to open "
        "it, or change that file's key to re-encrypt it."
    )


def reencrypt(
    ciphertext: bytes,
    iv: bytes,
    current_secret: SecretLike,
    new_secret: SecretLike,
) -> EncryptedPayload:
    """Decrypt with the current secret and encrypt under the new one.

    Raises:
        DecryptionFailed: If ``current_secret`` cannot open ``ciphertext``;
            no new ciphertext is produced in that case.
        InvalidIV: If ``iv`` is not 16 bytes.
        RNGFailure: If a fresh IV cannot be generated.
    """
    plaintext = decrypt(ciphertext, current_secret, iv)
    try:
        return encrypt(plaintext, new_secret)
    finally:
        del plaintext
