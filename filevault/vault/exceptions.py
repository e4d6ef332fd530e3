"""
Vault Exceptions — Closed error taxonomy for the key-lifecycle engine.

Every failure raised by the cipher, verifier and lifecycle code is one of
these types, so callers can map them 1:1 to user-facing messages via
``user_message``. Messages never include secrets or derived keys.
"""


class VaultError(Exception):
    """Base class for all vault errors."""

    user_message = "The operation could not be completed."
    needs_repair = False

    def __init__(self, message: str | None = None, *, file_id: str | None = None):
        self.file_id = file_id
        super().__init__(message or self.user_message)


class ConfigurationError(VaultError):
    """Invalid vault configuration."""

    user_message = "Vault configuration is invalid."


class WeakSecret(VaultError):
    """Secret rejected by policy before reaching any primitive."""

    user_message = "Key must be at least 8 characters long."


class InvalidCredential(VaultError):
    """Presented secret does not verify against the stored credential."""

    user_message = "Invalid key."


class InvalidIV(VaultError):
    """Stored IV is not exactly 16 bytes (32 hex characters)."""

    user_message = (
        "This file's encryption metadata is damaged and needs repair. "
        "Please re-upload the file."
    )
    needs_repair = True


class DecryptionFailed(VaultError):
    """Cipher rejected the ciphertext (wrong key, wrong IV or corrupt data)."""

    user_message = "Invalid key."


class StaleVaultKey(DecryptionFailed):
    """File was encrypted under a vault secret that has since been rotated."""

    user_message = (
        "This file was encrypted before the vault key was changed. "
        "Try the vault key that was active when the file was uploaded."
    )


class BadKeyOrCorruptData(DecryptionFailed):
    """Wrong key presented, or the ciphertext is corrupt."""

    user_message = (
        "Invalid key. If you are sure the key is correct, the file needs "
        "repair and should be re-uploaded."
    )
    needs_repair = True


class StorageIOFailure(VaultError):
    """A blob or metadata collaborator failed."""

    user_message = "Storage is temporarily unavailable. Please try again."


class IVNotPersisted(StorageIOFailure):
    """New ciphertext was uploaded but its IV could not be saved.

    ``iv`` carries the hex IV that pairs with the uploaded ciphertext so the
    caller can persist it out of band.
    """

    user_message = (
        "The file key change did not finish. The file needs repair."
    )
    needs_repair = True

    def __init__(self, message: str | None = None, *, file_id: str | None = None, iv: str = ""):
        self.iv = iv
        super().__init__(message, file_id=file_id)


class RNGFailure(VaultError):
    """The system random source failed; the operation must abort."""

    user_message = "Encryption is unavailable right now."


class RecordNotFound(VaultError):
    """A vault, file or file key record does not exist."""

    user_message = "Not found."


class RotationIncomplete(VaultError):
    """Ciphertext and IV were rotated but the key type/credential was not.

    The file is readable with the new secret; call
    ``FileVault.finish_rotation`` to complete it.
    """

    user_message = (
        "The file was re-encrypted but its key settings were not saved. "
        "Please retry the key change."
    )
