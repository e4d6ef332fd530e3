"""
Repair Signaling — Turns an opaque decryption failure into a diagnosis.

The cipher cannot tell a wrong key from a wrong IV or corrupt data. This
module reconstructs the likely cause from record metadata only:

- stored IV not exactly 32 hex chars           → INVALID_IV (repair)
- vault-keyed file, vault rotated after the
  file was last (re-)encrypted                 → STALE_VAULT_KEY (no repair)
- anything else                                → BAD_KEY_OR_CORRUPT_DATA (repair)
"""
from enum import Enum

from .crypto import parse_iv
from .exceptions import BadKeyOrCorruptData, InvalidIV, StaleVaultKey, VaultError
from .models import EncryptionType, FileRecord, Vault


class Diagnosis(str, Enum):
    INVALID_IV = "invalid_iv"
    STALE_VAULT_KEY = "stale_vault_key"
    BAD_KEY_OR_CORRUPT_DATA = "bad_key_or_corrupt_data"

    @property
    def needs_repair(self) -> bool:
        return self is not Diagnosis.STALE_VAULT_KEY


def iv_is_valid(iv_hex: str) -> bool:
    try:
        parse_iv(iv_hex)
    except InvalidIV:
        return False
    return True


def vault_rotated_since(file: FileRecord, vault: Vault | None) -> bool:
    """True if the vault's key changed after this file was last encrypted."""
    if vault is None or file.encryption_type is not EncryptionType.VAULT:
        return False
    return vault.updated_at > file.updated_at


def diagnose(file: FileRecord, vault: Vault | None) -> Diagnosis:
    """Classify a failed decryption of ``file``."""
    if not iv_is_valid(file.iv):
        return Diagnosis.INVALID_IV
    if vault_rotated_since(file, vault):
        return Diagnosis.STALE_VAULT_KEY
    return Diagnosis.BAD_KEY_OR_CORRUPT_DATA


_ERRORS = {
    Diagnosis.INVALID_IV: InvalidIV,
    Diagnosis.STALE_VAULT_KEY: StaleVaultKey,
    Diagnosis.BAD_KEY_OR_CORRUPT_DATA: BadKeyOrCorruptData,
}


def refine(file: FileRecord, vault: Vault | None) -> VaultError:
    """Build the typed error for a failed decryption of ``file``."""
    diagnosis = diagnose(file, vault)
    return _ERRORS[diagnosis](file_id=file.id)
