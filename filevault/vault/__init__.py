"""File Vault — Per-file encryption at rest with user-supplied keys.

Security Note (Threat Model):
    Secrets and decrypted file contents exist in process memory for the
    duration of a single operation. Python strings cannot be zeroed; pass
    secrets as ``KeyMaterial`` to get a wipeable buffer. Stored credentials
    prove knowledge of a key but cannot decrypt anything, and ciphertext is
    authenticated so a wrong key never yields garbage plaintext.
"""

from .config import VaultConfig, get_config, set_config
from .crypto import (
    EncryptedPayload,
    derive_key,
    encrypt,
    decrypt,
    decrypt_stored,
    encode_iv,
    parse_iv,
)
from .verifier import hash_secret, verify_secret, check_secret_strength
from .key_rotation import create_vault_credential, rotate_vault_credential
from .material import KeyMaterial
from .models import (
    EncryptionType,
    FileKeyState,
    Vault,
    FileRecord,
    FileEncryptionKey,
    VaultRotation,
    FileRotation,
)
from .repair import Diagnosis, diagnose
from .storage import BlobStore, MetadataStore, MemoryBlobStore, MemoryMetadataStore
from .activity import ActivityAction, ActivityEvent, LoggingActivitySink, MemoryActivitySink
from .file_vault import FileVault
from .exceptions import (
    VaultError,
    ConfigurationError,
    WeakSecret,
    InvalidCredential,
    InvalidIV,
    DecryptionFailed,
    StaleVaultKey,
    BadKeyOrCorruptData,
    StorageIOFailure,
    IVNotPersisted,
    RNGFailure,
    RecordNotFound,
    RotationIncomplete,
)

__all__ = [
    "VaultConfig",
    "get_config",
    "set_config",
    "EncryptedPayload",
    "derive_key",
    "encrypt",
    "decrypt",
    "decrypt_stored",
    "encode_iv",
    "parse_iv",
    "hash_secret",
    "verify_secret",
    "check_secret_strength",
    "create_vault_credential",
    "rotate_vault_credential",
    "KeyMaterial",
    "EncryptionType",
    "FileKeyState",
    "Vault",
    "FileRecord",
    "FileEncryptionKey",
    "VaultRotation",
    "FileRotation",
    "Diagnosis",
    "diagnose",
    "BlobStore",
    "MetadataStore",
    "MemoryBlobStore",
    "MemoryMetadataStore",
    "ActivityAction",
    "ActivityEvent",
    "LoggingActivitySink",
    "MemoryActivitySink",
    "FileVault",
    "VaultError",
    "ConfigurationError",
    "WeakSecret",
    "InvalidCredential",
    "InvalidIV",
    "DecryptionFailed",
    "StaleVaultKey",
    "BadKeyOrCorruptData",
    "StorageIOFailure",
    "IVNotPersisted",
    "RNGFailure",
    "RecordNotFound",
    "RotationIncomplete",
]
