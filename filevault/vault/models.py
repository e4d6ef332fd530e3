"""
Vault Records — Metadata for vaults, files and file keys.

These mirror the rows kept by the metadata store. Key credentials are
one-way hashes; no record ever holds a secret or a derived key.
"""
from enum import Enum
from datetime import datetime, timezone

import orjson
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EncryptionType(str, Enum):
    """Which secret a file's ciphertext was produced with."""

    VAULT = "vault"
    CUSTOM = "custom"


class FileKeyState(str, Enum):
    """Per-file encryption state."""

    ENCRYPTED_VAULT = "EncryptedVault"
    ENCRYPTED_CUSTOM = "EncryptedCustom"
    NEEDS_REPAIR = "NeedsRepair"


class Record(BaseModel):
    """Base record with JSON transport helpers."""

    model_config = {"validate_assignment": True}

    def to_json(self) -> bytes:
        return orjson.dumps(self.model_dump(mode="json"))

    @classmethod
    def from_json(cls, data: bytes):
        return cls.model_validate(orjson.loads(data))


class Vault(Record):
    id: str
    name: str = Field(min_length=1)
    vault_key: str  # KeyCredential
    files_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FileRecord(Record):
    """File metadata.

    ``iv`` is kept exactly as stored so a malformed value can be diagnosed
    instead of failing to load.
    """

    id: str
    name: str
    size: int = Field(ge=0)
    iv: str
    encryption_type: EncryptionType
    vault_id: str
    file_path: str
    needs_repair: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def state(self) -> FileKeyState:
        if self.needs_repair:
            return FileKeyState.NEEDS_REPAIR
        if self.encryption_type is EncryptionType.CUSTOM:
            return FileKeyState.ENCRYPTED_CUSTOM
        return FileKeyState.ENCRYPTED_VAULT


class FileEncryptionKey(Record):
    id: str
    file_id: str
    hashed_key: str  # KeyCredential
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class VaultRotation(BaseModel):
    """Outcome of a vault key change."""

    vault_id: str
    credential: str
    rotated_at: datetime
    stale_files: int = 0
    warning: str | None = None


class FileRotation(BaseModel):
    """Outcome of a file key change."""

    file: FileRecord
    iv: str
    encryption_type: EncryptionType
