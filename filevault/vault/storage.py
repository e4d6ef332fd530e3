"""
Vault Storage — Collaborator interfaces for metadata and ciphertext blobs.

The key-lifecycle engine never talks to a database or a filesystem directly;
it drives these two async interfaces. ``MemoryMetadataStore`` and
``MemoryBlobStore`` are in-process reference backends.

Requirements on real backends:
- blob upload must support overwrite-by-path (``upsert=True``)
- metadata updates are field-level, so a failed combined update can be
  retried with fewer fields
"""
import logging
import posixpath
from contextlib import contextmanager
from typing import Any, Iterator, Protocol, runtime_checkable

from .exceptions import RecordNotFound, StorageIOFailure, VaultError
from .models import EncryptionType, FileEncryptionKey, FileRecord, Vault

logger = logging.getLogger("filevault.vault")


@runtime_checkable
class BlobStore(Protocol):
    """Byte-addressable ciphertext store keyed by an opaque path."""

    async def download(self, path: str) -> bytes: ...

    async def upload(self, path: str, data: bytes, upsert: bool = False) -> None: ...

    async def delete(self, path: str) -> None: ...


@runtime_checkable
class MetadataStore(Protocol):
    """Record store for vaults, files and file keys."""

    async def get_vault(self, vault_id: str) -> Vault | None: ...

    async def create_vault(self, vault: Vault) -> Vault: ...

    async def update_vault(self, vault_id: str, **fields: Any) -> Vault: ...

    async def delete_vault(self, vault_id: str) -> None: ...

    async def get_file(self, file_id: str) -> FileRecord | None: ...

    async def list_files(
        self, vault_id: str, encryption_type: EncryptionType | None = None
    ) -> list[FileRecord]: ...

    async def create_file(self, file: FileRecord) -> FileRecord: ...

    async def update_file(self, file_id: str, **fields: Any) -> FileRecord: ...

    async def delete_file(self, file_id: str) -> None: ...

    async def get_file_key(self, file_id: str) -> FileEncryptionKey | None: ...

    async def create_file_key(self, key: FileEncryptionKey) -> FileEncryptionKey: ...

    async def update_file_key(self, key_id: str, **fields: Any) -> FileEncryptionKey: ...

    async def delete_file_key(self, key_id: str) -> None: ...


@contextmanager
def storage_errors(operation: str, target: str) -> Iterator[None]:
    """Surface collaborator failures as ``StorageIOFailure``.

    Vault errors raised by the collaborator pass through unchanged. Nothing
    is retried here.
    """
    try:
        yield
    except VaultError:
        raise
    except Exception as err:
        logger.error("Storage %s failed for %s: %s", operation, target, type(err).__name__)
        raise StorageIOFailure(f"Storage {operation} failed for {target}") from err


def blob_path(upload_dir: str, file_id: str, file_name: str) -> str:
    """Ciphertext location for a file: ``<upload_dir>/encrypted-<id><ext>``."""
    _, ext = posixpath.splitext(file_name)
    return posixpath.join(upload_dir, f"encrypted-{file_id}{ext.lower()}")


# ---------------------------------------------------------------------------
# In-memory reference backends
# ---------------------------------------------------------------------------

class MemoryBlobStore:
    """Dict-backed blob store."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}

    async def download(self, path: str) -> bytes:
        try:
            return self._blobs[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    async def upload(self, path: str, data: bytes, upsert: bool = False) -> None:
        if not upsert and path in self._blobs:
            raise FileExistsError(path)
        self._blobs[path] = bytes(data)

    async def delete(self, path: str) -> None:
        self._blobs.pop(path, None)

    def __contains__(self, path: str) -> bool:
        return path in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


class MemoryMetadataStore:
    """Dict-backed metadata store with field-level updates."""

    def __init__(self):
        self.vaults: dict[str, Vault] = {}
        self.files: dict[str, FileRecord] = {}
        self.file_keys: dict[str, FileEncryptionKey] = {}

    @staticmethod
    def _patch(record, **fields):
        data = record.model_dump()
        data.update(fields)
        return type(record).model_validate(data)

    # vaults

    async def get_vault(self, vault_id: str) -> Vault | None:
        return self.vaults.get(vault_id)

    async def create_vault(self, vault: Vault) -> Vault:
        if vault.id in self.vaults:
            raise ValueError(f"Vault {vault.id} already exists")
        self.vaults[vault.id] = vault
        return vault

    async def update_vault(self, vault_id: str, **fields: Any) -> Vault:
        if vault_id not in self.vaults:
            raise RecordNotFound(f"Vault {vault_id} not found")
        self.vaults[vault_id] = self._patch(self.vaults[vault_id], **fields)
        return self.vaults[vault_id]

    async def delete_vault(self, vault_id: str) -> None:
        self.vaults.pop(vault_id, None)

    # files

    async def get_file(self, file_id: str) -> FileRecord | None:
        return self.files.get(file_id)

    async def list_files(
        self, vault_id: str, encryption_type: EncryptionType | None = None
    ) -> list[FileRecord]:
        return [
            f for f in self.files.values()
            if f.vault_id == vault_id
            and (encryption_type is None or f.encryption_type == encryption_type)
        ]

    async def create_file(self, file: FileRecord) -> FileRecord:
        if file.id in self.files:
            raise ValueError(f"File {file.id} already exists")
        self.files[file.id] = file
        return file

    async def update_file(self, file_id: str, **fields: Any) -> FileRecord:
        if file_id not in self.files:
            raise RecordNotFound(f"File {file_id} not found", file_id=file_id)
        self.files[file_id] = self._patch(self.files[file_id], **fields)
        return self.files[file_id]

    async def delete_file(self, file_id: str) -> None:
        self.files.pop(file_id, None)

    # file keys

    async def get_file_key(self, file_id: str) -> FileEncryptionKey | None:
        for key in self.file_keys.values():
            if key.file_id == file_id:
                return key
        return None

    async def create_file_key(self, key: FileEncryptionKey) -> FileEncryptionKey:
        if await self.get_file_key(key.file_id) is not None:
            raise ValueError(f"File {key.file_id} already has an encryption key")
        self.file_keys[key.id] = key
        return key

    async def update_file_key(self, key_id: str, **fields: Any) -> FileEncryptionKey:
        if key_id not in self.file_keys:
            raise RecordNotFound(f"File key {key_id} not found")
        self.file_keys[key_id] = self._patch(self.file_keys[key_id], **fields)
        return self.file_keys[key_id]

    async def delete_file_key(self, key_id: str) -> None:
        self.file_keys.pop(key_id, None)
