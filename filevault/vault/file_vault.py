"""
FileVault — Key-lifecycle orchestration for vaults and their files.

Provides the public API of the file vault:
- ``create_vault`` / ``unlock_vault`` / ``rotate_vault_key`` / ``delete_vault``
- ``upload_file`` / ``read_file`` / ``reupload_file`` / ``delete_file``
- ``rotate_file_key`` / ``finish_rotation``: per-file key change
- ``reencrypt_stale_files``: opt-in batch re-encryption after a vault key change

Storage is reached only through the ``MetadataStore`` and ``BlobStore``
collaborators. CPU-bound crypto runs in worker threads. Callers must
serialize mutating operations per file id; this class holds no locks.

Security Note:
    Secrets are passed by parameter and never stored on the instance.
    Never log secrets, credentials, plaintext or ciphertext. Only log ids,
    operations and counts.
"""
import uuid
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from .activity import ActivityAction, ActivityEvent, ActivitySink, LoggingActivitySink
from .config import VaultConfig, get_config
from .crypto import EncryptedPayload, decrypt, encrypt, parse_iv
from .exceptions import (
    DecryptionFailed,
    InvalidCredential,
    InvalidIV,
    IVNotPersisted,
    RecordNotFound,
    RotationIncomplete,
    StorageIOFailure,
    VaultError,
)
from .key_rotation import (
    create_vault_credential,
    reencrypt,
    rotate_vault_credential,
    stale_files_warning,
)
from .material import SecretLike
from .models import (
    EncryptionType,
    FileEncryptionKey,
    FileRecord,
    FileRotation,
    Vault,
    VaultRotation,
    utcnow,
)
from .repair import Diagnosis, refine
from .storage import BlobStore, MetadataStore, blob_path, storage_errors
from .verifier import check_secret_strength, hash_secret, require_secret, verify_secret

logger = logging.getLogger("filevault.vault")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class FileVault:
    """Encrypted file storage across named vaults.

    Each file is encrypted either with its vault's secret (``vault``) or
    with its own secret (``custom``). Stored credentials only gate
    operations; decryption always needs the secret that was used when the
    file was last encrypted.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        config: VaultConfig | None = None,
        activity: ActivitySink | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._meta = metadata
        self._blobs = blobs
        self._config = config or get_config()
        self._activity = activity if activity is not None else LoggingActivitySink()
        self._clock = clock or utcnow

    @property
    def config(self) -> VaultConfig:
        return self._config

    # ------------------------------------------------------------------
    # Crypto helpers (worker threads)
    # ------------------------------------------------------------------

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(fn, *args)

    async def _hash(self, secret: SecretLike) -> str:
        return await self._run(hash_secret, secret, self._config.hash_rounds)

    async def _verify(self, secret: SecretLike, credential: str) -> bool:
        return await self._run(verify_secret, secret, credential)

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    async def _get_vault(self, vault_id: str) -> Vault:
        with storage_errors("read", f"vault {vault_id}"):
            vault = await self._meta.get_vault(vault_id)
        if vault is None:
            raise RecordNotFound(f"Vault {vault_id} not found")
        return vault

    async def _find_vault(self, vault_id: str) -> Vault | None:
        with storage_errors("read", f"vault {vault_id}"):
            return await self._meta.get_vault(vault_id)

    async def _get_file(self, file_id: str) -> FileRecord:
        with storage_errors("read", f"file {file_id}"):
            file = await self._meta.get_file(file_id)
        if file is None:
            raise RecordNotFound(f"File {file_id} not found", file_id=file_id)
        return file

    async def _get_file_key(self, file_id: str) -> FileEncryptionKey | None:
        with storage_errors("read", f"file key for {file_id}"):
            return await self._meta.get_file_key(file_id)

    async def _download(self, file: FileRecord) -> bytes:
        with storage_errors("download", f"file {file.id}"):
            return await self._blobs.download(file.file_path)

    async def _adjust_files_count(self, vault_id: str, delta: int) -> None:
        """Update the vault's file counter after a committed upload or delete.

        The counter is informational; a failure here is logged and does not
        turn the committed operation into an error.
        """
        try:
            vault = await self._get_vault(vault_id)
            with storage_errors("update", f"vault {vault_id}"):
                await self._meta.update_vault(
                    vault_id, files_count=max(vault.files_count + delta, 0),
                )
        except (StorageIOFailure, RecordNotFound):
            logger.error(
                "Could not update files_count of vault %s by %+d", vault_id, delta,
            )

    async def _record(
        self,
        action: ActivityAction,
        details: str,
        vault_id: str | None = None,
        file_id: str | None = None,
    ) -> None:
        """Emit an activity event. A failing sink never undoes the operation."""
        event = ActivityEvent(
            action=action, details=details, vault_id=vault_id,
            file_id=file_id, timestamp=self._clock(),
        )
        try:
            await self._activity.record(event)
        except Exception as err:
            logger.error(
                "Failed to record activity %s for vault=%s file=%s: %s",
                action.value, vault_id, file_id, err,
            )

    async def _flag_repair(self, file: FileRecord, diagnosis: Diagnosis) -> None:
        """Mark a file as needing repair (sticky until rotation or re-upload)."""
        logger.warning(
            "File %s flagged for repair: %s", file.id, diagnosis.value,
        )
        try:
            with storage_errors("update", f"file {file.id}"):
                await self._meta.update_file(file.id, needs_repair=True)
        except StorageIOFailure:
            logger.error("Could not persist repair flag for file %s", file.id)
            return
        await self._record(
            ActivityAction.FILE_REPAIR_FLAGGED,
            f"File {file.name} needs repair ({diagnosis.value})",
            file.vault_id, file.id,
        )

    async def _apply_key_credential(
        self,
        file_id: str,
        key_record: FileEncryptionKey | None,
        target: EncryptionType,
        credential: str | None,
        now: datetime,
    ) -> None:
        """Make the FileEncryptionKey record match ``target``.

        ``custom`` files get exactly one key record (updated in place when it
        already exists); ``vault`` files get none.
        """
        with storage_errors("update", f"file key for {file_id}"):
            if target is EncryptionType.CUSTOM:
                if key_record is not None:
                    await self._meta.update_file_key(
                        key_record.id, hashed_key=credential, updated_at=now,
                    )
                else:
                    await self._meta.create_file_key(FileEncryptionKey(
                        id=_new_id("key"), file_id=file_id,
                        hashed_key=credential, created_at=now, updated_at=now,
                    ))
            elif key_record is not None:
                await self._meta.delete_file_key(key_record.id)

    async def _commit_ciphertext(
        self, file: FileRecord, iv_hex: str, fields: dict[str, Any],
    ) -> FileRecord:
        """Persist the IV (plus ``fields``) for ciphertext that was just uploaded.

        If the combined update fails, retry with the IV alone: the uploaded
        ciphertext is unreadable without it.

        Raises:
            RotationIncomplete: The IV was saved but ``fields`` were not.
            IVNotPersisted: Neither update succeeded.
        """
        try:
            with storage_errors("update", f"file {file.id}"):
                return await self._meta.update_file(file.id, iv=iv_hex, **fields)
        except StorageIOFailure as err:
            logger.error(
                "Combined metadata update failed for file %s; retrying IV only",
                file.id,
            )
            try:
                with storage_errors("update", f"file {file.id}"):
                    await self._meta.update_file(file.id, iv=iv_hex)
            except StorageIOFailure as retry_err:
                logger.critical(
                    "Ciphertext for file %s was replaced but its IV could not be saved",
                    file.id,
                )
                raise IVNotPersisted(file_id=file.id, iv=iv_hex) from retry_err
            raise RotationIncomplete(file_id=file.id) from err

    async def _check_target_secret(
        self, vault: Vault, new_secret: SecretLike, target: EncryptionType,
    ) -> None:
        """A vault-keyed target must use the vault's current secret; a custom one must pass policy."""
        if target is EncryptionType.VAULT:
            require_secret(new_secret)
            if not await self._verify(new_secret, vault.vault_key):
                raise InvalidCredential("New key does not match the vault key")
        else:
            check_secret_strength(new_secret, self._config.min_secret_length)

    # ------------------------------------------------------------------
    # Vault key lifecycle
    # ------------------------------------------------------------------

    async def create_vault(self, name: str, secret: SecretLike) -> Vault:
        """Create a vault with an initial key credential.

        Raises:
            WeakSecret: If ``secret`` is empty.
        """
        credential = await self._run(
            create_vault_credential, secret, self._config.hash_rounds,
        )
        now = self._clock()
        vault = Vault(
            id=_new_id("vault"), name=name, vault_key=credential,
            files_count=0, created_at=now, updated_at=now,
        )
        with storage_errors("create", f"vault {vault.id}"):
            vault = await self._meta.create_vault(vault)
        logger.info("Vault created: %s", vault.id)
        await self._record(
            ActivityAction.VAULT_CREATE, f"Created new vault: {name}", vault.id,
        )
        return vault

    async def unlock_vault(self, vault_id: str, secret: SecretLike) -> Vault:
        """Verify a presented vault secret (per request; vaults have no lock state).

        Raises:
            InvalidCredential: If ``secret`` is not the vault's current key.
        """
        require_secret(secret)
        vault = await self._get_vault(vault_id)
        if not await self._verify(secret, vault.vault_key):
            raise InvalidCredential("Invalid vault key")
        await self._record(
            ActivityAction.VAULT_ACCESS,
            f"Accessed vault: {vault.name} via vault key", vault.id,
        )
        return vault

    async def rotate_vault_key(
        self, vault_id: str, current_secret: SecretLike, new_secret: SecretLike,
    ) -> VaultRotation:
        """Replace a vault's key credential without touching any file.

        Files keyed to the vault keep needing the secret that was active
        when they were uploaded; the result reports how many there are.

        Raises:
            InvalidCredential: If ``current_secret`` does not verify.
            WeakSecret: If ``new_secret`` is shorter than the policy minimum.
        """
        vault = await self._get_vault(vault_id)
        credential = await self._run(
            rotate_vault_credential,
            current_secret, new_secret, vault.vault_key,
            self._config.min_secret_length, self._config.hash_rounds,
        )
        with storage_errors("read", f"files of vault {vault_id}"):
            stale = await self._meta.list_files(vault_id, EncryptionType.VAULT)
        now = self._clock()
        with storage_errors("update", f"vault {vault_id}"):
            await self._meta.update_vault(
                vault_id, vault_key=credential, updated_at=now,
            )
        logger.info(
            "Vault key rotated: vault=%s files_on_previous_key=%d",
            vault_id, len(stale),
        )
        await self._record(
            ActivityAction.VAULT_KEY_CHANGE,
            f"Changed encryption key for vault: {vault.name}", vault_id,
        )
        return VaultRotation(
            vault_id=vault_id,
            credential=credential,
            rotated_at=now,
            stale_files=len(stale),
            warning=stale_files_warning(len(stale)),
        )

    async def delete_vault(self, vault_id: str, secret: SecretLike) -> int:
        """Delete a vault with all of its files, key records and blobs.

        Returns:
            Number of files deleted.

        Raises:
            InvalidCredential: If ``secret`` is not the vault's current key.
        """
        require_secret(secret)
        vault = await self._get_vault(vault_id)
        if not await self._verify(secret, vault.vault_key):
            raise InvalidCredential("Invalid vault key")
        with storage_errors("read", f"files of vault {vault_id}"):
            files = await self._meta.list_files(vault_id)
        for file in files:
            await self._remove_file(file)
        with storage_errors("delete", f"vault {vault_id}"):
            await self._meta.delete_vault(vault_id)
        logger.info("Vault deleted: %s (%d files)", vault_id, len(files))
        await self._record(
            ActivityAction.VAULT_DELETE, f"Deleted vault: {vault.name}", vault_id,
        )
        return len(files)

    # ------------------------------------------------------------------
    # File key lifecycle
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        vault_id: str,
        name: str,
        plaintext: bytes,
        secret: SecretLike,
        use_vault_key: bool = False,
    ) -> FileRecord:
        """Encrypt and store a new file.

        With ``use_vault_key`` the secret must verify against the vault's
        current credential; otherwise it becomes the file's custom key and a
        FileEncryptionKey is stored for it.

        Raises:
            WeakSecret: If ``secret`` is empty.
            InvalidCredential: If ``use_vault_key`` and the secret is not the vault key.
        """
        require_secret(secret)
        vault = await self._get_vault(vault_id)
        encryption_type = EncryptionType.VAULT if use_vault_key else EncryptionType.CUSTOM
        if use_vault_key and not await self._verify(secret, vault.vault_key):
            raise InvalidCredential("Invalid vault key")

        payload: EncryptedPayload = await self._run(encrypt, plaintext, secret)
        credential = None
        if encryption_type is EncryptionType.CUSTOM:
            credential = await self._hash(secret)

        file_id = _new_id("file")
        path = blob_path(self._config.upload_dir, file_id, name)
        now = self._clock()
        record = FileRecord(
            id=file_id, name=name, size=len(plaintext), iv=payload.iv_hex,
            encryption_type=encryption_type, vault_id=vault_id,
            file_path=path, created_at=now, updated_at=now,
        )
        with storage_errors("upload", f"file {file_id}"):
            await self._blobs.upload(path, payload.ciphertext)
        try:
            with storage_errors("create", f"file {file_id}"):
                record = await self._meta.create_file(record)
            await self._apply_key_credential(file_id, None, encryption_type, credential, now)
        except StorageIOFailure:
            await self._discard_upload(file_id, path)
            raise
        await self._adjust_files_count(vault_id, 1)
        logger.info(
            "File uploaded: file=%s vault=%s type=%s", file_id, vault_id,
            encryption_type.value,
        )
        await self._record(
            ActivityAction.FILE_UPLOAD, f"Uploaded file: {name}", vault_id, file_id,
        )
        return record

    async def _discard_upload(self, file_id: str, path: str) -> None:
        """Remove what a failed upload left behind."""
        for label, action in (
            ("blob", lambda: self._blobs.delete(path)),
            ("record", lambda: self._meta.delete_file(file_id)),
        ):
            try:
                with storage_errors("delete", f"{label} of file {file_id}"):
                    await action()
            except StorageIOFailure:
                logger.error("Could not clean up %s of failed upload %s", label, file_id)

    async def read_file(self, file_id: str, secret: SecretLike) -> bytes:
        """Decrypt a file with a presented secret.

        Custom-keyed files are checked against their stored credential
        first. Vault-keyed files are decrypted directly, since they may have
        been encrypted under a vault secret that was rotated since.

        Raises:
            InvalidIV: Stored IV is malformed (file flagged for repair).
            InvalidCredential: Wrong custom key (fast reject, nothing flagged).
            StaleVaultKey: Vault key changed after the file was encrypted.
            BadKeyOrCorruptData: Any other failure (file flagged for repair).
        """
        require_secret(secret)
        file = await self._get_file(file_id)
        try:
            iv = parse_iv(file.iv)
        except InvalidIV as exc:
            await self._flag_repair(file, Diagnosis.INVALID_IV)
            raise InvalidIV(file_id=file_id) from exc

        if file.encryption_type is EncryptionType.CUSTOM:
            key_record = await self._get_file_key(file_id)
            if key_record is None:
                logger.warning("Custom-keyed file %s has no key record", file_id)
            elif not await self._verify(secret, key_record.hashed_key):
                raise InvalidCredential("Invalid decryption key", file_id=file_id)

        ciphertext = await self._download(file)
        try:
            plaintext = await self._run(decrypt, ciphertext, secret, iv)
        except DecryptionFailed as exc:
            vault = await self._find_vault(file.vault_id)
            error = refine(file, vault)
            if error.needs_repair:
                await self._flag_repair(file, Diagnosis.BAD_KEY_OR_CORRUPT_DATA)
            else:
                logger.info("File %s predates a vault key change", file_id)
            raise error from exc

        await self._record(
            ActivityAction.FILE_DECRYPT, f"Decrypted file: {file.name}",
            file.vault_id, file_id,
        )
        return plaintext

    async def rotate_file_key(
        self,
        file_id: str,
        current_secret: SecretLike,
        new_secret: SecretLike,
        target: EncryptionType | str = EncryptionType.CUSTOM,
    ) -> FileRotation:
        """Re-encrypt a file under a new secret.

        Order: decrypt with ``current_secret`` → encrypt with ``new_secret``
        → overwrite the blob → save the IV (and type) → save the key
        credential. Nothing is written unless the decryption succeeded.

        ``target=custom`` (default) gives the file its own key; a file that
        was vault-keyed becomes custom. ``target=vault`` re-encrypts the
        file under the vault's *current* secret, which ``new_secret`` must
        verify against, and drops its FileEncryptionKey.

        Raises:
            WeakSecret: ``new_secret`` fails policy (custom target).
            InvalidCredential: Wrong custom key, or ``new_secret`` is not the
                vault key (vault target).
            InvalidIV: Stored IV is malformed.
            StaleVaultKey / BadKeyOrCorruptData: ``current_secret`` cannot
                open the file. Nothing is written.
            RotationIncomplete: Ciphertext and IV were saved, type/key were not.
            IVNotPersisted: Ciphertext was replaced but the IV was not saved.
        """
        require_secret(current_secret)
        target = EncryptionType(target)
        file = await self._get_file(file_id)
        vault = await self._get_vault(file.vault_id)
        await self._check_target_secret(vault, new_secret, target)

        key_record = await self._get_file_key(file_id)
        if file.encryption_type is EncryptionType.CUSTOM and key_record is not None:
            if not await self._verify(current_secret, key_record.hashed_key):
                raise InvalidCredential(
                    "Current encryption key is incorrect", file_id=file_id,
                )

        # 1. download
        iv = parse_iv(file.iv)
        ciphertext = await self._download(file)

        # 2-3. decrypt with current, encrypt with new
        try:
            payload: EncryptedPayload = await self._run(
                reencrypt, ciphertext, iv, current_secret, new_secret,
            )
        except DecryptionFailed as exc:
            raise refine(file, vault) from exc
        credential = None
        if target is EncryptionType.CUSTOM:
            credential = await self._hash(new_secret)

        # 4. overwrite ciphertext in place
        with storage_errors("upload", f"file {file_id}"):
            await self._blobs.upload(file.file_path, payload.ciphertext, upsert=True)

        # 5. IV first-class, type/credential second
        now = self._clock()
        iv_hex = payload.iv_hex
        updated = await self._commit_ciphertext(
            file, iv_hex,
            {"encryption_type": target, "needs_repair": False, "updated_at": now},
        )
        # 6. key record
        try:
            await self._apply_key_credential(file_id, key_record, target, credential, now)
        except StorageIOFailure as err:
            raise RotationIncomplete(file_id=file_id) from err

        logger.info(
            "File key rotated: file=%s %s -> %s", file_id,
            file.encryption_type.value, target.value,
        )
        await self._record(
            ActivityAction.FILE_KEY_CHANGE,
            f"Changed encryption key for file: {file.name}",
            file.vault_id, file_id,
        )
        return FileRotation(file=updated, iv=iv_hex, encryption_type=target)

    async def finish_rotation(
        self,
        file_id: str,
        new_secret: SecretLike,
        target: EncryptionType | str = EncryptionType.CUSTOM,
    ) -> FileRecord:
        """Complete a rotation that stopped at ``RotationIncomplete``.

        ``new_secret`` must open the file's current ciphertext before the
        type and key credential are written.

        Raises:
            InvalidCredential: If ``new_secret`` does not open the file, or
                (vault target) is not the vault key.
        """
        require_secret(new_secret)
        target = EncryptionType(target)
        file = await self._get_file(file_id)
        vault = await self._get_vault(file.vault_id)
        await self._check_target_secret(vault, new_secret, target)
        iv = parse_iv(file.iv)
        ciphertext = await self._download(file)
        try:
            await self._run(decrypt, ciphertext, new_secret, iv)
        except DecryptionFailed as exc:
            raise InvalidCredential("Key does not open this file", file_id=file_id) from exc

        credential = None
        if target is EncryptionType.CUSTOM:
            credential = await self._hash(new_secret)
        key_record = await self._get_file_key(file_id)
        now = self._clock()
        with storage_errors("update", f"file {file_id}"):
            updated = await self._meta.update_file(
                file_id, encryption_type=target, needs_repair=False, updated_at=now,
            )
        await self._apply_key_credential(file_id, key_record, target, credential, now)
        logger.info("File key rotation completed: file=%s type=%s", file_id, target.value)
        return updated

    async def reupload_file(
        self,
        file_id: str,
        plaintext: bytes,
        secret: SecretLike,
        use_vault_key: bool = False,
    ) -> FileRecord:
        """Replace a file's content (the repair path). Clears ``needs_repair``.

        Raises:
            WeakSecret: If ``secret`` is empty.
            InvalidCredential: If ``use_vault_key`` and the secret is not the vault key.
        """
        require_secret(secret)
        file = await self._get_file(file_id)
        vault = await self._get_vault(file.vault_id)
        target = EncryptionType.VAULT if use_vault_key else EncryptionType.CUSTOM
        if use_vault_key and not await self._verify(secret, vault.vault_key):
            raise InvalidCredential("Invalid vault key")

        payload: EncryptedPayload = await self._run(encrypt, plaintext, secret)
        credential = None
        if target is EncryptionType.CUSTOM:
            credential = await self._hash(secret)
        key_record = await self._get_file_key(file_id)

        with storage_errors("upload", f"file {file_id}"):
            await self._blobs.upload(file.file_path, payload.ciphertext, upsert=True)
        now = self._clock()
        updated = await self._commit_ciphertext(
            file, payload.iv_hex,
            {
                "size": len(plaintext), "encryption_type": target,
                "needs_repair": False, "updated_at": now,
            },
        )
        try:
            await self._apply_key_credential(file_id, key_record, target, credential, now)
        except StorageIOFailure as err:
            raise RotationIncomplete(file_id=file_id) from err
        logger.info("File re-uploaded: file=%s type=%s", file_id, target.value)
        await self._record(
            ActivityAction.FILE_UPLOAD, f"Re-uploaded file: {file.name}",
            file.vault_id, file_id,
        )
        return updated

    async def _remove_file(self, file: FileRecord) -> None:
        key_record = await self._get_file_key(file.id)
        with storage_errors("delete", f"file {file.id}"):
            await self._blobs.delete(file.file_path)
            if key_record is not None:
                await self._meta.delete_file_key(key_record.id)
            await self._meta.delete_file(file.id)

    async def delete_file(self, file_id: str) -> None:
        """Delete a file's blob, key record and metadata."""
        file = await self._get_file(file_id)
        await self._remove_file(file)
        await self._adjust_files_count(file.vault_id, -1)
        logger.info("File deleted: %s", file_id)
        await self._record(
            ActivityAction.FILE_DELETE, f"Deleted file: {file.name}",
            file.vault_id, file_id,
        )

    # ------------------------------------------------------------------
    # Batch re-encryption
    # ------------------------------------------------------------------

    async def _opens(self, file: FileRecord, secret: SecretLike) -> bool:
        try:
            await self._run(decrypt, await self._download(file), secret, parse_iv(file.iv))
        except (DecryptionFailed, InvalidIV, StorageIOFailure):
            return False
        return True

    async def reencrypt_stale_files(
        self,
        vault_id: str,
        previous_secret: SecretLike,
        current_secret: SecretLike,
        batch_size: int = 100,
    ) -> dict:
        """Re-encrypt vault-keyed files from a previous vault secret to the current one.

        Opt-in follow-up to ``rotate_vault_key``. Each file is rotated on its
        own, so a failure leaves the others untouched. Files that already
        open with ``current_secret`` are skipped.

        Returns:
            Stats dict with keys: total, rotated, errors, skipped.

        Raises:
            InvalidCredential: If ``current_secret`` is not the vault key.
        """
        vault = await self._get_vault(vault_id)
        require_secret(current_secret)
        if not await self._verify(current_secret, vault.vault_key):
            raise InvalidCredential("Invalid vault key")
        with storage_errors("read", f"files of vault {vault_id}"):
            files = await self._meta.list_files(vault_id, EncryptionType.VAULT)

        stats = {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}
        logger.info(
            "Starting re-encryption of %d vault-keyed file(s) in vault %s (batch_size=%d)",
            len(files), vault_id, batch_size,
        )
        for offset in range(0, len(files), batch_size):
            batch = files[offset:offset + batch_size]
            logger.info(
                "Processing batch %d (%d files)", (offset // batch_size) + 1, len(batch),
            )
            for file in batch:
                stats["total"] += 1
                try:
                    await self.rotate_file_key(
                        file.id, previous_secret, current_secret, EncryptionType.VAULT,
                    )
                    stats["rotated"] += 1
                except DecryptionFailed:
                    if await self._opens(file, current_secret):
                        stats["skipped"] += 1
                    else:
                        logger.error("File %s opens with neither vault key", file.id)
                        stats["errors"] += 1
                except VaultError as err:
                    logger.error(
                        "Error re-encrypting file %s: %s", file.id, type(err).__name__,
                    )
                    stats["errors"] += 1

        logger.info("Re-encryption complete: %s", stats)
        return stats
