"""Shared fixtures for the file vault tests."""
from datetime import datetime, timedelta, timezone

import pytest

from filevault.vault import (
    FileVault,
    MemoryActivitySink,
    MemoryBlobStore,
    MemoryMetadataStore,
    VaultConfig,
    set_config,
)

# Low PBKDF2 cost keeps the verifier tests fast.
TEST_HASH_ROUNDS = 1000


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def config():
    return VaultConfig(hash_rounds=TEST_HASH_ROUNDS, upload_dir="uploads")


@pytest.fixture(autouse=True)
def vault_config(config):
    """Install the low-cost config process-wide for the duration of a test."""
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def metadata():
    return MemoryMetadataStore()


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def activity():
    return MemoryActivitySink()


@pytest.fixture
def file_vault(metadata, blobs, config, activity, clock):
    return FileVault(metadata, blobs, config=config, activity=activity, clock=clock)
