"""
Vault Activity — Audit events emitted by the key-lifecycle engine.

Events carry ids, action names and short descriptions only. They never
include secrets, credentials, IVs or file contents. Persisting them is left
to the sink the caller provides; the default sink writes one JSON line per
event to the ``filevault.activity`` logger.
"""
import logging
from enum import Enum
from datetime import datetime
from typing import Protocol

import orjson
from pydantic import BaseModel, Field

from .models import utcnow

logger = logging.getLogger("filevault.activity")


class ActivityAction(str, Enum):
    VAULT_CREATE = "VAULT_CREATE"
    VAULT_ACCESS = "VAULT_ACCESS"
    VAULT_KEY_CHANGE = "VAULT_KEY_CHANGE"
    VAULT_DELETE = "VAULT_DELETE"
    FILE_UPLOAD = "FILE_UPLOAD"
    FILE_DECRYPT = "FILE_DECRYPT"
    FILE_KEY_CHANGE = "FILE_KEY_CHANGE"
    FILE_DELETE = "FILE_DELETE"
    FILE_REPAIR_FLAGGED = "FILE_REPAIR_FLAGGED"


class ActivityEvent(BaseModel):
    action: ActivityAction
    details: str
    vault_id: str | None = None
    file_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    def encode(self) -> bytes:
        """orjson-encoded event."""
        return orjson.dumps(self.model_dump(mode="json"))

    @classmethod
    def decode(cls, data: bytes) -> "ActivityEvent":
        return cls.model_validate(orjson.loads(data))


class ActivitySink(Protocol):
    async def record(self, event: ActivityEvent) -> None: ...


class LoggingActivitySink:
    """Write each event as a JSON line to the activity logger."""

    def __init__(self, level: int = logging.INFO):
        self._level = level

    async def record(self, event: ActivityEvent) -> None:
        logger.log(self._level, "%s", event.encode().decode("utf-8"))


class MemoryActivitySink:
    """Keep events in a list (useful for tests and previews)."""

    def __init__(self):
        self.events: list[ActivityEvent] = []

    async def record(self, event: ActivityEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[ActivityAction]:
        return [e.action for e in self.events]
