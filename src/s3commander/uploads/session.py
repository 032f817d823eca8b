"""Per-file upload state."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from s3commander.storage.errors import CommanderError
from s3commander.storage.models import MultipartPart
from s3commander.storage.path import Path
from s3commander.uploads.source import SourceFile


class UploadState(StrEnum):
    """Upload lifecycle.

    QUEUED -> AWAITING_UPLOAD_ID -> RESUMING | UPLOADING -> COMPLETED.
    Any active state can move to CANCELED (explicit) or FAILED (the upload id
    is kept so the session can be resumed).
    """

    QUEUED = "queued"
    AWAITING_UPLOAD_ID = "awaiting_upload_id"
    RESUMING = "resuming"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass
class UploadSession:
    """A file accepted into the transfer queue, mutated as parts complete.

    Attributes:
        source: Local file handle.
        destination: Destination file path in the bucket.
        upload_id: Provider multipart upload id, when one exists.
        parts: Parts acknowledged so far, ascending by part number.
        total_bytes: Size of the source file.
        uploaded_bytes: Bytes confirmed or transferred so far.
        state: Current lifecycle state.
        strategy: Name of the transfer strategy in use.
        error: Failure that moved the session to FAILED.
        transferred_parts: Part numbers sent over the wire by this session.
    """

    source: SourceFile
    destination: Path
    total_bytes: int
    upload_id: str | None = None
    parts: list[MultipartPart] = field(default_factory=list)
    uploaded_bytes: int = 0
    state: UploadState = UploadState.QUEUED
    strategy: str = ""
    error: CommanderError | None = None
    transferred_parts: list[int] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _finished: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0
        return round(100.0 * self.uploaded_bytes / self.total_bytes, 1)

    def record_part(self, part: MultipartPart) -> None:
        """Add or replace an acknowledged part, keeping ascending order."""
        self.parts = [p for p in self.parts if p.part_number != part.part_number]
        self.parts.append(part)
        self.parts.sort(key=lambda p: p.part_number)

    def requeue(self) -> None:
        """Reset a failed session for another attempt, keeping its upload id."""
        self.state = UploadState.QUEUED
        self.error = None
        self.uploaded_bytes = 0
        self.transferred_parts.clear()
        self._finished.clear()

    def finish(self) -> None:
        self._finished.set()

    async def wait(self) -> UploadState:
        """Wait until the session reaches a terminal state and return it."""
        await self._finished.wait()
        return self.state
