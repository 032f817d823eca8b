"""Explicit per-session context passed to every navigation operation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from s3commander.config import CommanderSettings, Credentials
from s3commander.events import EventSink, NullEventSink
from s3commander.storage.backend import ObjectStoreBackend
from s3commander.storage.path import SEPARATOR, Path
from s3commander.storage.s3_backend import S3Backend
from s3commander.storage.signing import Clock, utc_now
from s3commander.uploads.engine import MultipartUploadEngine
from s3commander.uploads.strategies import FormPostUpload, SingleShotUpload

ConfirmCallback = Callable[[str], bool | Awaitable[bool]]


@dataclass
class CommanderContext:
    """Everything an operation needs, with no shared mutable state.

    Attributes:
        backend: Object store backend for the bucket.
        settings: Connection and transfer settings.
        sink: Receiver for listing, progress and error events.
        engine: Upload engine bound to backend and sink.
        confirm: Called with a prompt before destructive operations when
            settings.confirm_deletes is set.
    """

    backend: ObjectStoreBackend
    settings: CommanderSettings
    sink: EventSink = field(default_factory=NullEventSink)
    engine: MultipartUploadEngine | None = None
    confirm: ConfirmCallback | None = None

    def __post_init__(self) -> None:
        if self.engine is None:
            self.engine = MultipartUploadEngine(
                self.backend,
                sink=self.sink,
                part_size=self.settings.part_size,
                concurrency=self.settings.concurrency,
            )

    @classmethod
    def create(
        cls,
        settings: CommanderSettings,
        credentials: Credentials,
        *,
        sink: EventSink | None = None,
        confirm: ConfirmCallback | None = None,
        form_post: bool = False,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ) -> CommanderContext:
        """Build a context backed by S3Backend.

        Args:
            settings: Connection and transfer settings.
            credentials: Already-resolved credentials.
            sink: Event receiver (defaults to NullEventSink).
            confirm: Confirmation callback for destructive operations.
            form_post: Upload small files with a policy-signed form POST
                instead of a presigned PUT.
            http_client: Optional client for dependency injection (testing).
            clock: Clock used for signing.
        """
        sink = sink or NullEventSink()
        backend = S3Backend(settings, credentials, http_client=http_client, clock=clock)
        engine = MultipartUploadEngine(
            backend,
            sink=sink,
            part_size=settings.part_size,
            concurrency=settings.concurrency,
            small_file_strategy=FormPostUpload() if form_post else SingleShotUpload(),
        )
        return cls(backend=backend, settings=settings, sink=sink, engine=engine, confirm=confirm)

    def root_folder(self) -> Path:
        """Folder the session starts in."""
        prefix = self.settings.prefix.strip(SEPARATOR)
        if not prefix:
            return Path()
        return Path(prefix + SEPARATOR)

    async def aclose(self) -> None:
        if isinstance(self.backend, S3Backend):
            await self.backend.aclose()
