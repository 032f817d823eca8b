"""Upload queue and per-file state machine.

Files are transferred by tasks on the running event loop. The number of files
in flight is bounded by a semaphore (default 1); parts of one file always go
sequentially, so one part buffer per active file is held in memory.

Failures leave a session FAILED with its upload id kept; the engine never
resubmits on its own. Callers resume with resume(session).
"""

from __future__ import annotations

import asyncio
import logging

from s3commander.config import DEFAULT_PART_SIZE
from s3commander.events import EventSink, NullEventSink
from s3commander.storage.backend import ObjectStoreBackend
from s3commander.storage.errors import (
    CommanderError,
    NotAFileError,
    SigningError,
    UploadError,
    UploadErrorKind,
)
from s3commander.storage.path import Path
from s3commander.uploads.session import UploadSession, UploadState
from s3commander.uploads.source import SourceFile
from s3commander.uploads.strategies import MultipartUpload, SingleShotUpload, UploadStrategy

logger = logging.getLogger(__name__)


def _error_kind(error: Exception) -> str:
    if isinstance(error, UploadError):
        return str(error.kind)
    if isinstance(error, SigningError):
        return "signing"
    return "upload"


class MultipartUploadEngine:
    """Accepts files into a transfer queue and drives each to a terminal state.

    Files at or below one part size use small_file_strategy (a single PUT by
    default); larger files use large_file_strategy (multipart by default).
    """

    def __init__(
        self,
        backend: ObjectStoreBackend,
        *,
        sink: EventSink | None = None,
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = 1,
        small_file_strategy: UploadStrategy | None = None,
        large_file_strategy: UploadStrategy | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._backend = backend
        self._sink: EventSink = sink or NullEventSink()
        self._part_size = part_size
        self._small = small_file_strategy or SingleShotUpload()
        self._large = large_file_strategy or MultipartUpload(part_size)
        self._semaphore = asyncio.Semaphore(concurrency)
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def strategy_for(self, session: UploadSession) -> UploadStrategy:
        if session.total_bytes <= self._part_size:
            return self._small
        return self._large

    def submit(self, source: SourceFile, destination: Path) -> UploadSession:
        """Accept a file into the queue. Must be called from a running loop.

        Raises:
            NotAFileError: If destination is a folder path.
        """
        if destination.is_folder() or destination.is_root():
            raise NotAFileError(destination)
        session = UploadSession(
            source=source,
            destination=destination.clone(),
            total_bytes=source.size,
        )
        self._start(session)
        return session

    def resume(self, session: UploadSession) -> UploadSession:
        """Resubmit a FAILED session, reusing its upload id."""
        if session.state != UploadState.FAILED:
            raise ValueError(f"Only failed sessions can be resumed (state={session.state})")
        session.requeue()
        self._start(session)
        return session

    def _start(self, session: UploadSession) -> None:
        logger.info("Queued %s (%d bytes)", session.destination, session.total_bytes)
        self._tasks[session.id] = asyncio.create_task(self._run(session))

    async def join(self) -> None:
        """Wait until the queue drains."""
        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def cancel(self, session: UploadSession) -> None:
        """Cancel a session.

        An in-flight transfer is interrupted immediately. Unless the session
        already completed, its multipart upload is aborted so the provider
        releases the stored parts.
        """
        task = self._tasks.get(session.id)
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            if self._tasks.pop(session.id, None) is not None:
                # Canceled before the task ever ran.
                self._mark_canceled(session)
                session.finish()
                if not self._tasks:
                    self._sink.on_queue_complete()
            return
        if session.state == UploadState.FAILED:
            await self._abort(session)
            session.state = UploadState.CANCELED
            logger.info("Canceled failed upload of %s", session.destination)

    async def _abort(self, session: UploadSession) -> None:
        strategy = self.strategy_for(session)
        try:
            await strategy.abort(session, self._backend)
        except CommanderError as e:
            logger.warning("Abort of %s failed: %s", session.destination, e)
            self._sink.on_error(_error_kind(e), str(e))

    def _mark_canceled(self, session: UploadSession) -> None:
        session.state = UploadState.CANCELED
        logger.info("Canceled upload of %s", session.destination)
        self._sink.on_error(UploadErrorKind.ABORTED, f"Upload of {session.destination} canceled")
        self._sink.on_complete(session)

    def _progress(self, session: UploadSession, nbytes: int) -> None:
        session.uploaded_bytes = min(session.total_bytes, session.uploaded_bytes + nbytes)
        self._sink.on_progress(session.source, session.percent, session.uploaded_bytes)

    async def _run(self, session: UploadSession) -> None:
        try:
            async with self._semaphore:
                await self._transfer(session)
        except asyncio.CancelledError:
            if session.state != UploadState.COMPLETED:
                await self._abort(session)
                self._mark_canceled(session)
            raise
        finally:
            self._tasks.pop(session.id, None)
            session.finish()
            if not self._tasks:
                self._sink.on_queue_complete()

    async def _transfer(self, session: UploadSession) -> None:
        strategy = self.strategy_for(session)
        session.strategy = strategy.name
        try:
            await strategy.upload(session, self._backend, self._progress)
        except (CommanderError, OSError) as e:
            error = e if isinstance(e, CommanderError) else UploadError(
                f"Cannot read {session.source.name}: {e}",
                kind=UploadErrorKind.TRANSIENT,
                key=str(session.destination),
                cause=e,
            )
            session.state = UploadState.FAILED
            session.error = error
            logger.warning("Upload of %s failed: %s", session.destination, error)
            self._sink.on_error(_error_kind(error), str(error))
            self._sink.on_complete(session)
            return

        session.state = UploadState.COMPLETED
        session.uploaded_bytes = session.total_bytes
        logger.info("Completed upload of %s via %s", session.destination, strategy.name)
        self._sink.on_success(session)
        self._sink.on_complete(session)
        self._sink.on_refresh_requested()
