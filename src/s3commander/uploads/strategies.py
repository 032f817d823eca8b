"""Upload transfer strategies.

The engine picks a strategy per file at construction time instead of patching
transport behavior per call site:
- SingleShotUpload: one presigned PUT of the whole file
- FormPostUpload: one policy-signed form POST of the whole file
- MultipartUpload: resumable, chunked multipart protocol
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from s3commander.config import DEFAULT_PART_SIZE
from s3commander.storage.backend import ObjectStoreBackend
from s3commander.storage.errors import ResumeMismatchError, UploadError
from s3commander.storage.models import File, MultipartPart
from s3commander.uploads.hashing import md5_of_range
from s3commander.uploads.session import UploadSession, UploadState

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadSession, int], None]


class UploadStrategy(ABC):
    """Transfers one session's file to its destination."""

    name: str = ""

    @abstractmethod
    async def upload(
        self,
        session: UploadSession,
        backend: ObjectStoreBackend,
        progress: ProgressCallback,
    ) -> None:
        """Transfer the file, calling progress(session, nbytes) per chunk.

        Raises:
            CommanderError: On transport or provider failure.
        """
        ...

    async def abort(self, session: UploadSession, backend: ObjectStoreBackend) -> None:
        """Release provider-side state for a canceled session."""
        return None


class SingleShotUpload(UploadStrategy):
    """Upload the whole file with one PUT."""

    name = "single_shot"

    async def upload(
        self,
        session: UploadSession,
        backend: ObjectStoreBackend,
        progress: ProgressCallback,
    ) -> None:
        session.state = UploadState.UPLOADING
        data = await session.source.read(0, session.total_bytes)
        await backend.put_object(session.destination, data)
        progress(session, len(data))


class FormPostUpload(UploadStrategy):
    """Upload the whole file with a form POST carrying a signed policy."""

    name = "form_post"

    async def upload(
        self,
        session: UploadSession,
        backend: ObjectStoreBackend,
        progress: ProgressCallback,
    ) -> None:
        session.state = UploadState.UPLOADING
        folder = File(session.destination).folder()
        config = backend.get_upload_policy(folder.path)
        data = await session.source.read(0, session.total_bytes)
        await backend.post_object(config, session.destination.name, data)
        progress(session, len(data))


class MultipartUpload(UploadStrategy):
    """Resumable multipart upload with sequential fixed-size parts.

    On start, an in-flight upload for the destination key is looked up. If
    one exists, every acknowledged part is re-hashed from the local file and
    compared with the provider's checksum; only missing or mismatched parts
    are transferred.
    """

    name = "multipart"

    def __init__(self, part_size: int = DEFAULT_PART_SIZE) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self.part_size = part_size

    def part_count(self, total_bytes: int) -> int:
        return max(1, -(-total_bytes // self.part_size))

    def part_range(self, part_number: int, total_bytes: int) -> tuple[int, int]:
        """(offset, length) of a 1-based part. The final part may be smaller."""
        offset = (part_number - 1) * self.part_size
        return offset, min(self.part_size, total_bytes - offset)

    async def verify_part(self, session: UploadSession, part: MultipartPart) -> None:
        """Check an acknowledged part against the local file.

        Raises:
            ResumeMismatchError: If size or content hash differ.
        """
        key = str(session.destination)
        offset, length = self.part_range(part.part_number, session.total_bytes)
        if part.size and part.size != length:
            raise ResumeMismatchError(
                part.part_number,
                expected=f"{part.size} bytes",
                actual=f"{length} bytes",
                key=key,
            )
        local = await md5_of_range(session.source, offset, length)
        if local != part.etag.lower():
            raise ResumeMismatchError(part.part_number, expected=part.etag, actual=local, key=key)

    async def _acknowledged_parts(
        self, session: UploadSession, backend: ObjectStoreBackend
    ) -> list[MultipartPart] | None:
        """Parts the provider holds for session.upload_id.

        Returns None and clears the upload id when the provider no longer
        knows the upload (expired, aborted elsewhere or removed by a
        lifecycle rule).
        """
        assert session.upload_id is not None
        try:
            return await backend.list_parts(session.destination, session.upload_id)
        except UploadError as e:
            if e.status_code != 404:
                raise
        logger.warning("Multipart upload of %s no longer exists; starting over", session.destination)
        session.upload_id = None
        session.parts = []
        return None

    async def _confirmed_parts(
        self, session: UploadSession, acknowledged: list[MultipartPart]
    ) -> list[MultipartPart]:
        count = self.part_count(session.total_bytes)
        confirmed = []
        for part in acknowledged:
            if part.part_number > count:
                continue
            try:
                await self.verify_part(session, part)
            except ResumeMismatchError as e:
                logger.warning("Re-queueing part for %s: %s", session.destination, e.message)
                continue
            confirmed.append(part)
        return confirmed

    async def upload(
        self,
        session: UploadSession,
        backend: ObjectStoreBackend,
        progress: ProgressCallback,
    ) -> None:
        destination = session.destination
        session.state = UploadState.AWAITING_UPLOAD_ID
        acknowledged: list[MultipartPart] | None = None
        if session.upload_id is not None:
            acknowledged = await self._acknowledged_parts(session, backend)
        if acknowledged is None:
            session.upload_id = await backend.find_multipart_upload(destination)
            if session.upload_id is not None:
                acknowledged = await self._acknowledged_parts(session, backend)

        pending = list(range(1, self.part_count(session.total_bytes) + 1))
        if acknowledged is not None:
            session.state = UploadState.RESUMING
            logger.info("Resuming upload of %s (upload id kept)", destination)
            session.parts = []
            for part in await self._confirmed_parts(session, acknowledged):
                session.record_part(part)
                _, length = self.part_range(part.part_number, session.total_bytes)
                progress(session, length)
            done = {p.part_number for p in session.parts}
            pending = [n for n in pending if n not in done]
        else:
            session.upload_id = await backend.create_multipart_upload(destination)

        session.state = UploadState.UPLOADING
        for part_number in pending:
            offset, length = self.part_range(part_number, session.total_bytes)
            data = await session.source.read(offset, length)
            etag = await backend.upload_part(destination, session.upload_id, part_number, data)
            session.record_part(MultipartPart(part_number=part_number, etag=etag, size=len(data)))
            session.transferred_parts.append(part_number)
            progress(session, len(data))

        await backend.complete_multipart_upload(destination, session.upload_id, session.parts)

    async def abort(self, session: UploadSession, backend: ObjectStoreBackend) -> None:
        if session.upload_id is None:
            return
        await backend.abort_multipart_upload(session.destination, session.upload_id)
        logger.info("Aborted multipart upload of %s", session.destination)
        session.upload_id = None
        session.parts = []
