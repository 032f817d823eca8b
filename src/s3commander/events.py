"""Callbacks the core invokes on its caller.

The core never touches presentation state; it reports listings, progress,
errors and completion through an EventSink.

Ordering per upload: on_progress* -> on_success | on_error -> on_complete,
followed by on_queue_complete once no transfers remain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from s3commander.storage.models import FolderContents, ReconciledContents
    from s3commander.uploads.session import UploadSession


@runtime_checkable
class EventSink(Protocol):
    """Receiver for core events."""

    def on_listed(self, contents: FolderContents | ReconciledContents) -> None: ...

    def on_progress(self, file: Any, percent: float, bytes_loaded: int) -> None: ...

    def on_success(self, session: UploadSession) -> None: ...

    def on_error(self, kind: str, message: str) -> None: ...

    def on_complete(self, session: UploadSession) -> None: ...

    def on_queue_complete(self) -> None: ...

    def on_refresh_requested(self) -> None: ...


class NullEventSink:
    """EventSink that ignores every event. Subclass and override what you need."""

    def on_listed(self, contents: FolderContents | ReconciledContents) -> None:
        pass

    def on_progress(self, file: Any, percent: float, bytes_loaded: int) -> None:
        pass

    def on_success(self, session: UploadSession) -> None:
        pass

    def on_error(self, kind: str, message: str) -> None:
        pass

    def on_complete(self, session: UploadSession) -> None:
        pass

    def on_queue_complete(self) -> None:
        pass

    def on_refresh_requested(self) -> None:
        pass
