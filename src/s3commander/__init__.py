"""s3commander - a virtual filesystem over S3-compatible object storage.

Folders are emulated over the flat key namespace with a trailing "/" and all
requests are signed locally, so no backend proxy is needed.
"""

from s3commander.config import CommanderSettings, Credentials
from s3commander.context import CommanderContext
from s3commander.events import EventSink, NullEventSink
from s3commander.storage import Path

__all__ = [
    "CommanderContext",
    "CommanderSettings",
    "Credentials",
    "EventSink",
    "NullEventSink",
    "Path",
]
