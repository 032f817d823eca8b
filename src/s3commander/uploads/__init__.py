"""File transfer: upload sessions, strategies and the upload engine."""

from s3commander.uploads.engine import MultipartUploadEngine
from s3commander.uploads.session import UploadSession, UploadState
from s3commander.uploads.source import LocalFile, SourceFile
from s3commander.uploads.strategies import (
    FormPostUpload,
    MultipartUpload,
    SingleShotUpload,
    UploadStrategy,
)

__all__ = [
    "FormPostUpload",
    "LocalFile",
    "MultipartUpload",
    "MultipartUploadEngine",
    "SingleShotUpload",
    "SourceFile",
    "UploadSession",
    "UploadState",
    "UploadStrategy",
]
