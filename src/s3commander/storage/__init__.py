"""Object storage access: paths, signing, the S3 backend and listing reconciliation."""

from s3commander.storage.backend import ObjectStoreBackend
from s3commander.storage.errors import (
    CommanderError,
    ListingError,
    NotAFileError,
    NotAFolderError,
    PartialDeleteError,
    RequestError,
    ResumeMismatchError,
    SigningError,
    UploadError,
    UploadErrorKind,
)
from s3commander.storage.models import (
    Bucket,
    File,
    FileVersion,
    Folder,
    FolderContents,
    MultipartPart,
    ReconciledContents,
    UploadConfig,
)
from s3commander.storage.path import Path

__all__ = [
    "Bucket",
    "CommanderError",
    "File",
    "FileVersion",
    "Folder",
    "FolderContents",
    "ListingError",
    "MultipartPart",
    "NotAFileError",
    "NotAFolderError",
    "ObjectStoreBackend",
    "PartialDeleteError",
    "Path",
    "ReconciledContents",
    "RequestError",
    "ResumeMismatchError",
    "SigningError",
    "UploadConfig",
    "UploadError",
    "UploadErrorKind",
]
