"""s3commander listing data models.

Entries are created fresh for every listing response and are not mutated
afterwards. Folder and File wrap absolute Paths and validate the path kind on
construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from s3commander.storage.errors import NotAFileError, NotAFolderError
from s3commander.storage.path import Path


@dataclass(frozen=True)
class Bucket:
    """A bucket and whether object versioning is enabled on it."""

    name: str
    versioning: bool = False


@dataclass(frozen=True)
class FileVersion:
    """A specific version of a file.

    Attributes:
        version_id: Provider version identifier.
        last_modified: Timestamp of this version.
        latest: Whether the provider reports this as the current version.
        delete_marker: Whether this version records a deletion.
        download_link: Presigned link for this version. Never set for
            delete markers.
    """

    version_id: str
    last_modified: datetime
    latest: bool = False
    delete_marker: bool = False
    download_link: str | None = None


@dataclass(frozen=True)
class Folder:
    """A folder entry. The wrapped path must be a folder path."""

    path: Path

    def __post_init__(self) -> None:
        if not self.path.is_folder() and not self.path.is_root():
            raise NotAFolderError(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    def parent(self) -> Folder:
        return Folder(self.path.clone().pop())


@dataclass(frozen=True)
class File:
    """A file entry.

    Attributes:
        path: Absolute file path (never a folder path).
        download_link: Presigned GET link, when downloads are allowed.
        deleted: True when the latest version is a delete marker.
        versions: Version history ordered by last_modified ascending. Only
            populated by history listings.
        size: Object size in bytes, when the listing reports it.
    """

    path: Path
    download_link: str | None = None
    deleted: bool = False
    versions: tuple[FileVersion, ...] = ()
    size: int | None = None

    def __post_init__(self) -> None:
        if self.path.is_folder() or self.path.is_root():
            raise NotAFileError(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    def folder(self) -> Folder:
        """Folder containing this file."""
        parent = self.path.clone().pop()
        return Folder(Path(f"{parent}/") if not parent.is_root() else Path())


BucketEntry = Folder | File


@dataclass(frozen=True)
class FolderContents:
    """Folders and files directly inside a folder."""

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


@dataclass(frozen=True)
class ReconciledContents:
    """Current listing merged with version history.

    Attributes:
        folders: Live folders.
        files: Live files (deleted=False).
        deleted_folders: Folders only present in the version history.
        deleted_files: Files whose latest version is a delete marker.
    """

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)
    deleted_folders: list[Folder] = field(default_factory=list)
    deleted_files: list[File] = field(default_factory=list)


@dataclass(frozen=True)
class UploadConfig:
    """Settings for a browser-style POST upload.

    Attributes:
        url: Target URL for the POST request.
        fields: Form fields to send with the file. The "key" field holds the
            destination key template ending in "${filename}".
    """

    url: str
    fields: dict[str, str]


@dataclass(frozen=True)
class MultipartPart:
    """A part acknowledged by the provider."""

    part_number: int
    etag: str
    size: int = 0
