"""Object store backend interface.

A backend turns a flat key namespace into folders and files. Folder and file
arguments are absolute Paths relative to the bucket root; operations validate
the path kind and raise NotAFolderError / NotAFileError on mismatch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from s3commander.storage.models import (
    Bucket,
    Folder,
    FolderContents,
    MultipartPart,
    UploadConfig,
)
from s3commander.storage.path import Path


class ObjectStoreBackend(ABC):
    """Abstract base class for object store backends.

    Implementations:
    - S3Backend: S3 REST API with locally signed requests
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Name of the bucket this backend addresses."""
        ...

    @abstractmethod
    async def get_bucket(self) -> Bucket:
        """Return the bucket and whether versioning is enabled."""
        ...

    @abstractmethod
    async def list_folder(self, folder: Path) -> FolderContents:
        """List folders and files directly inside folder.

        The folder's own marker object is never reported as a file.

        Raises:
            NotAFolderError: If folder is a file path.
            ListingError: If the listing fails or cannot be parsed.
        """
        ...

    @abstractmethod
    async def list_folder_with_history(self, folder: Path) -> FolderContents:
        """List folders and files inside folder from the version history.

        Each file carries its versions sorted ascending by last_modified and
        is marked deleted when the latest version is a delete marker. Folders
        include prefixes that only exist in the history.

        Raises:
            NotAFolderError: If folder is a file path.
            ListingError: If the listing fails or cannot be parsed.
        """
        ...

    @abstractmethod
    async def create_folder(self, folder: Path) -> Folder:
        """Write the zero-length marker object for folder.

        Raises:
            NotAFolderError: If folder is a file path.
            RequestError: If the provider rejects the write.
        """
        ...

    @abstractmethod
    async def delete_folder(self, folder: Path) -> list[str]:
        """Delete every key under folder.

        Returns:
            Deleted keys.

        Raises:
            NotAFolderError: If folder is a file path.
            ListingError: If the keys under folder cannot be listed.
            PartialDeleteError: If some keys could not be deleted. Deleted keys
                stay deleted.
        """
        ...

    @abstractmethod
    async def delete_file(self, file: Path) -> None:
        """Delete a single object.

        Raises:
            NotAFileError: If file is a folder path.
            RequestError: If the provider rejects the delete.
        """
        ...

    @abstractmethod
    def get_download_link(self, file: Path, version_id: str | None = None) -> str:
        """Return a presigned GET link for file (optionally a specific version)."""
        ...

    @abstractmethod
    def get_upload_policy(self, folder: Path) -> UploadConfig:
        """Return URL and form fields for a POST upload into folder."""
        ...

    @abstractmethod
    async def put_object(self, file: Path, data: bytes) -> str:
        """Upload a whole object with one PUT. Returns the ETag."""
        ...

    @abstractmethod
    async def post_object(self, config: UploadConfig, filename: str, data: bytes) -> None:
        """Upload a whole object with a policy-signed form POST."""
        ...

    @abstractmethod
    async def find_multipart_upload(self, file: Path) -> str | None:
        """Return the id of the newest in-flight multipart upload for file."""
        ...

    @abstractmethod
    async def create_multipart_upload(self, file: Path) -> str:
        """Start a multipart upload and return its id."""
        ...

    @abstractmethod
    async def upload_part(self, file: Path, upload_id: str, part_number: int, data: bytes) -> str:
        """Upload one part and return its ETag."""
        ...

    @abstractmethod
    async def list_parts(self, file: Path, upload_id: str) -> list[MultipartPart]:
        """List the parts the provider has acknowledged, ascending."""
        ...

    @abstractmethod
    async def complete_multipart_upload(
        self, file: Path, upload_id: str, parts: list[MultipartPart]
    ) -> None:
        """Finalize a multipart upload from its parts."""
        ...

    @abstractmethod
    async def abort_multipart_upload(self, file: Path, upload_id: str) -> None:
        """Abort a multipart upload, releasing its stored parts."""
        ...
