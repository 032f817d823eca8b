"""Classify live and soft-deleted entries of a folder.

Two listings of the same folder are compared: the current listing and the
version-history listing. Providers do not attach delete markers to folder
placeholders, so a folder counts as deleted when it appears as a common prefix
in the history listing but not in the current listing.

The two listings are separate, non-isolated requests. Under concurrent
mutation a folder can be misclassified; the result is a best-effort view.
"""

from __future__ import annotations

import asyncio
import logging

from s3commander.storage.backend import ObjectStoreBackend
from s3commander.storage.models import File, Folder, FolderContents, ReconciledContents
from s3commander.storage.path import Path

logger = logging.getLogger(__name__)


def _sort_key(entry: Folder | File) -> str:
    return entry.name.casefold()


def reconcile(current: FolderContents, history: FolderContents) -> ReconciledContents:
    """Merge a current listing with a history listing of the same folder.

    Args:
        current: Result of list_folder.
        history: Result of list_folder_with_history.

    Returns:
        Live and deleted folders and files, each sorted by case-insensitive
        name (stable for names that differ only in case).
    """
    live_folders: dict[str, Folder] = {}
    for folder in current.folders:
        live_folders.setdefault(str(folder.path), folder)

    deleted_folders: dict[str, Folder] = {}
    for folder in history.folders:
        key = str(folder.path)
        if key not in live_folders:
            deleted_folders.setdefault(key, folder)

    live_files = [file for file in current.files if not file.deleted]
    live_keys = {str(file.path) for file in live_files}
    deleted_files: dict[str, File] = {}
    for file in history.files:
        key = str(file.path)
        if file.deleted and key not in live_keys:
            deleted_files.setdefault(key, file)

    return ReconciledContents(
        folders=sorted(live_folders.values(), key=_sort_key),
        files=sorted(live_files, key=_sort_key),
        deleted_folders=sorted(deleted_folders.values(), key=_sort_key),
        deleted_files=sorted(deleted_files.values(), key=_sort_key),
    )


class ListingReconciler:
    """Fetches both listings for a folder and reconciles them."""

    def __init__(self, backend: ObjectStoreBackend) -> None:
        self._backend = backend

    async def list(self, folder: Path) -> ReconciledContents:
        """List folder including soft-deleted entries.

        The two listings run concurrently; they are read-only. When one fails
        the other is canceled and the first failure is raised unwrapped.
        """
        try:
            async with asyncio.TaskGroup() as group:
                current = group.create_task(self._backend.list_folder(folder))
                history = group.create_task(self._backend.list_folder_with_history(folder))
        except ExceptionGroup as e:
            raise e.exceptions[0] from None
        result = reconcile(current.result(), history.result())
        logger.debug(
            "Reconciled %s: %d deleted folders, %d deleted files",
            folder,
            len(result.deleted_folders),
            len(result.deleted_files),
        )
        return result
