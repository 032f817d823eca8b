"""Navigation and transfer operations.

Every operation takes a CommanderContext and explicit Path arguments. Results
are returned and also pushed to the context's event sink. Transport and
provider failures are reported through sink.on_error and re-raised so the
caller can offer a manual retry; nothing is retried automatically.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable

from s3commander.context import CommanderContext
from s3commander.storage.errors import (
    CommanderError,
    NotAFileError,
    NotAFolderError,
    PartialDeleteError,
)
from s3commander.storage.models import Folder, FolderContents, ReconciledContents, UploadConfig
from s3commander.storage.path import SEPARATOR, Path
from s3commander.storage.reconciler import ListingReconciler
from s3commander.uploads.session import UploadSession
from s3commander.uploads.source import SourceFile

logger = logging.getLogger(__name__)


def _sorted_contents(contents: FolderContents) -> FolderContents:
    return FolderContents(
        folders=sorted(contents.folders, key=lambda f: f.name.casefold()),
        files=sorted(contents.files, key=lambda f: f.name.casefold()),
    )


async def _confirmed(ctx: CommanderContext, prompt: str) -> bool:
    """Ask for confirmation when confirmation mode is on."""
    if not ctx.settings.confirm_deletes:
        return True
    if ctx.confirm is None:
        logger.info("Confirmation required but no confirm callback set: %s", prompt)
        return False
    answer = ctx.confirm(prompt)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


async def navigate(
    ctx: CommanderContext,
    folder: Path,
    *,
    show_deleted: bool = False,
) -> FolderContents | ReconciledContents:
    """List a folder and publish the result through sink.on_listed.

    Args:
        ctx: Session context.
        folder: Folder to list.
        show_deleted: Include soft-deleted folders and files (requires a
            versioned bucket).

    Raises:
        NotAFolderError: If folder is a file path.
        ListingError: If the listing fails.
    """
    if not folder.is_folder() and not folder.is_root():
        raise NotAFolderError(folder)
    try:
        if show_deleted:
            contents: FolderContents | ReconciledContents = await ListingReconciler(
                ctx.backend
            ).list(folder)
        else:
            contents = _sorted_contents(await ctx.backend.list_folder(folder))
    except CommanderError as e:
        ctx.sink.on_error("listing", str(e))
        raise
    ctx.sink.on_listed(contents)
    return contents


async def create_folder(ctx: CommanderContext, parent: Path, name: str) -> Folder:
    """Create a folder named name inside parent."""
    if not parent.is_folder() and not parent.is_root():
        raise NotAFolderError(parent)
    name = name.strip(SEPARATOR)
    if not name:
        raise ValueError("Folder name must not be empty")
    path = parent.clone().push(name + SEPARATOR)
    try:
        folder = await ctx.backend.create_folder(path)
    except CommanderError as e:
        ctx.sink.on_error("create_folder", str(e))
        raise
    ctx.sink.on_refresh_requested()
    return folder


async def delete_file(ctx: CommanderContext, file: Path) -> bool:
    """Delete a file. Returns False when the caller declined confirmation."""
    if file.is_folder() or file.is_root():
        raise NotAFileError(file)
    if not await _confirmed(ctx, f"Delete file {file}?"):
        logger.info("Deletion of %s declined", file)
        return False
    try:
        await ctx.backend.delete_file(file)
    except CommanderError as e:
        ctx.sink.on_error("delete", str(e))
        raise
    ctx.sink.on_refresh_requested()
    return True


async def delete_folder(ctx: CommanderContext, folder: Path) -> bool:
    """Delete a folder and everything under it.

    Returns False when the caller declined confirmation. A partial failure is
    reported and raised as PartialDeleteError; the contents still refresh
    because some keys were deleted.
    """
    if not folder.is_folder():
        raise NotAFolderError(folder)
    if not await _confirmed(ctx, f"Delete folder {folder} and all of its contents?"):
        logger.info("Deletion of %s declined", folder)
        return False
    try:
        await ctx.backend.delete_folder(folder)
    except PartialDeleteError as e:
        ctx.sink.on_error("partial_delete", str(e))
        ctx.sink.on_refresh_requested()
        raise
    except CommanderError as e:
        ctx.sink.on_error("delete", str(e))
        raise
    ctx.sink.on_refresh_requested()
    return True


def get_upload_config(ctx: CommanderContext, folder: Path) -> UploadConfig:
    """Form fields for uploading into folder with a POST."""
    return ctx.backend.get_upload_policy(folder)


def upload_files(
    ctx: CommanderContext,
    sources: Iterable[SourceFile],
    folder: Path,
) -> list[UploadSession]:
    """Queue files for upload into folder. Must be called from a running loop."""
    if not folder.is_folder() and not folder.is_root():
        raise NotAFolderError(folder)
    assert ctx.engine is not None
    return [ctx.engine.submit(source, folder.clone().push(source.name)) for source in sources]
