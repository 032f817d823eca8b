"""Tests for merging current and history listings."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from s3commander.config import CommanderSettings, Credentials
from s3commander.storage.errors import ListingError
from s3commander.storage.models import File, Folder, FolderContents
from s3commander.storage.path import Path
from s3commander.storage.reconciler import ListingReconciler, reconcile
from s3commander.storage.s3_backend import S3Backend
from tests.fakes import FakeS3, fixed_clock


def _names(entries: list) -> list[str]:
    return [entry.name for entry in entries]


class TestReconcile:
    """Tests for the pure reconcile step."""

    def test_folder_only_in_history_is_deleted(self) -> None:
        current = FolderContents(folders=[Folder(Path("live/"))])
        history = FolderContents(folders=[Folder(Path("live/")), Folder(Path("gone/"))])
        result = reconcile(current, history)
        assert _names(result.folders) == ["live"]
        assert _names(result.deleted_folders) == ["gone"]

    def test_deleted_file_from_history(self) -> None:
        current = FolderContents(files=[File(Path("a.txt"))])
        history = FolderContents(
            files=[File(Path("a.txt")), File(Path("b.txt"), deleted=True)]
        )
        result = reconcile(current, history)
        assert _names(result.files) == ["a.txt"]
        assert _names(result.deleted_files) == ["b.txt"]

    def test_recreated_file_is_live_only(self) -> None:
        current = FolderContents(files=[File(Path("a.txt"))])
        history = FolderContents(files=[File(Path("a.txt"), deleted=True)])
        result = reconcile(current, history)
        assert _names(result.files) == ["a.txt"]
        assert result.deleted_files == []

    def test_case_insensitive_order(self) -> None:
        current = FolderContents(
            folders=[Folder(Path("beta/")), Folder(Path("Alpha/"))],
            files=[File(Path("b.txt")), File(Path("C.txt")), File(Path("a.txt"))],
        )
        result = reconcile(current, FolderContents())
        assert _names(result.folders) == ["Alpha", "beta"]
        assert _names(result.files) == ["a.txt", "b.txt", "C.txt"]

    def test_duplicates_collapse(self) -> None:
        current = FolderContents(folders=[Folder(Path("x/")), Folder(Path("x/"))])
        history = FolderContents(
            folders=[Folder(Path("y/")), Folder(Path("y/"))],
            files=[File(Path("d.txt"), deleted=True), File(Path("d.txt"), deleted=True)],
        )
        result = reconcile(current, history)
        assert len(result.folders) == 1
        assert len(result.deleted_folders) == 1
        assert len(result.deleted_files) == 1


class TestListingReconciler:
    """Tests against a versioned bucket."""

    def test_soft_deleted_folder_and_file(
        self, versioned_s3: FakeS3, versioned_backend: S3Backend
    ) -> None:
        versioned_s3.put("docs/keep.txt", b"x")
        versioned_s3.put("docs/old.txt", b"x")
        versioned_s3.remove("docs/old.txt")
        versioned_s3.put("docs/archive/a.txt", b"x")
        versioned_s3.remove("docs/archive/a.txt")
        versioned_s3.put("docs/live/b.txt", b"x")

        result = asyncio.run(ListingReconciler(versioned_backend).list(Path("docs/")))

        assert _names(result.folders) == ["live"]
        assert _names(result.deleted_folders) == ["archive"]
        assert _names(result.files) == ["keep.txt"]
        assert _names(result.deleted_files) == ["old.txt"]
        assert result.deleted_files[0].download_link is None

    def test_failed_listing_cancels_the_other(self, credentials: Credentials) -> None:
        history_started = asyncio.Event()
        history_cancelled = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if "versions" in request.url.params:
                history_started.set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    history_cancelled.set()
                    raise
            await history_started.wait()
            body = b"<Error><Code>AccessDenied</Code><Message>Denied</Message></Error>"
            return httpx.Response(403, content=body)

        backend = S3Backend(
            CommanderSettings(bucket="test-bucket"),
            credentials,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            clock=fixed_clock,
        )

        async def scenario() -> None:
            with pytest.raises(ListingError, match="AccessDenied"):
                await ListingReconciler(backend).list(Path("docs/"))

        asyncio.run(scenario())
        assert history_cancelled.is_set()
