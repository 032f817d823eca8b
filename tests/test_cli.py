"""Tests for the s3commander CLI."""

from __future__ import annotations

import json
from pathlib import Path as FilePath

import pytest

from s3commander.cli import create_parser, main
from tests.fakes import FakeS3


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, fake_s3: FakeS3) -> None:
    monkeypatch.setenv("S3COMMANDER_BUCKET", fake_s3.bucket)
    monkeypatch.setenv("S3COMMANDER_ACCESS_KEY_ID", "AKIDEXAMPLE")
    monkeypatch.setenv("S3COMMANDER_SECRET_ACCESS_KEY", "test-secret")


def _run(capsys: pytest.CaptureFixture[str], fake: FakeS3, *argv: str) -> tuple[int, object]:
    code = main(list(argv), http_client=fake.client())
    return code, json.loads(capsys.readouterr().out)


class TestParser:
    """Tests for argument parsing."""

    def test_ls_defaults(self) -> None:
        args = create_parser().parse_args(["ls"])
        assert args.folder is None
        assert args.deleted is False

    def test_upload_requires_destination(self) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["upload", "a.txt"])

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "s3commander" in capsys.readouterr().out


@pytest.mark.usefixtures("cli_env")
class TestCommands:
    """Tests for commands against an in-memory bucket."""

    def test_bucket(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        code, output = _run(capsys, fake_s3, "bucket")
        assert code == 0
        assert output == {"name": "test-bucket", "versioning": False}

    def test_ls(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        fake_s3.put("docs/a.txt", b"hello")
        fake_s3.put("docs/sub/b.txt", b"x")
        code, output = _run(capsys, fake_s3, "ls", "docs")
        assert code == 0
        assert [f["path"] for f in output["folders"]] == ["docs/sub/"]
        [entry] = output["files"]
        assert entry["path"] == "docs/a.txt"
        assert entry["size"] == 5
        assert entry["deleted"] is False

    def test_ls_uses_prefix_as_start_folder(
        self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3
    ) -> None:
        fake_s3.put("docs/a.txt", b"x")
        fake_s3.put("top.txt", b"x")
        code, output = _run(capsys, fake_s3, "--prefix", "docs", "ls")
        assert [f["name"] for f in output["files"]] == ["a.txt"]

    def test_ls_deleted(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        fake_s3.versioning = True
        fake_s3.put("old.txt", b"x")
        fake_s3.remove("old.txt")
        code, output = _run(capsys, fake_s3, "ls", "--deleted")
        assert code == 0
        assert [f["name"] for f in output["deleted_files"]] == ["old.txt"]
        assert output["files"] == []

    def test_history(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        fake_s3.versioning = True
        fake_s3.put("a.txt", b"1")
        fake_s3.put("a.txt", b"2")
        code, output = _run(capsys, fake_s3, "history", "/")
        assert code == 0
        assert len(output["files"][0]["versions"]) == 2

    def test_mkdir(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        code, output = _run(capsys, fake_s3, "mkdir", "docs/new")
        assert code == 0
        assert output == {"name": "new", "path": "docs/new/", "type": "folder"}
        assert fake_s3.current("docs/new/") == b""

    def test_rm(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        fake_s3.put("a.txt", b"x")
        code, output = _run(capsys, fake_s3, "rm", "a.txt")
        assert code == 0
        assert output == {"deleted": True, "path": "a.txt"}
        assert fake_s3.current("a.txt") is None

    def test_rmdir_partial_failure(
        self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3
    ) -> None:
        fake_s3.put("docs/a.txt", b"x")
        fake_s3.put("docs/b.txt", b"x")
        fake_s3.delete_errors = {"docs/b.txt"}
        code, output = _run(capsys, fake_s3, "rmdir", "docs", "--yes")
        assert code == 1
        assert output["deleted"] == ["docs/a.txt"]
        assert list(output["failed"]) == ["docs/b.txt"]

    def test_rmdir_declined(
        self,
        capsys: pytest.CaptureFixture[str],
        fake_s3: FakeS3,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("S3COMMANDER_CONFIRM_DELETES", "1")
        monkeypatch.setattr("s3commander.cli._confirm_on_tty", lambda prompt: False)
        fake_s3.put("docs/a.txt", b"x")
        code, output = _run(capsys, fake_s3, "rmdir", "docs")
        assert code == 1
        assert output == {"deleted": False, "path": "docs/"}
        assert fake_s3.current("docs/a.txt") == b"x"

    def test_link(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        code, output = _run(capsys, fake_s3, "link", "a.txt", "--version", "v1")
        assert code == 0
        assert output["url"].startswith("https://test-bucket.s3.amazonaws.com/a.txt?")
        assert "versionId=v1" in output["url"]

    def test_policy(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        code, output = _run(capsys, fake_s3, "policy", "inbox")
        assert code == 0
        assert output["url"] == "https://test-bucket.s3.amazonaws.com/"
        assert output["fields"]["key"] == "inbox/${filename}"

    def test_upload(
        self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3, tmp_path: FilePath
    ) -> None:
        local = tmp_path / "notes.txt"
        local.write_bytes(b"remember")
        code, output = _run(capsys, fake_s3, "upload", str(local), "--to", "inbox")
        assert code == 0
        assert output == [
            {"error": None, "path": "inbox/notes.txt", "state": "completed", "strategy": "single_shot"}
        ]
        assert fake_s3.current("inbox/notes.txt") == b"remember"

    def test_missing_file_fails(
        self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3, tmp_path: FilePath
    ) -> None:
        code, output = _run(capsys, fake_s3, "upload", str(tmp_path / "nope"), "--to", "inbox")
        assert code == 1
        assert output["error"] == "FileNotFoundError"


class TestConfigurationErrors:
    """Tests for failures before any request is sent."""

    def test_missing_credentials(
        self,
        capsys: pytest.CaptureFixture[str],
        fake_s3: FakeS3,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("S3COMMANDER_BUCKET", fake_s3.bucket)
        code, output = _run(capsys, fake_s3, "bucket")
        assert code == 1
        assert output["error"] == "SigningError"
        assert fake_s3.requests == []

    def test_missing_bucket(self, capsys: pytest.CaptureFixture[str], fake_s3: FakeS3) -> None:
        code, output = _run(capsys, fake_s3, "bucket")
        assert code == 1
        assert output["error"] == "ValidationError"
