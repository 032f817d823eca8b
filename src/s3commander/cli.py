"""s3commander CLI - browse and transfer bucket contents from a terminal.

Usage:
    s3commander [--bucket NAME] bucket
    s3commander ls [FOLDER] [--deleted]
    s3commander history FOLDER
    s3commander mkdir FOLDER
    s3commander rm FILE
    s3commander rmdir FOLDER [--yes]
    s3commander link FILE [--version ID]
    s3commander policy FOLDER
    s3commander upload FILE [FILE ...] --to FOLDER [--part-size BYTES] [--form-post]

Credentials come from S3COMMANDER_ACCESS_KEY_ID, S3COMMANDER_SECRET_ACCESS_KEY
and optionally S3COMMANDER_SESSION_TOKEN. Output is JSON on stdout.

Exit codes:
    0: Success
    1: Failure (provider, transport, signing or usage error)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import httpx
from pydantic import ValidationError

from s3commander import operations
from s3commander.config import load_credentials, load_settings
from s3commander.context import CommanderContext
from s3commander.storage.errors import CommanderError, PartialDeleteError
from s3commander.storage.models import BucketEntry, FileVersion, Folder, FolderContents
from s3commander.storage.path import SEPARATOR, Path
from s3commander.uploads.source import LocalFile


def _output_json(data: Any) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _folder_path(value: str) -> Path:
    value = value.strip()
    if not value or value == SEPARATOR:
        return Path()
    return Path(value.rstrip(SEPARATOR) + SEPARATOR)


def _version_to_dict(version: FileVersion) -> dict[str, Any]:
    return {
        "delete_marker": version.delete_marker,
        "download_link": version.download_link,
        "last_modified": version.last_modified.isoformat(),
        "latest": version.latest,
        "version_id": version.version_id,
    }


def _entry_to_dict(entry: BucketEntry) -> dict[str, Any]:
    if isinstance(entry, Folder):
        return {"name": entry.name, "path": str(entry.path), "type": "folder"}
    data: dict[str, Any] = {
        "deleted": entry.deleted,
        "download_link": entry.download_link,
        "name": entry.name,
        "path": str(entry.path),
        "type": "file",
    }
    if entry.size is not None:
        data["size"] = entry.size
    if entry.versions:
        data["versions"] = [_version_to_dict(v) for v in entry.versions]
    return data


def _contents_to_dict(contents: Any) -> dict[str, Any]:
    data = {
        "files": [_entry_to_dict(f) for f in contents.files],
        "folders": [_entry_to_dict(f) for f in contents.folders],
    }
    if not isinstance(contents, FolderContents):
        data["deleted_files"] = [_entry_to_dict(f) for f in contents.deleted_files]
        data["deleted_folders"] = [_entry_to_dict(f) for f in contents.deleted_folders]
    return data


def _confirm_on_tty(prompt: str) -> bool:
    if not sys.stdin.isatty():
        return False
    return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")


async def _run(args: argparse.Namespace, ctx: CommanderContext) -> int:
    backend = ctx.backend
    command = args.command

    if command == "bucket":
        bucket = await backend.get_bucket()
        _output_json({"name": bucket.name, "versioning": bucket.versioning})
    elif command == "ls":
        folder = _folder_path(args.folder) if args.folder is not None else ctx.root_folder()
        contents = await operations.navigate(ctx, folder, show_deleted=args.deleted)
        _output_json(_contents_to_dict(contents))
    elif command == "history":
        contents = await backend.list_folder_with_history(_folder_path(args.folder))
        _output_json(_contents_to_dict(contents))
    elif command == "mkdir":
        target = _folder_path(args.folder)
        parent = target.clone().pop()
        folder = await operations.create_folder(ctx, parent, target.name)
        _output_json(_entry_to_dict(folder))
    elif command == "rm":
        deleted = await operations.delete_file(ctx, Path(args.file))
        _output_json({"deleted": deleted, "path": args.file})
        return 0 if deleted else 1
    elif command == "rmdir":
        if args.yes:
            ctx.confirm = lambda prompt: True
        folder = _folder_path(args.folder)
        try:
            deleted = await operations.delete_folder(ctx, folder)
        except PartialDeleteError as e:
            _output_json({"deleted": e.deleted, "failed": e.failed, "path": str(folder)})
            return 1
        _output_json({"deleted": deleted, "path": str(folder)})
        return 0 if deleted else 1
    elif command == "link":
        _output_json({"url": backend.get_download_link(Path(args.file), args.version)})
    elif command == "policy":
        config = operations.get_upload_config(ctx, _folder_path(args.folder))
        _output_json({"fields": config.fields, "url": config.url})
    elif command == "upload":
        sources = [LocalFile(name) for name in args.files]
        sessions = operations.upload_files(ctx, sources, _folder_path(args.to))
        assert ctx.engine is not None
        await ctx.engine.join()
        _output_json(
            [
                {
                    "error": str(s.error) if s.error else None,
                    "path": str(s.destination),
                    "state": str(s.state),
                    "strategy": s.strategy,
                }
                for s in sessions
            ]
        )
        return 0 if all(s.error is None for s in sessions) else 1
    return 0


async def _main_async(
    args: argparse.Namespace,
    http_client: httpx.AsyncClient | None,
) -> int:
    overrides: dict[str, Any] = {
        "bucket": args.bucket,
        "endpoint": args.endpoint,
        "region": args.region,
        "prefix": args.prefix,
    }
    if getattr(args, "part_size", None):
        overrides["part_size"] = args.part_size
    settings = load_settings(**overrides)
    ctx = CommanderContext.create(
        settings,
        load_credentials(),
        confirm=_confirm_on_tty,
        form_post=getattr(args, "form_post", False),
        http_client=http_client,
    )
    try:
        return await _run(args, ctx)
    finally:
        await ctx.aclose()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="s3commander",
        description="s3commander - browse an S3 bucket as folders and files",
    )
    parser.add_argument("--bucket", help="Bucket name (default: $S3COMMANDER_BUCKET)")
    parser.add_argument("--endpoint", help="Service endpoint host")
    parser.add_argument("--region", help="Region (selects the regional endpoint)")
    parser.add_argument("--prefix", help="Folder to start in")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log requests to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("bucket", help="Show bucket name and versioning status")

    ls_parser = subparsers.add_parser("ls", help="List a folder")
    ls_parser.add_argument("folder", nargs="?", default=None, metavar="FOLDER")
    ls_parser.add_argument(
        "--deleted",
        action="store_true",
        default=False,
        help="Include soft-deleted folders and files",
    )

    history_parser = subparsers.add_parser("history", help="List a folder with file versions")
    history_parser.add_argument("folder", metavar="FOLDER")

    mkdir_parser = subparsers.add_parser("mkdir", help="Create a folder")
    mkdir_parser.add_argument("folder", metavar="FOLDER")

    rm_parser = subparsers.add_parser("rm", help="Delete a file")
    rm_parser.add_argument("file", metavar="FILE")

    rmdir_parser = subparsers.add_parser("rmdir", help="Delete a folder and its contents")
    rmdir_parser.add_argument("folder", metavar="FOLDER")
    rmdir_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    link_parser = subparsers.add_parser("link", help="Print a presigned download link")
    link_parser.add_argument("file", metavar="FILE")
    link_parser.add_argument("--version", default=None, metavar="ID", help="Version id")

    policy_parser = subparsers.add_parser("policy", help="Print POST upload form fields")
    policy_parser.add_argument("folder", metavar="FOLDER")

    upload_parser = subparsers.add_parser("upload", help="Upload local files")
    upload_parser.add_argument("files", nargs="+", metavar="FILE")
    upload_parser.add_argument("--to", required=True, metavar="FOLDER", help="Destination")
    upload_parser.add_argument("--part-size", type=int, default=None, metavar="BYTES")
    upload_parser.add_argument(
        "--form-post",
        action="store_true",
        default=False,
        help="Upload small files with a signed form POST instead of PUT",
    )

    return parser


def main(argv: list[str] | None = None, *, http_client: httpx.AsyncClient | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Failure
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    try:
        return asyncio.run(_main_async(args, http_client))
    except (CommanderError, ValidationError, ValueError, OSError) as e:
        _output_json({"error": type(e).__name__, "message": str(e)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
