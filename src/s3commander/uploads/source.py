"""Local file handles read one byte range at a time."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path as FilePath
from typing import Protocol, runtime_checkable


@runtime_checkable
class SourceFile(Protocol):
    """A readable local file accepted into the transfer queue."""

    @property
    def name(self) -> str: ...

    @property
    def size(self) -> int: ...

    async def read(self, offset: int, length: int) -> bytes: ...


class LocalFile:
    """A file on the local filesystem.

    Reads run off the event loop and open the file per call, so no handle is
    held between parts.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = FilePath(path)
        self._size = self._path.stat().st_size

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def size(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"LocalFile({str(self._path)!r})"

    async def read(self, offset: int, length: int) -> bytes:
        return await asyncio.to_thread(self._read, offset, length)

    def _read(self, offset: int, length: int) -> bytes:
        with self._path.open("rb") as fh:
            fh.seek(offset)
            return fh.read(length)
