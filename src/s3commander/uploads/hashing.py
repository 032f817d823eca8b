"""Incremental content hashing of file ranges.

Part checksums are the hex MD5 the provider reports as the part ETag. Ranges
are hashed in slices, yielding to the event loop between slices so a large part
never blocks the loop for longer than one read.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Final

from s3commander.uploads.source import SourceFile

HASH_CHUNK_SIZE: Final[int] = 1024 * 1024


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


async def md5_of_range(
    source: SourceFile,
    offset: int,
    length: int,
    *,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Hex MD5 of length bytes of source starting at offset."""
    digest = hashlib.md5(usedforsecurity=False)
    position = offset
    end = offset + length
    while position < end:
        chunk = await source.read(position, min(chunk_size, end - position))
        if not chunk:
            break
        digest.update(chunk)
        position += len(chunk)
        await asyncio.sleep(0)
    return digest.hexdigest()
