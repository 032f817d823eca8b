"""Separator-delimited resource addresses over a flat key namespace.

A Path is an ordered list of non-empty components plus a folder flag. Folders
are emulated with the trailing-separator convention: the string form of a
folder path ends with "/", the string form of a file path never does.

Mutating operations (push, pop, concat, rebase) act on the receiver and return
it so calls can be chained. Callers that need an independent copy must call
clone() first.
"""

from __future__ import annotations

from urllib.parse import quote

SEPARATOR = "/"


def _split(path: str) -> list[str]:
    """Split a path string into non-empty components (collapses '//')."""
    return [part for part in path.split(SEPARATOR) if part]


class Path:
    """Normalized resource address with a folder/file discriminator."""

    __slots__ = ("_parts", "_folder")

    def __init__(self, path: str = "") -> None:
        self._parts: list[str] = _split(path)
        self._folder: bool = path.endswith(SEPARATOR)

    @classmethod
    def parse(cls, path: str) -> Path:
        """Create a path from its string form."""
        return cls(path)

    def clone(self) -> Path:
        """Create a deep copy of this path."""
        other = Path()
        other._parts = list(self._parts)
        other._folder = self._folder
        return other

    def components(self) -> list[str]:
        """Return a copy of the path components."""
        return list(self._parts)

    @property
    def name(self) -> str:
        """Last component, or '' for the root path."""
        if not self._parts:
            return ""
        return self._parts[-1]

    def is_folder(self) -> bool:
        return self._folder

    def is_root(self) -> bool:
        return not self._parts

    def push(self, subpath: str) -> Path:
        """Append the components of subpath.

        The folder flag is reset from the trailing separator of subpath.
        """
        self._parts.extend(_split(subpath))
        self._folder = subpath.endswith(SEPARATOR)
        return self

    def pop(self) -> Path:
        """Drop the last component. No-op on the root path."""
        if self._parts:
            self._parts.pop()
        return self

    def concat(self, other: Path) -> Path:
        """Append the components of another path and adopt its folder flag.

        Concatenating an empty path leaves the receiver unchanged.
        """
        if other._parts:
            self._parts.extend(other._parts)
            self._folder = other._folder
        return self

    def rebase(self, ancestor: Path) -> Path:
        """Strip the run of leading components shared with ancestor.

        Stripping stops at the first component that does not match; a partial
        prefix match is not an error.
        """
        shared = 0
        for mine, theirs in zip(self._parts, ancestor._parts):
            if mine != theirs:
                break
            shared += 1
        del self._parts[:shared]
        return self

    def is_ancestor_of(self, other: Path) -> bool:
        """True when every component of this path leads other's components."""
        count = len(self._parts)
        return count < len(other._parts) and other._parts[:count] == self._parts

    def to_uri_encoded(self) -> str:
        """Percent-encode each component, never the separators."""
        return self._render([quote(part, safe="") for part in self._parts])

    def _render(self, parts: list[str]) -> str:
        if not parts:
            return ""
        uri = SEPARATOR.join(parts)
        if self._folder:
            return uri + SEPARATOR
        return uri

    def equals(self, other: Path) -> bool:
        return str(self) == str(other)

    def __str__(self) -> str:
        return self._render(self._parts)

    def __repr__(self) -> str:
        return f"Path({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Path):
            return NotImplemented
        return self.equals(other)

    def __hash__(self) -> int:
        return hash(str(self))
