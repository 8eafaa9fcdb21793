# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Directory handles over the local disk.

``LocalDirectoryHandle`` implements the ``DirectoryHandle`` protocol for a
directory on the host. A handle only ever addresses its direct children by
name, and every resolved entry must stay inside the directory the root handle
was opened on: symlinks that point elsewhere are refused. Blocking I/O runs in
worker threads via ``asyncio.to_thread``.

Example::

    root = LocalDirectoryHandle.open("/srv/workspace")
    backend = DirectoryHandleBackend(root)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from ..errors import (
    HandleNotAllowedError,
    HandleNotFoundError,
    HandleTypeMismatchError,
    InvalidHandleNameError,
)

__all__ = [
    "LocalDirectoryHandle",
    "LocalFile",
    "LocalFileHandle",
    "LocalWritableFileStream",
]

_ENCODING = "utf-8"
_FORBIDDEN_NAME_CHARS = ("/", "\\", "\x00")


def _validate_name(name: str) -> None:
    if not name or name in {".", ".."}:
        msg = f"Invalid entry name: {name!r}"
        raise InvalidHandleNameError(msg)
    if any(char in name for char in _FORBIDDEN_NAME_CHARS):
        msg = f"Entry name must not contain separators: {name!r}"
        raise InvalidHandleNameError(msg)


def _ensure_contained(path: Path, root: Path) -> None:
    """Raise if ``path`` resolves outside ``root``."""
    try:
        _ = path.resolve().relative_to(root)
    except ValueError:
        msg = f"Entry escapes the granted directory: {path.name}"
        raise HandleNotAllowedError(msg) from None


@dataclass(slots=True, frozen=True)
class LocalFile:
    """Snapshot of a file's metadata taken by ``LocalFileHandle.get_file()``.

    ``text()`` reads the current content without newline translation. Bytes
    that are not valid UTF-8 are replaced with U+FFFD.
    """

    path: Path
    size: int
    last_modified: float

    async def text(self) -> str:
        raw = await asyncio.to_thread(self.path.read_bytes)
        return raw.decode(_ENCODING, errors="replace")


@dataclass(slots=True)
class LocalWritableFileStream:
    """Buffered write stream; the file is replaced when the stream closes."""

    path: Path
    _chunks: list[str] = field(default_factory=list)
    _closed: bool = False

    async def write(self, data: str) -> None:
        if self._closed:
            msg = "Cannot write to a closed stream."
            raise ValueError(msg)
        self._chunks.append(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        content = "".join(self._chunks)
        _ = await asyncio.to_thread(
            self.path.write_text, content, encoding=_ENCODING, newline=""
        )

    async def abort(self) -> None:
        """Drop buffered writes without touching the file."""
        self._closed = True
        self._chunks.clear()


@dataclass(slots=True, frozen=True)
class LocalFileHandle:
    """Handle to a file on the local disk."""

    path: Path
    root: Path

    @property
    def kind(self) -> Literal["file"]:
        return "file"

    @property
    def name(self) -> str:
        return self.path.name

    async def get_file(self) -> LocalFile:
        try:
            stat = await asyncio.to_thread(self.path.stat)
        except FileNotFoundError:
            raise HandleNotFoundError(self.path.name) from None
        return LocalFile(
            path=self.path,
            size=stat.st_size,
            last_modified=stat.st_mtime * 1000,
        )

    async def create_writable(self) -> LocalWritableFileStream:
        _ensure_contained(self.path, self.root)
        return LocalWritableFileStream(self.path)


@dataclass(slots=True, frozen=True)
class LocalDirectoryHandle:
    """Handle to a directory on the local disk.

    Use :meth:`open` to obtain a root handle; child handles inherit its
    boundary.
    """

    path: Path
    root: Path

    @classmethod
    def open(cls, path: str | Path) -> LocalDirectoryHandle:
        """Open a root handle on an existing directory."""
        resolved = Path(path).resolve()
        if not resolved.exists():
            raise HandleNotFoundError(str(path))
        if not resolved.is_dir():
            msg = f"Not a directory: {path}"
            raise HandleTypeMismatchError(msg)
        return cls(path=resolved, root=resolved)

    @property
    def kind(self) -> Literal["directory"]:
        return "directory"

    @property
    def name(self) -> str:
        return self.path.name

    def _child(self, name: str) -> Path:
        _validate_name(name)
        child = self.path / name
        _ensure_contained(child, self.root)
        return child

    async def get_file_handle(
        self, name: str, *, create: bool = False
    ) -> LocalFileHandle:
        """Return the child file ``name``, creating it empty if requested.

        Raises:
            HandleNotFoundError: No such entry and ``create`` is false.
            HandleTypeMismatchError: The entry is a directory.
        """
        child = self._child(name)
        await asyncio.to_thread(_open_file, child, create)
        return LocalFileHandle(path=child, root=self.root)

    async def get_directory_handle(
        self, name: str, *, create: bool = False
    ) -> LocalDirectoryHandle:
        """Return the child directory ``name``, creating it if requested.

        Raises:
            HandleNotFoundError: No such entry and ``create`` is false.
            HandleTypeMismatchError: The entry is a file.
        """
        child = self._child(name)
        await asyncio.to_thread(_open_directory, child, create)
        return LocalDirectoryHandle(path=child, root=self.root)

    async def remove_entry(self, name: str) -> None:
        """Remove the child file or empty directory ``name``.

        Raises:
            HandleNotFoundError: No such entry.
            OSError: The entry is a non-empty directory.
        """
        child = self._child(name)
        await asyncio.to_thread(_remove_entry, child)

    async def values(self) -> AsyncIterator[LocalFileHandle | LocalDirectoryHandle]:
        """Yield child handles in name order.

        Entries that are neither regular files nor directories (for example
        dangling symlinks), and entries resolving outside the root, are
        skipped.
        """
        entries = await asyncio.to_thread(_list_entries, self.path, self.root)
        for entry, is_dir in entries:
            if is_dir:
                yield LocalDirectoryHandle(path=entry, root=self.root)
            else:
                yield LocalFileHandle(path=entry, root=self.root)


def _open_file(path: Path, create: bool) -> None:
    if path.is_dir():
        msg = f"Entry is a directory: {path.name}"
        raise HandleTypeMismatchError(msg)
    if path.is_file():
        return
    if not create:
        raise HandleNotFoundError(path.name)
    path.touch()


def _open_directory(path: Path, create: bool) -> None:
    if path.is_dir():
        return
    if path.exists():
        msg = f"Entry is not a directory: {path.name}"
        raise HandleTypeMismatchError(msg)
    if not create:
        raise HandleNotFoundError(path.name)
    path.mkdir()


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        path.rmdir()
    elif path.exists() or path.is_symlink():
        path.unlink()
    else:
        raise HandleNotFoundError(path.name)


def _list_entries(path: Path, root: Path) -> list[tuple[Path, bool]]:
    entries: list[tuple[Path, bool]] = []
    for entry in sorted(path.iterdir(), key=lambda item: item.name):
        try:
            _ = entry.resolve().relative_to(root)
        except ValueError:
            continue
        if entry.is_dir():
            entries.append((entry, True))
        elif entry.is_file():
            entries.append((entry, False))
    return entries
