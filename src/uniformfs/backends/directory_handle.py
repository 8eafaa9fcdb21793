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

"""Backend over a capability-scoped directory handle.

A directory handle grants access to exactly one host directory and its
descendants. Every path is resolved by walking its segments from the root
handle, one ``get_directory_handle`` call per intermediate directory and a
final ``get_file_handle`` for the leaf, so nothing outside the granted tree
is ever reachable.

The handle API is defined structurally here (``DirectoryHandle``,
``FileHandle``); :mod:`uniformfs.backends.local_handle` provides an
implementation over the local disk.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

from ..config import BackendConfig
from ..errors import UniformFSError
from ..logging import StructuredLogger, get_logger
from ._path import join_path, normalize_absolute, split_segments
from ._types import EditResult, FileData, FileInfo, GrepMatch, WriteResult
from ._utils import (
    already_exists_error,
    compile_pattern,
    edit_failed_error,
    file_not_found_error,
    format_read_window,
    is_directory_error,
    match_glob,
    perform_string_replacement,
    read_failed_error,
    to_iso,
    write_failed_error,
)

__all__ = [
    "DirectoryHandle",
    "DirectoryHandleBackend",
    "FileHandle",
    "HandleFile",
    "WritableFileStream",
]

logger: StructuredLogger = get_logger(__name__, context={"component": "backend"})

# Failure families a handle API reports while resolving or reading entries.
# Anything else is a bug in the handle implementation and propagates.
_HANDLE_ERRORS: tuple[type[Exception], ...] = (OSError, UniformFSError)


# ---------------------------------------------------------------------------
# Handle Protocols
# ---------------------------------------------------------------------------


class HandleFile(Protocol):
    """Snapshot of a file's content and metadata."""

    @property
    def size(self) -> int: ...

    @property
    def last_modified(self) -> float:
        """Modification time in milliseconds since the epoch."""
        ...

    async def text(self) -> str: ...


class WritableFileStream(Protocol):
    """Write stream for a file.

    Content is committed on ``close()``; ``abort()`` discards everything
    written so far and leaves the file as it was.
    """

    async def write(self, data: str) -> None: ...

    async def close(self) -> None: ...

    async def abort(self) -> None: ...


@runtime_checkable
class FileHandle(Protocol):
    """Handle to a single file."""

    @property
    def kind(self) -> Literal["file"]: ...

    @property
    def name(self) -> str: ...

    async def get_file(self) -> HandleFile: ...

    async def create_writable(self) -> WritableFileStream: ...


@runtime_checkable
class DirectoryHandle(Protocol):
    """Handle to a directory, addressing its direct children by name."""

    @property
    def kind(self) -> Literal["directory"]: ...

    @property
    def name(self) -> str: ...

    async def get_file_handle(
        self, name: str, *, create: bool = False
    ) -> FileHandle: ...

    async def get_directory_handle(
        self, name: str, *, create: bool = False
    ) -> DirectoryHandle: ...

    async def remove_entry(self, name: str) -> None: ...

    def values(self) -> AsyncIterator[FileHandle | DirectoryHandle]: ...


# ---------------------------------------------------------------------------
# DirectoryHandleBackend Implementation
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DirectoryHandleBackend:
    """Backend that reads and writes through a directory handle.

    Listings, content search and glob matching enumerate children with the
    handle's ``values()`` iterator and recurse into subdirectories, then sort.
    Handle-resolution failures are treated as "not found".
    """

    root_handle: DirectoryHandle
    config: BackendConfig = field(default_factory=BackendConfig, kw_only=True)

    @property
    def id(self) -> str:
        """Backend identifier."""
        return "directory-handle"

    # -----------------------------------------------------------------------
    # Resolution
    # -----------------------------------------------------------------------

    async def _resolve_directory(
        self, segments: list[str], *, create: bool = False
    ) -> DirectoryHandle:
        current = self.root_handle
        for segment in segments:
            current = await current.get_directory_handle(segment, create=create)
        return current

    async def _resolve_parent(
        self, path: str, *, create: bool = False
    ) -> tuple[DirectoryHandle, str]:
        segments = split_segments(path)
        if not segments:
            msg = f"Is a directory: {path}"
            raise IsADirectoryError(msg)
        parent = await self._resolve_directory(segments[:-1], create=create)
        return parent, segments[-1]

    async def _resolve_file(
        self, path: str, *, create: bool = False
    ) -> FileHandle:
        parent, name = await self._resolve_parent(path, create=create)
        return await parent.get_file_handle(name, create=create)

    async def _directory_or_none(self, path: str) -> DirectoryHandle | None:
        try:
            return await self._resolve_directory(split_segments(path))
        except _HANDLE_ERRORS:
            return None

    async def _file_or_none(self, path: str) -> FileHandle | None:
        try:
            return await self._resolve_file(path)
        except _HANDLE_ERRORS:
            return None

    async def _missing_file_error(self, path: str) -> str:
        if await self._directory_or_none(path) is not None:
            return is_directory_error(path)
        return file_not_found_error(path)

    async def _children(
        self, directory: DirectoryHandle, path: str
    ) -> list[FileHandle | DirectoryHandle]:
        """Return the direct children of ``directory``; empty if unlistable."""
        try:
            return [child async for child in directory.values()]
        except _HANDLE_ERRORS as err:
            logger.debug(
                "Skipping directory that cannot be listed.",
                event="backend.list.skipped_directory",
                context={"backend": self.id, "path": path, "error": str(err)},
            )
            return []

    async def _walk(
        self, directory: DirectoryHandle, path: str
    ) -> AsyncIterator[tuple[str, FileHandle | DirectoryHandle]]:
        """Yield ``(absolute_path, handle)`` for every descendant, depth first.

        Subtrees whose listing fails are left out.
        """
        for child in await self._children(directory, path):
            child_path = join_path(path, child.name)
            yield child_path, child
            if child.kind == "directory":
                async for item in self._walk(child, child_path):
                    yield item

    async def _file_info(
        self, path: str, handle: FileHandle | DirectoryHandle
    ) -> FileInfo:
        if handle.kind == "directory":
            return FileInfo(path=f"{path}/", is_dir=True, size=0, modified_at="")
        file = await handle.get_file()
        return FileInfo(
            path=path,
            is_dir=False,
            size=file.size,
            modified_at=to_iso(file.last_modified),
        )

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    async def ls_info(self, path: str) -> list[FileInfo]:
        """List directory entries, sorted by path.

        Directory entries report size 0 and an empty ``modified_at`` since
        directory handles carry no metadata. A directory that cannot be
        listed yields no entries.
        """
        base = normalize_absolute(path)
        directory = await self._directory_or_none(base)
        if directory is None:
            return []

        results: list[FileInfo] = []
        for child in await self._children(directory, base):
            try:
                info = await self._file_info(join_path(base, child.name), child)
            except _HANDLE_ERRORS:
                continue
            results.append(info)

        results.sort(key=lambda info: info.path)
        return results

    async def read(
        self, file_path: str, offset: int = 0, limit: int | None = None
    ) -> str:
        """Read a line-numbered window of a file."""
        actual_limit = limit if limit is not None else self.config.read_limit
        handle = await self._file_or_none(file_path)
        if handle is None:
            return await self._missing_file_error(file_path)

        try:
            content = await (await handle.get_file()).text()
        except _HANDLE_ERRORS as err:
            logger.warning(
                "Directory handle read failed.",
                event="backend.read.failed",
                context={"backend": self.id, "path": file_path, "error": str(err)},
            )
            return read_failed_error(file_path, err)
        return format_read_window(content, offset, actual_limit)

    async def read_raw(self, file_path: str) -> FileData:
        """Read a file as ``FileData``.

        Handles expose only a modification time, which is reported for both
        ``created_at`` and ``modified_at``.
        """
        handle = await self._file_or_none(file_path)
        if handle is None:
            if await self._directory_or_none(file_path) is not None:
                msg = f"Is a directory: {file_path}"
                raise IsADirectoryError(msg)
            raise FileNotFoundError(file_path)

        file = await handle.get_file()
        content = await file.text()
        timestamp = to_iso(file.last_modified)
        return FileData(
            content=tuple(content.split("\n")),
            created_at=timestamp,
            modified_at=timestamp,
        )

    async def write(self, file_path: str, content: str) -> WriteResult:
        """Create a new file, creating missing parent directories.

        If the content cannot be written, the freshly created entry is
        removed again so a retry does not see an empty file. Parent
        directories created along the way are kept.
        """
        if (
            await self._file_or_none(file_path) is not None
            or await self._directory_or_none(file_path) is not None
        ):
            return WriteResult.failure(already_exists_error(file_path))

        try:
            parent, name = await self._resolve_parent(file_path, create=True)
            handle = await parent.get_file_handle(name, create=True)
        except _HANDLE_ERRORS as err:
            return self._write_failed(file_path, err)

        try:
            await self._write_content(handle, content)
        except _HANDLE_ERRORS as err:
            await self._discard_entry(parent, name, file_path)
            return self._write_failed(file_path, err)

        logger.debug(
            "File created.",
            event="backend.write.created",
            context={"backend": self.id, "path": file_path},
        )
        return WriteResult.success(file_path)

    async def edit(
        self,
        file_path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
    ) -> EditResult:
        """Replace occurrences of ``old_string`` in an existing file."""
        handle = await self._file_or_none(file_path)
        if handle is None:
            return EditResult.failure(await self._missing_file_error(file_path))

        try:
            content = await (await handle.get_file()).text()
            replaced = perform_string_replacement(
                content, old_string, new_string, replace_all
            )
            if isinstance(replaced, str):
                return EditResult.failure(replaced)

            new_content, occurrences = replaced
            await self._write_content(handle, new_content)
        except _HANDLE_ERRORS as err:
            logger.warning(
                "Directory handle edit failed.",
                event="backend.edit.failed",
                context={"backend": self.id, "path": file_path, "error": str(err)},
            )
            return EditResult.failure(edit_failed_error(file_path, err))

        return EditResult.success(file_path, occurrences)

    async def grep_raw(
        self,
        pattern: str,
        dir_path: str = "/",
        glob: str | None = None,
    ) -> list[GrepMatch] | str:
        """Search file contents with a recursive scan of the handle tree."""
        compiled = compile_pattern(pattern)
        if isinstance(compiled, str):
            return compiled

        base = normalize_absolute(dir_path)
        directory = await self._directory_or_none(base)
        if directory is None:
            return []

        matches: list[GrepMatch] = []
        async for path, handle in self._walk(directory, base):
            if handle.kind != "file":
                continue
            if glob and not match_glob(handle.name, glob):
                continue
            try:
                file = await handle.get_file()
                if file.size > self.config.max_search_file_bytes:
                    logger.info(
                        "Skipping large file during grep.",
                        event="backend.grep.skipped_large_file",
                        context={
                            "backend": self.id,
                            "path": path,
                            "size": file.size,
                            "limit": self.config.max_search_file_bytes,
                        },
                    )
                    continue
                content = await file.text()
            except _HANDLE_ERRORS as err:
                logger.debug(
                    "Skipping unreadable file during grep.",
                    event="backend.grep.skipped_unreadable",
                    context={"backend": self.id, "path": path, "error": str(err)},
                )
                continue

            lines = content.split("\n")
            if lines[-1] == "":
                _ = lines.pop()
            for number, line in enumerate(lines, start=1):
                if compiled.search(line):
                    matches.append(GrepMatch(path=path, line=number, text=line))

        matches.sort(key=lambda m: (m.path, m.line))
        return matches

    async def glob_info(
        self, pattern: str, search_path: str = "/"
    ) -> list[FileInfo]:
        """Match every descendant of ``search_path`` against ``pattern``."""
        base = normalize_absolute(search_path)
        directory = await self._directory_or_none(base)
        if directory is None:
            return []

        prefix_length = len(split_segments(base))
        results: list[FileInfo] = []
        async for path, handle in self._walk(directory, base):
            relative = "/".join(split_segments(path)[prefix_length:])
            if not match_glob(relative, pattern):
                continue
            try:
                results.append(await self._file_info(path, handle))
            except _HANDLE_ERRORS:
                continue

        results.sort(key=lambda info: info.path)
        return results

    async def _write_content(self, handle: FileHandle, content: str) -> None:
        """Replace the file's content; nothing is committed if writing fails."""
        writable = await handle.create_writable()
        try:
            await writable.write(content)
        except BaseException:
            await writable.abort()
            raise
        await writable.close()

    async def _discard_entry(
        self, parent: DirectoryHandle, name: str, path: str
    ) -> None:
        try:
            await parent.remove_entry(name)
        except _HANDLE_ERRORS as err:
            logger.warning(
                "Could not remove partially written file.",
                event="backend.write.cleanup_failed",
                context={"backend": self.id, "path": path, "error": str(err)},
            )

    def _write_failed(self, path: str, err: Exception) -> WriteResult:
        logger.warning(
            "Directory handle write failed.",
            event="backend.write.failed",
            context={"backend": self.id, "path": path, "error": str(err)},
        )
        return WriteResult.failure(write_failed_error(path, err))
