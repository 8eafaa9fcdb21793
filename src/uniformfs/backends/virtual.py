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

"""Backend over an in-process virtual filesystem and command interpreter.

The interpreter is an external collaborator supplied by the caller. This
module only defines the slice of its API the backend consumes
(``CommandInterpreter`` and ``VirtualFileSystem``) and never reimplements
path semantics: child paths are always built with the interpreter's own
``resolve_path``.

Example usage::

    from uniformfs.backends import VirtualShellBackend

    backend = VirtualShellBackend(interpreter)
    _ = await backend.write("/src/main.py", "print('hello')")
    print(await backend.read("/src/main.py"))
    # 1\tprint('hello')
"""

from __future__ import annotations

import json
import shlex
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..config import BackendConfig
from ..logging import StructuredLogger, get_logger
from ._path import is_path_under, normalize_absolute, relative_to
from ._types import (
    EditResult,
    ExecuteResponse,
    FileData,
    FileDownloadResponse,
    FileInfo,
    FileOperationError,
    FileUploadResponse,
    GrepMatch,
    WriteResult,
)
from ._utils import (
    already_exists_error,
    compile_pattern,
    edit_failed_error,
    file_not_found_error,
    format_read_window,
    grep_failed_error,
    is_directory_error,
    match_glob,
    perform_string_replacement,
    read_failed_error,
    to_iso,
    write_failed_error,
)

__all__ = [
    "CommandInterpreter",
    "CommandResult",
    "VirtualFileSystem",
    "VirtualShellBackend",
    "VirtualStat",
]

_TRUNCATION_MARKER = "[truncated]"

logger: StructuredLogger = get_logger(__name__, context={"component": "backend"})


# ---------------------------------------------------------------------------
# Collaborator Protocols
# ---------------------------------------------------------------------------


class VirtualStat(Protocol):
    """Metadata reported by ``VirtualFileSystem.stat()``."""

    @property
    def is_directory(self) -> bool: ...

    @property
    def size(self) -> int: ...

    @property
    def mtime(self) -> datetime: ...


@runtime_checkable
class VirtualFileSystem(Protocol):
    """Filesystem primitives exposed by the interpreter.

    Missing entries raise ``FileNotFoundError``; other failures raise the
    matching ``OSError`` subclass. ``write_file`` creates missing parent
    directories.
    """

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def stat(self, path: str) -> VirtualStat: ...

    async def readdir(self, path: str) -> list[str]: ...

    def resolve_path(self, base: str, path: str) -> str: ...

    def get_all_paths(self) -> Iterable[str]: ...


class CommandResult(Protocol):
    """Completed command as reported by the interpreter."""

    @property
    def stdout(self) -> str: ...

    @property
    def stderr(self) -> str: ...

    @property
    def exit_code(self) -> int: ...


@runtime_checkable
class CommandInterpreter(Protocol):
    """In-process shell with its own virtual filesystem."""

    @property
    def fs(self) -> VirtualFileSystem: ...

    async def exec(self, command: str) -> CommandResult: ...


# ---------------------------------------------------------------------------
# VirtualShellBackend Implementation
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class VirtualShellBackend:
    """Sandbox-capable backend driven by a virtual shell.

    Files live in the interpreter's virtual filesystem. Content search runs
    the interpreter's own ``rg --json`` and decodes its line-oriented output;
    glob matching filters the interpreter's full path set in-process.
    Filesystem errors never escape: they are converted to the protocol's
    error values.
    """

    interpreter: CommandInterpreter
    config: BackendConfig = field(default_factory=BackendConfig, kw_only=True)

    @property
    def id(self) -> str:
        """Backend identifier."""
        return "virtual-shell"

    @property
    def _fs(self) -> VirtualFileSystem:
        return self.interpreter.fs

    async def _stat_or_none(self, path: str) -> VirtualStat | None:
        try:
            return await self._fs.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return None

    def _file_info(self, path: str, stat: VirtualStat) -> FileInfo:
        return FileInfo(
            path=f"{path}/" if stat.is_directory else path,
            is_dir=stat.is_directory,
            size=stat.size,
            modified_at=to_iso(stat.mtime),
        )

    async def ls_info(self, path: str) -> list[FileInfo]:
        """List directory entries, sorted by path."""
        try:
            names = await self._fs.readdir(path)
        except OSError:
            return []

        results: list[FileInfo] = []
        for name in names:
            full_path = self._fs.resolve_path(path, name)
            try:
                stat = await self._fs.stat(full_path)
            except OSError:
                # Entry vanished or is unreadable; skip it.
                continue
            results.append(self._file_info(full_path, stat))

        results.sort(key=lambda info: info.path)
        return results

    async def read(
        self, file_path: str, offset: int = 0, limit: int | None = None
    ) -> str:
        """Read a line-numbered window of a file."""
        actual_limit = limit if limit is not None else self.config.read_limit
        try:
            stat = await self._stat_or_none(file_path)
            if stat is None:
                return file_not_found_error(file_path)
            if stat.is_directory:
                return is_directory_error(file_path)
            content = await self._fs.read_file(file_path)
        except OSError as err:
            logger.warning(
                "Virtual filesystem read failed.",
                event="backend.read.failed",
                context={"backend": self.id, "path": file_path, "error": str(err)},
            )
            return read_failed_error(file_path, err)
        return format_read_window(content, offset, actual_limit)

    async def read_raw(self, file_path: str) -> FileData:
        """Read a file as ``FileData``.

        The virtual filesystem has no creation time, so ``created_at``
        reports the modification time.
        """
        stat = await self._stat_or_none(file_path)
        if stat is None:
            raise FileNotFoundError(file_path)
        if stat.is_directory:
            msg = f"Is a directory: {file_path}"
            raise IsADirectoryError(msg)

        content = await self._fs.read_file(file_path)
        timestamp = to_iso(stat.mtime)
        return FileData(
            content=tuple(content.split("\n")),
            created_at=timestamp,
            modified_at=timestamp,
        )

    async def write(self, file_path: str, content: str) -> WriteResult:
        """Create a new file; refuses to touch existing paths."""
        try:
            if await self._stat_or_none(file_path) is not None:
                return WriteResult.failure(already_exists_error(file_path))
            await self._fs.write_file(file_path, content)
        except OSError as err:
            logger.warning(
                "Virtual filesystem write failed.",
                event="backend.write.failed",
                context={"backend": self.id, "path": file_path, "error": str(err)},
            )
            return WriteResult.failure(write_failed_error(file_path, err))

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
        try:
            stat = await self._stat_or_none(file_path)
            if stat is None:
                return EditResult.failure(file_not_found_error(file_path))
            if stat.is_directory:
                return EditResult.failure(is_directory_error(file_path))

            content = await self._fs.read_file(file_path)
            replaced = perform_string_replacement(
                content, old_string, new_string, replace_all
            )
            if isinstance(replaced, str):
                return EditResult.failure(replaced)

            new_content, occurrences = replaced
            await self._fs.write_file(file_path, new_content)
        except OSError as err:
            logger.warning(
                "Virtual filesystem edit failed.",
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
        """Search file contents with the interpreter's ripgrep.

        A ``dir_path`` that is missing or not a directory has no matches.
        """
        compiled = compile_pattern(pattern)
        if isinstance(compiled, str):
            return compiled

        try:
            base = await self._fs.stat(self._fs.resolve_path("/", dir_path))
        except OSError:
            return []
        if not base.is_directory:
            return []

        command = _ripgrep_command(pattern, dir_path, glob)
        try:
            result = await self.interpreter.exec(command)
        except Exception as err:  # noqa: BLE001
            logger.warning(
                "Interpreter failed to run grep.",
                event="backend.grep.failed",
                context={"backend": self.id, "command": command, "error": str(err)},
            )
            return grep_failed_error(err)

        # ripgrep exits 1 when nothing matched.
        if result.exit_code not in {0, 1}:
            return result.stderr or grep_failed_error(f"exit code {result.exit_code}")

        matches: list[GrepMatch] = []
        for line in result.stdout.splitlines():
            match = _decode_ripgrep_record(line)
            if match is not None:
                matches.append(match)

        matches.sort(key=lambda m: (m.path, m.line))
        return matches

    async def glob_info(
        self, pattern: str, search_path: str = "/"
    ) -> list[FileInfo]:
        """Match known paths below ``search_path`` against ``pattern``."""
        base = normalize_absolute(self._fs.resolve_path("/", search_path))

        results: list[FileInfo] = []
        for candidate in self._fs.get_all_paths():
            path = normalize_absolute(candidate)
            if path == base or not is_path_under(path, base):
                continue
            if not match_glob(relative_to(path, base), pattern):
                continue
            try:
                stat = await self._fs.stat(path)
            except OSError:
                continue
            results.append(self._file_info(path, stat))

        results.sort(key=lambda info: info.path)
        return results

    async def execute(self, command: str) -> ExecuteResponse:
        """Run ``command`` in the interpreter.

        A command that fails yields a non-zero ``exit_code``. If the
        interpreter itself raises (for example while resolving the command),
        the failure is reported as exit code 1 with the error text as output.
        """
        try:
            result = await self.interpreter.exec(command)
        except Exception as err:  # noqa: BLE001
            logger.warning(
                "Interpreter raised while executing command.",
                event="backend.execute.failed",
                context={"backend": self.id, "command": command, "error": str(err)},
            )
            return ExecuteResponse(
                output=f"Error executing command: {err}", exit_code=1
            )

        output, truncated = _truncate_output(
            result.stdout + result.stderr, self.config.max_output_chars
        )
        return ExecuteResponse(
            output=output, exit_code=result.exit_code, truncated=truncated
        )

    async def upload_files(
        self, files: Sequence[tuple[str, bytes]]
    ) -> list[FileUploadResponse]:
        """Write raw bytes to each path.

        Bytes are decoded as UTF-8 with ``surrogateescape`` so content that is
        not valid UTF-8 still round-trips through the string-based virtual
        filesystem.
        """
        responses: list[FileUploadResponse] = []
        for file_path, content in files:
            try:
                text = content.decode("utf-8", errors="surrogateescape")
                await self._fs.write_file(file_path, text)
            except Exception as err:  # noqa: BLE001
                responses.append(
                    FileUploadResponse(
                        path=file_path,
                        error=self._item_error(
                            "upload", file_path, err, default="invalid_path"
                        ),
                    )
                )
                continue
            responses.append(FileUploadResponse(path=file_path))
        return responses

    async def download_files(
        self, paths: Sequence[str]
    ) -> list[FileDownloadResponse]:
        """Read raw bytes from each path."""
        responses: list[FileDownloadResponse] = []
        for file_path in paths:
            try:
                text = await self._fs.read_file(file_path)
            except Exception as err:  # noqa: BLE001
                responses.append(
                    FileDownloadResponse(
                        path=file_path,
                        error=self._item_error(
                            "download", file_path, err, default="file_not_found"
                        ),
                    )
                )
                continue
            responses.append(
                FileDownloadResponse(
                    path=file_path,
                    content=text.encode("utf-8", errors="surrogateescape"),
                )
            )
        return responses

    def _item_error(
        self,
        operation: str,
        path: str,
        err: Exception,
        *,
        default: FileOperationError,
    ) -> FileOperationError:
        tag = _classify_item_error(err, default)
        logger.debug(
            "Bulk transfer item failed.",
            event=f"backend.{operation}.item_failed",
            context={
                "backend": self.id,
                "path": path,
                "error": str(err),
                "tag": tag,
            },
        )
        return tag


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ripgrep_command(pattern: str, dir_path: str, glob: str | None) -> str:
    parts = ["rg", "--json"]
    if glob:
        parts.extend(["-g", glob])
    parts.extend(["--", pattern, dir_path])
    return shlex.join(parts)


def _decode_ripgrep_record(line: str) -> GrepMatch | None:
    """Decode one ``rg --json`` record; anything but a valid match is skipped."""
    if not line.strip():
        return None
    try:
        record: Any = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(record, dict) or record.get("type") != "match":
        return None

    data = record.get("data")
    if not isinstance(data, dict):
        return None
    path = _text_field(data.get("path"))
    text = _text_field(data.get("lines"))
    line_number = data.get("line_number")
    if path is None or text is None or not isinstance(line_number, int):
        return None
    return GrepMatch(path=path, line=line_number, text=text.removesuffix("\n"))


def _text_field(value: object) -> str | None:
    """Return ``value["text"]`` for ripgrep's ``{"text": ...}`` objects."""
    if not isinstance(value, dict):
        return None
    text = value.get("text")
    return text if isinstance(text, str) else None


def _truncate_output(value: str, max_chars: int) -> tuple[str, bool]:
    if len(value) <= max_chars:
        return value, False
    keep = max(max_chars - len(_TRUNCATION_MARKER), 0)
    return f"{value[:keep]}{_TRUNCATION_MARKER}", True


def _classify_item_error(
    err: Exception, default: FileOperationError
) -> FileOperationError:
    if isinstance(err, IsADirectoryError):
        return "is_directory"
    if isinstance(err, PermissionError):
        return "permission_denied"
    return default
