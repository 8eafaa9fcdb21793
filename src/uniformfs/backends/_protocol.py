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

"""Backend protocol for agent file and command operations.

This module provides the ``BackendProtocol`` that abstracts over storage
substrates (in-memory virtual shell, host directory handles) so agent tool
handlers can operate on files without coupling to a specific backend.
Backends share no base class; they conform structurally.

All paths are absolute strings rooted at the substrate root (``/``).

Implementations:

- ``VirtualShellBackend``: in-memory virtual filesystem plus command
  interpreter (also satisfies ``SandboxBackendProtocol``)
- ``DirectoryHandleBackend``: capability-scoped host directory handle
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ._types import (
    EditResult,
    ExecuteResponse,
    FileData,
    FileDownloadResponse,
    FileInfo,
    FileUploadResponse,
    GrepMatch,
    WriteResult,
)


@runtime_checkable
class BackendProtocol(Protocol):
    """Uniform file operation contract.

    Every operation behaves identically in user-visible terms on every
    backend: the same error text, the same numbering, the same ordering.
    Expected failures (missing paths, write-to-existing, ambiguous edits,
    invalid patterns) are reported as values, never raised, with the single
    exception of ``read_raw``.

    Example::

        async def create_or_patch(backend: BackendProtocol, path: str) -> str:
            result = await backend.write(path, "version = 1\\n")
            if result.ok:
                return "created"
            edit = await backend.edit(path, "version = 1", "version = 2")
            return edit.error or "patched"
    """

    @property
    def id(self) -> str:
        """Short identifier of the backend kind."""
        ...

    async def ls_info(self, path: str) -> list[FileInfo]:
        """List a directory, non-recursively.

        Args:
            path: Absolute directory path.

        Returns:
            Entries sorted by path. Empty when ``path`` is missing or is not
            a directory.
        """
        ...

    async def read(
        self, file_path: str, offset: int = 0, limit: int | None = None
    ) -> str:
        """Read a window of a file with ``"<n>\\t"`` line prefixes.

        Args:
            file_path: Absolute file path.
            offset: 0-based index of the first line to return.
            limit: Maximum number of lines to return. ``None`` uses the
                backend's configured default (500 lines).

        Returns:
            Line-numbered text, ``EMPTY_CONTENT_WARNING`` for an empty file,
            or an ``Error: ...`` line. Never raises.
        """
        ...

    async def read_raw(self, file_path: str) -> FileData:
        """Read a file as structured data.

        Raises:
            FileNotFoundError: Path does not exist.
            IsADirectoryError: Path is a directory.
        """
        ...

    async def write(self, file_path: str, content: str) -> WriteResult:
        """Create a new file.

        Writing is create-only: an existing path yields an error result. Use
        ``edit`` to change existing files.
        """
        ...

    async def edit(
        self,
        file_path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
    ) -> EditResult:
        """Replace literal occurrences of ``old_string``.

        Fails when ``old_string`` is absent, or when it occurs more than once
        and ``replace_all`` is false. The file is unchanged on failure.
        """
        ...

    async def grep_raw(
        self,
        pattern: str,
        dir_path: str = "/",
        glob: str | None = None,
    ) -> list[GrepMatch] | str:
        """Search file contents under ``dir_path`` by regex.

        Args:
            pattern: Regular expression.
            dir_path: Directory scope.
            glob: Optional filter applied to file names only.

        Returns:
            Matches sorted by ``(path, line)``, or an error string when the
            pattern does not compile.
        """
        ...

    async def glob_info(
        self, pattern: str, search_path: str = "/"
    ) -> list[FileInfo]:
        """Match paths below ``search_path`` against a glob pattern.

        The pattern is matched against each path relative to
        ``search_path``. Dotfiles are included. Results are sorted by path.
        """
        ...


@runtime_checkable
class SandboxBackendProtocol(BackendProtocol, Protocol):
    """Backend that can also run commands and move raw bytes in bulk."""

    async def execute(self, command: str) -> ExecuteResponse:
        """Run a shell command.

        Command failure is reported through ``exit_code``; this never raises.
        """
        ...

    async def upload_files(
        self, files: Sequence[tuple[str, bytes]]
    ) -> list[FileUploadResponse]:
        """Write raw bytes to each path, overwriting existing files.

        Failures are reported per item and never abort the batch.
        """
        ...

    async def download_files(
        self, paths: Sequence[str]
    ) -> list[FileDownloadResponse]:
        """Read raw bytes from each path.

        Failures are reported per item and never abort the batch.
        """
        ...


__all__ = [
    "BackendProtocol",
    "SandboxBackendProtocol",
]
