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

"""Result types returned by backend operations.

All types are immutable frozen dataclasses. They are produced fresh by each
call and never mutated afterwards.

Types are organized into:

- **Listing types**: ``FileInfo`` - entries from ``ls_info`` and ``glob_info``
- **Content types**: ``FileData`` - raw snapshot from ``read_raw``
- **Mutation results**: ``WriteResult``, ``EditResult`` - success or error
  variants, never both
- **Search types**: ``GrepMatch``
- **Sandbox types**: ``ExecuteResponse``, ``FileUploadResponse``,
  ``FileDownloadResponse``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

FileOperationError = Literal[
    "file_not_found",
    "permission_denied",
    "is_directory",
    "invalid_path",
]
"""Per-item error tags reported by bulk upload and download."""


@dataclass(slots=True, frozen=True)
class FileInfo:
    """Listing entry returned by ``ls_info()`` and ``glob_info()``.

    Attributes:
        path: Absolute path. Directories end with ``/``.
        is_dir: True if the entry is a directory.
        size: Size in bytes (0 for directories on handle-backed substrates).
        modified_at: ISO-8601 modification time, or ``""`` when the substrate
            does not report one (directories behind a directory handle).
    """

    path: str
    is_dir: bool
    size: int
    modified_at: str


@dataclass(slots=True, frozen=True)
class FileData:
    """Read-time snapshot of a file returned by ``read_raw()``.

    Attributes:
        content: The file split on ``\\n``.
        created_at: ISO-8601 creation time. Substrates without a creation
            timestamp report the modification time.
        modified_at: ISO-8601 modification time.
    """

    content: tuple[str, ...]
    created_at: str
    modified_at: str

    @property
    def text(self) -> str:
        """The file content joined back into a single string."""
        return "\n".join(self.content)


@dataclass(slots=True, frozen=True)
class WriteResult:
    """Outcome of ``write()``.

    Exactly one branch is populated: ``path`` on success, ``error`` on
    failure. ``files_update`` is reserved for batched multi-file updates and
    is always ``None``.

    Example::

        result = await backend.write("/notes.txt", "hello")
        if not result.ok:
            return result.error
    """

    path: str | None = None
    error: str | None = None
    files_update: None = None

    def __post_init__(self) -> None:
        if (self.path is None) == (self.error is None):
            msg = "WriteResult requires exactly one of path or error."
            raise ValueError(msg)

    @classmethod
    def success(cls, path: str) -> WriteResult:
        return cls(path=path)

    @classmethod
    def failure(cls, error: str) -> WriteResult:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """True for the success branch."""
        return self.error is None


@dataclass(slots=True, frozen=True)
class EditResult:
    """Outcome of ``edit()``.

    Like :class:`WriteResult` with the number of replacements performed.
    ``occurrences`` is ``None`` on the error branch.
    """

    path: str | None = None
    error: str | None = None
    occurrences: int | None = None
    files_update: None = None

    def __post_init__(self) -> None:
        if (self.path is None) == (self.error is None):
            msg = "EditResult requires exactly one of path or error."
            raise ValueError(msg)
        if self.path is not None and self.occurrences is None:
            msg = "Successful EditResult requires an occurrence count."
            raise ValueError(msg)

    @classmethod
    def success(cls, path: str, occurrences: int) -> EditResult:
        return cls(path=path, occurrences=occurrences)

    @classmethod
    def failure(cls, error: str) -> EditResult:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """True for the success branch."""
        return self.error is None


@dataclass(slots=True, frozen=True)
class GrepMatch:
    """A single matching line from ``grep_raw()``.

    Attributes:
        path: Absolute path of the file containing the match.
        line: 1-indexed line number.
        text: The matching line without its trailing newline.
    """

    path: str
    line: int
    text: str


@dataclass(slots=True, frozen=True)
class ExecuteResponse:
    """Outcome of ``execute()``.

    Attributes:
        output: Standard output followed by standard error.
        exit_code: Process exit status; non-zero signals failure.
        truncated: True when ``output`` was cut to the configured limit.
    """

    output: str
    exit_code: int
    truncated: bool = False


@dataclass(slots=True, frozen=True)
class FileUploadResponse:
    """Per-item result from ``upload_files()``."""

    path: str
    error: FileOperationError | None = None


@dataclass(slots=True, frozen=True)
class FileDownloadResponse:
    """Per-item result from ``download_files()``.

    ``content`` holds the raw bytes on success and is ``None`` when
    ``error`` is set.
    """

    path: str
    content: bytes | None = None
    error: FileOperationError | None = None


__all__ = [
    "EditResult",
    "ExecuteResponse",
    "FileData",
    "FileDownloadResponse",
    "FileInfo",
    "FileOperationError",
    "FileUploadResponse",
    "GrepMatch",
    "WriteResult",
]
