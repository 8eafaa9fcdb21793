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

"""Backends implementing a uniform file-operation contract.

Agent tool handlers program against ``BackendProtocol`` and receive
identical results (error text, line numbering, ordering) whichever substrate
holds the files.

Example usage::

    from uniformfs.backends import BackendProtocol, DirectoryHandleBackend
    from uniformfs.backends.local_handle import LocalDirectoryHandle

    async def show(backend: BackendProtocol, path: str) -> str:
        return await backend.read(path)

    backend = DirectoryHandleBackend(LocalDirectoryHandle.open("/srv/workspace"))

Implementations:

- ``VirtualShellBackend``: in-memory virtual filesystem and command
  interpreter; sandbox-capable
- ``DirectoryHandleBackend``: capability-scoped host directory
"""

from __future__ import annotations

from ._protocol import BackendProtocol, SandboxBackendProtocol
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
    EMPTY_CONTENT_WARNING,
    check_empty_content,
    format_content_with_line_numbers,
    perform_string_replacement,
)
from .directory_handle import DirectoryHandle, DirectoryHandleBackend, FileHandle
from .virtual import (
    CommandInterpreter,
    CommandResult,
    VirtualFileSystem,
    VirtualShellBackend,
    VirtualStat,
)

__all__ = [
    "EMPTY_CONTENT_WARNING",
    "BackendProtocol",
    "CommandInterpreter",
    "CommandResult",
    "DirectoryHandle",
    "DirectoryHandleBackend",
    "EditResult",
    "ExecuteResponse",
    "FileData",
    "FileDownloadResponse",
    "FileHandle",
    "FileInfo",
    "FileOperationError",
    "FileUploadResponse",
    "GrepMatch",
    "SandboxBackendProtocol",
    "VirtualFileSystem",
    "VirtualShellBackend",
    "VirtualStat",
    "WriteResult",
    "check_empty_content",
    "format_content_with_line_numbers",
    "perform_string_replacement",
]
