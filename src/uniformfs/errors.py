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

"""Base exception hierarchy for :mod:`uniformfs`."""

from __future__ import annotations


class UniformFSError(Exception):
    """Base class for all uniformfs exceptions.

    Backends never let these escape through the operation contract; they are
    raised by substrate adapters such as ``LocalDirectoryHandle`` and are
    converted to result values at the backend boundary.

    Note:
        Subclasses may also inherit from standard exception types (e.g.,
        ``FileNotFoundError``, ``PermissionError``) so callers that only know
        the builtins can still handle them.
    """


class HandleError(UniformFSError):
    """Base class for directory-handle resolution failures.

    Mirrors the error families a host directory-handle API reports:
    missing entries, kind mismatches, and permission denials.

    Example::

        try:
            child = await handle.get_file_handle("notes.txt")
        except HandleError:
            child = None
    """


class HandleNotFoundError(HandleError, FileNotFoundError):
    """Raised when a named child entry does not exist."""


class HandleTypeMismatchError(HandleError, TypeError):
    """Raised when a child exists but is not of the requested kind.

    For example, requesting a file handle for a name that refers to a
    directory.
    """


class HandleNotAllowedError(HandleError, PermissionError):
    """Raised when the host denies access to a handle or its contents."""


class InvalidHandleNameError(HandleError, ValueError):
    """Raised when a child name is empty, ``.``, ``..``, or contains a separator.

    Handles only ever address their direct children; a name that could walk
    outside the granted directory is rejected before touching the host.
    """


__all__ = [
    "HandleError",
    "HandleNotAllowedError",
    "HandleNotFoundError",
    "HandleTypeMismatchError",
    "InvalidHandleNameError",
    "UniformFSError",
]
