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

"""Content utilities shared by every backend.

These functions own the user-visible text of the contract: line numbering,
the empty-file sentinel, replacement ambiguity errors, and the standard error
messages. Backends route through them instead of formatting their own
strings, which is what keeps output identical across substrates.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Final

from ._path import split_segments

EMPTY_CONTENT_WARNING: Final[str] = (
    "System reminder: File exists but has empty contents"
)


# ---------------------------------------------------------------------------
# Content formatting
# ---------------------------------------------------------------------------


def format_content_with_line_numbers(
    lines: Sequence[str], start_line: int = 1
) -> str:
    """Prefix each line with its 1-based number and a tab.

    Example::

        format_content_with_line_numbers(["a", "b"], start_line=3)
        # "3\\ta\\n4\\tb"
    """
    return "\n".join(
        f"{number}\t{line}" for number, line in enumerate(lines, start=start_line)
    )


def check_empty_content(content: str) -> str | None:
    """Return the empty-file sentinel for empty content, otherwise ``None``.

    A file is empty when it has no characters at all or consists of exactly
    one empty line.
    """
    if not content or content.splitlines() == [""]:
        return EMPTY_CONTENT_WARNING
    return None


def format_read_window(content: str, offset: int, limit: int) -> str:
    """Render a paginated, line-numbered view of ``content``.

    Applies the empty-file check first, then validates the window against the
    line count. Lines are the content split on ``\\n``.
    """
    empty_message = check_empty_content(content)
    if empty_message is not None:
        return empty_message

    if offset < 0:
        return f"Error: Line offset {offset} must be non-negative"
    if limit < 1:
        return f"Error: Line limit {limit} must be positive"

    lines = content.split("\n")
    if offset >= len(lines):
        return f"Error: Line offset {offset} exceeds file length ({len(lines)} lines)"

    end = min(offset + limit, len(lines))
    return format_content_with_line_numbers(lines[offset:end], offset + 1)


def perform_string_replacement(
    content: str,
    old_string: str,
    new_string: str,
    replace_all: bool,
) -> tuple[str, int] | str:
    """Replace literal occurrences of ``old_string`` in ``content``.

    Returns ``(new_content, occurrences)`` on success. Returns an error string
    when ``old_string`` is absent, or when it occurs more than once and
    ``replace_all`` is false; the caller must then leave the file untouched.
    """
    if not old_string:
        return "Error: old_string must not be empty"

    occurrences = content.count(old_string)
    if occurrences == 0:
        return f"Error: String not found in file: '{old_string}'"
    if occurrences > 1 and not replace_all:
        return (
            f"Error: String '{old_string}' appears {occurrences} times in file. "
            "Use replace_all=True to replace all instances, or provide a more "
            "specific string with surrounding context."
        )
    return content.replace(old_string, new_string), occurrences


# ---------------------------------------------------------------------------
# Search helpers
# ---------------------------------------------------------------------------


def compile_pattern(pattern: str) -> re.Pattern[str] | str:
    """Compile a search regex, returning an error string when it is invalid."""
    try:
        return re.compile(pattern)
    except re.error as err:
        return f"Invalid regex pattern: {err}"


def match_glob(path: str, pattern: str) -> bool:
    """Match a relative path against a glob pattern, segment by segment.

    ``**`` matches zero or more whole directories, so ``**/*.py`` matches both
    ``foo.py`` and ``bar/baz.py``. Within a segment, ``fnmatch`` rules apply:
    ``*`` never crosses ``/`` and leading dots are matched like any other
    character.
    """
    return _match_segments(split_segments(path), split_segments(pattern))


def _match_segments(parts: Sequence[str], patterns: Sequence[str]) -> bool:
    if not patterns:
        return not parts
    head, rest = patterns[0], patterns[1:]
    if head == "**":
        return any(
            _match_segments(parts[index:], rest) for index in range(len(parts) + 1)
        )
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def to_iso(value: datetime | float) -> str:
    """Render a timestamp as an ISO-8601 UTC string with millisecond precision.

    ``value`` is either a datetime (naive values are taken as UTC) or a POSIX
    timestamp in milliseconds, the unit directory handles report.
    """
    if isinstance(value, datetime):
        moment = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    else:
        moment = datetime.fromtimestamp(value / 1000, tz=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds")


# ---------------------------------------------------------------------------
# Standard error messages
# ---------------------------------------------------------------------------


def file_not_found_error(path: str) -> str:
    return f"Error: File '{path}' not found"


def is_directory_error(path: str) -> str:
    return f"Error: Path '{path}' is a directory"


def already_exists_error(path: str) -> str:
    return (
        f"Cannot write to {path} because it already exists. "
        "Read and then make an edit, or write to a new path."
    )


def read_failed_error(path: str, err: BaseException) -> str:
    return f"Error reading file '{path}': {err}"


def write_failed_error(path: str, err: BaseException) -> str:
    return f"Error writing file '{path}': {err}"


def edit_failed_error(path: str, err: BaseException) -> str:
    return f"Error editing file '{path}': {err}"


def grep_failed_error(err: BaseException | str) -> str:
    return f"Error running grep: {err}"


__all__ = [
    "EMPTY_CONTENT_WARNING",
    "already_exists_error",
    "check_empty_content",
    "compile_pattern",
    "edit_failed_error",
    "file_not_found_error",
    "format_content_with_line_numbers",
    "format_read_window",
    "grep_failed_error",
    "is_directory_error",
    "match_glob",
    "perform_string_replacement",
    "read_failed_error",
    "to_iso",
    "write_failed_error",
]
