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

"""Absolute path helpers shared by the backends.

Backends address files with absolute, slash-separated paths rooted at the
substrate root (``/``). These helpers normalize such paths and answer
containment questions without touching any substrate.

Functions:
    split_segments: Split a path into clean segments, resolving ``.`` and ``..``
    normalize_absolute: Canonical absolute form of a path
    join_path: Append a child name to a directory path
    is_path_under: Segment-aware containment check
    relative_to: Path relative to a base directory
"""

from __future__ import annotations


def split_segments(path: str) -> list[str]:
    """Split ``path`` into normalized segments.

    Empty segments and ``.`` are dropped; ``..`` pops the previous segment and
    never climbs above the root.

    Examples:
        >>> split_segments("/foo//bar/")
        ['foo', 'bar']
        >>> split_segments("/foo/../../bar")
        ['bar']
        >>> split_segments("/")
        []
    """
    result: list[str] = []
    for segment in path.strip().split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if result:
                _ = result.pop()
            continue
        result.append(segment)
    return result


def normalize_absolute(path: str) -> str:
    """Return the canonical absolute form of ``path``.

    Examples:
        >>> normalize_absolute("foo/bar/")
        '/foo/bar'
        >>> normalize_absolute(".")
        '/'
    """
    return "/" + "/".join(split_segments(path))


def join_path(directory: str, name: str) -> str:
    """Join a child ``name`` onto an absolute ``directory`` path.

    Examples:
        >>> join_path("/", "a.txt")
        '/a.txt'
        >>> join_path("/src/", "main.py")
        '/src/main.py'
    """
    base = directory.rstrip("/")
    return f"{base}/{name}"


def is_path_under(path: str, base: str) -> bool:
    """Check if ``path`` equals ``base`` or lies inside it.

    The check is segment-aware: ``/g`` contains ``/g/a.ts`` but not
    ``/gx/a.ts``.

    Examples:
        >>> is_path_under("/src/main.py", "/src")
        True
        >>> is_path_under("/srcs/main.py", "/src")
        False
        >>> is_path_under("/anything", "/")
        True
    """
    normalized_base = normalize_absolute(base)
    normalized_path = normalize_absolute(path)
    if normalized_base == "/":
        return True
    return normalized_path == normalized_base or normalized_path.startswith(
        f"{normalized_base}/"
    )


def relative_to(path: str, base: str) -> str:
    """Return ``path`` relative to ``base`` without a leading slash.

    Returns an empty string when ``path`` is ``base`` itself. Callers must
    check containment with :func:`is_path_under` first.

    Examples:
        >>> relative_to("/g/sub/app.ts", "/g")
        'sub/app.ts'
        >>> relative_to("/g", "/g")
        ''
    """
    path_segments = split_segments(path)
    base_segments = split_segments(base)
    return "/".join(path_segments[len(base_segments) :])


__all__ = [
    "is_path_under",
    "join_path",
    "normalize_absolute",
    "relative_to",
    "split_segments",
]
