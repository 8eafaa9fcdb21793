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

"""Tests for absolute path helpers."""

from __future__ import annotations

import pytest

from uniformfs.backends._path import (
    is_path_under,
    join_path,
    normalize_absolute,
    relative_to,
    split_segments,
)


class TestSplitSegments:
    """Test split_segments function."""

    def test_root_has_no_segments(self) -> None:
        assert split_segments("/") == []

    def test_drops_empty_and_dot_segments(self) -> None:
        assert split_segments("/foo//./bar/") == ["foo", "bar"]

    def test_parent_segments_pop(self) -> None:
        assert split_segments("/foo/baz/../bar") == ["foo", "bar"]

    def test_parent_segments_stop_at_root(self) -> None:
        assert split_segments("/../../etc") == ["etc"]

    def test_relative_input(self) -> None:
        assert split_segments("foo/bar") == ["foo", "bar"]


class TestNormalizeAbsolute:
    """Test normalize_absolute function."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("", "/"),
            (".", "/"),
            ("/", "/"),
            ("foo", "/foo"),
            ("/foo/bar/", "/foo/bar"),
            ("//foo///bar", "/foo/bar"),
        ],
    )
    def test_normalizes(self, raw: str, expected: str) -> None:
        assert normalize_absolute(raw) == expected


class TestJoinPath:
    """Test join_path function."""

    def test_join_onto_root(self) -> None:
        assert join_path("/", "a.txt") == "/a.txt"

    def test_join_onto_directory(self) -> None:
        assert join_path("/src", "main.py") == "/src/main.py"

    def test_join_ignores_trailing_slash(self) -> None:
        assert join_path("/src/", "main.py") == "/src/main.py"


class TestIsPathUnder:
    """Test is_path_under function."""

    def test_root_contains_everything(self) -> None:
        assert is_path_under("/anything/at/all", "/")

    def test_path_equal_to_base(self) -> None:
        assert is_path_under("/g", "/g/")

    def test_child(self) -> None:
        assert is_path_under("/g/a.ts", "/g")

    def test_sibling_with_shared_prefix(self) -> None:
        assert not is_path_under("/gx/a.ts", "/g")

    def test_parent_is_not_under_child(self) -> None:
        assert not is_path_under("/g", "/g/sub")


class TestRelativeTo:
    """Test relative_to function."""

    def test_nested(self) -> None:
        assert relative_to("/g/sub/app.ts", "/g") == "sub/app.ts"

    def test_from_root(self) -> None:
        assert relative_to("/g/app.ts", "/") == "g/app.ts"

    def test_same_path(self) -> None:
        assert relative_to("/g", "/g") == ""
