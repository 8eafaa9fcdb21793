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

"""Tests for the virtual-shell backend."""

from __future__ import annotations

import json
import logging

import pytest

from tests.helpers.backend_conformance import BackendConformanceSuite, run, seed
from tests.helpers.virtual_shell import FakeCommandResult, FakeInterpreter
from uniformfs.backends import (
    BackendProtocol,
    FileDownloadResponse,
    FileUploadResponse,
    GrepMatch,
    SandboxBackendProtocol,
    VirtualShellBackend,
)
from uniformfs.config import BackendConfig


class TestVirtualShellConformance(BackendConformanceSuite):
    @pytest.fixture
    def backend(self) -> BackendProtocol:
        return VirtualShellBackend(FakeInterpreter())


@pytest.fixture
def interpreter() -> FakeInterpreter:
    return FakeInterpreter()


@pytest.fixture
def backend(interpreter: FakeInterpreter) -> VirtualShellBackend:
    return VirtualShellBackend(interpreter)


def test_backend_is_sandbox_capable(backend: VirtualShellBackend) -> None:
    assert isinstance(backend, SandboxBackendProtocol)
    assert backend.id == "virtual-shell"


class TestListing:
    def test_ls_info_skips_entries_that_fail_to_stat(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        seed(backend, {"/d/ok.txt": "ok", "/d/secret.txt": "s"})
        interpreter.fs.denied.add("/d/secret.txt")

        assert [info.path for info in run(backend.ls_info("/d"))] == ["/d/ok.txt"]

    def test_modified_at_is_iso_utc(self, backend: VirtualShellBackend) -> None:
        seed(backend, {"/a.txt": "a"})

        (entry,) = run(backend.ls_info("/"))

        assert entry.modified_at.endswith("+00:00")


class TestReadAndWrite:
    def test_read_uses_configured_limit(self, interpreter: FakeInterpreter) -> None:
        backend = VirtualShellBackend(interpreter, config=BackendConfig(read_limit=2))
        seed(backend, {"/five.txt": "1\n2\n3\n4\n5"})

        assert run(backend.read("/five.txt")) == "1\t1\n2\t2"

    def test_read_permission_failure_reports_message(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        seed(backend, {"/locked.txt": "x"})
        interpreter.fs.denied.add("/locked.txt")

        output = run(backend.read("/locked.txt"))

        assert output.startswith("Error reading file '/locked.txt': ")
        assert "Permission denied" in output

    def test_write_failure_is_reported_and_logged(
        self,
        backend: VirtualShellBackend,
        interpreter: FakeInterpreter,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        seed(backend, {"/file.txt": "x"})
        caplog.set_level(logging.WARNING, logger="uniformfs.backends.virtual")

        result = run(backend.write("/file.txt/child.txt", "nested"))

        assert result.error is not None
        assert result.error.startswith("Error writing file '/file.txt/child.txt': ")
        events = [getattr(record, "event", None) for record in caplog.records]
        assert "backend.write.failed" in events

    def test_edit_failure_leaves_file(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        seed(backend, {"/a.txt": "a"})
        interpreter.fs.denied.add("/a.txt")

        result = run(backend.edit("/a.txt", "a", "b"))

        assert result.error is not None
        assert result.error.startswith("Error editing file '/a.txt': ")
        interpreter.fs.denied.clear()
        assert run(backend.read_raw("/a.txt")).text == "a"


class TestGrep:
    def test_command_is_shell_quoted(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        interpreter.fs.mkdir("/my dir")

        _ = run(backend.grep_raw("find me", "/my dir", glob="*.py"))

        assert interpreter.commands == ["rg --json -g '*.py' -- 'find me' '/my dir'"]

    def test_non_match_records_and_malformed_lines_are_skipped(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        match = {
            "type": "match",
            "data": {
                "path": {"text": "/z.txt"},
                "lines": {"text": "hit\n"},
                "line_number": 4,
            },
        }
        earlier = {
            "type": "match",
            "data": {
                "path": {"text": "/a.txt"},
                "lines": {"text": "hit"},
                "line_number": 9,
            },
        }
        stdout = "\n".join(
            [
                json.dumps({"type": "begin", "data": {}}),
                "not json at all",
                json.dumps(match),
                json.dumps({"type": "match", "data": {"path": {}}}),
                json.dumps(
                    {
                        "type": "match",
                        "data": {
                            "path": "/b.txt",
                            "lines": {"text": "hit"},
                            "line_number": 1,
                        },
                    }
                ),
                json.dumps(
                    {
                        "type": "match",
                        "data": {
                            "path": {"text": "/c.txt"},
                            "lines": "hit",
                            "line_number": 2,
                        },
                    }
                ),
                json.dumps(
                    {
                        "type": "match",
                        "data": {
                            "path": {"text": "/d.txt"},
                            "lines": {"text": 7},
                            "line_number": 3,
                        },
                    }
                ),
                "",
                json.dumps(earlier),
            ]
        )
        interpreter.scripted["rg --json -- hit /"] = FakeCommandResult(stdout=stdout)

        assert run(backend.grep_raw("hit")) == [
            GrepMatch(path="/a.txt", line=9, text="hit"),
            GrepMatch(path="/z.txt", line=4, text="hit"),
        ]

    def test_interpreter_error_exit_returns_stderr(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        interpreter.scripted["rg --json -- x /"] = FakeCommandResult(
            stderr="rg: permission denied", exit_code=2
        )

        assert run(backend.grep_raw("x")) == "rg: permission denied"

    def test_error_exit_without_stderr(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        interpreter.scripted["rg --json -- x /"] = FakeCommandResult(exit_code=2)

        assert run(backend.grep_raw("x")) == "Error running grep: exit code 2"

    def test_interpreter_exception(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        interpreter.fail_with = RuntimeError("rg: unavailable")

        assert run(backend.grep_raw("x")) == "Error running grep: rg: unavailable"

    def test_invalid_pattern_never_reaches_interpreter(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        result = run(backend.grep_raw("[", "/"))

        assert isinstance(result, str)
        assert result.startswith("Invalid regex pattern: ")
        assert interpreter.commands == []

    def test_missing_directory_has_no_matches(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        seed(backend, {"/src/a.py": "needle\n"})

        assert run(backend.grep_raw("needle", "/missing")) == []
        assert run(backend.grep_raw("needle", "/src/a.py")) == []
        assert interpreter.commands == []


class TestGlob:
    def test_search_path_is_segment_aware(self, backend: VirtualShellBackend) -> None:
        seed(backend, {"/g/a.ts": "", "/gx/b.ts": ""})

        assert [info.path for info in run(backend.glob_info("*.ts", "/g"))] == [
            "/g/a.ts"
        ]

    def test_relative_search_path(self, backend: VirtualShellBackend) -> None:
        seed(backend, {"/g/a.ts": ""})

        assert [info.path for info in run(backend.glob_info("*.ts", "g"))] == [
            "/g/a.ts"
        ]


class TestExecute:
    def test_success(self, backend: VirtualShellBackend) -> None:
        response = run(backend.execute("echo hello world"))

        assert response.output == "hello world\n"
        assert response.exit_code == 0
        assert response.truncated is False

    def test_failure_reports_exit_code_and_stderr(
        self, backend: VirtualShellBackend
    ) -> None:
        response = run(backend.execute("cat /missing.txt"))

        assert response.exit_code == 1
        assert response.output == "cat: /missing.txt: No such file or directory\n"

    def test_exit_code_passthrough(self, backend: VirtualShellBackend) -> None:
        assert run(backend.execute("exit 3")).exit_code == 3

    def test_sees_files_written_through_backend(
        self, backend: VirtualShellBackend
    ) -> None:
        seed(backend, {"/notes.txt": "remember"})

        assert run(backend.execute("cat /notes.txt")).output == "remember"

    def test_interpreter_exception_becomes_exit_code_one(
        self,
        backend: VirtualShellBackend,
        interpreter: FakeInterpreter,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        interpreter.fail_with = ValueError("unterminated quote")
        caplog.set_level(logging.WARNING, logger="uniformfs.backends.virtual")

        response = run(backend.execute("echo 'oops"))

        assert response.exit_code == 1
        assert response.output == "Error executing command: unterminated quote"
        events = [getattr(record, "event", None) for record in caplog.records]
        assert "backend.execute.failed" in events

    def test_output_is_truncated(self, interpreter: FakeInterpreter) -> None:
        backend = VirtualShellBackend(
            interpreter, config=BackendConfig(max_output_chars=20)
        )

        response = run(backend.execute("echo " + "x" * 100))

        assert response.truncated is True
        assert len(response.output) == 20
        assert response.output.endswith("[truncated]")


class TestBulkTransfer:
    def test_upload_then_download_round_trips_bytes(
        self, backend: VirtualShellBackend
    ) -> None:
        payload = b"\x00\xff\xfe binary \xc3\x28 text\n"

        uploaded = run(backend.upload_files([("/blob.bin", payload)]))
        downloaded = run(backend.download_files(["/blob.bin"]))

        assert uploaded == [FileUploadResponse(path="/blob.bin")]
        assert downloaded == [FileDownloadResponse(path="/blob.bin", content=payload)]

    def test_upload_overwrites_existing_file(
        self, backend: VirtualShellBackend
    ) -> None:
        seed(backend, {"/a.txt": "old"})

        _ = run(backend.upload_files([("/a.txt", b"new")]))

        assert run(backend.read("/a.txt")) == "1\tnew"

    def test_upload_reports_per_item_errors(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        seed(backend, {"/dir/inner.txt": "x", "/file.txt": "f"})
        interpreter.fs.denied.add("/locked.txt")

        responses = run(
            backend.upload_files(
                [
                    ("/dir", b"x"),
                    ("/locked.txt", b"x"),
                    ("/file.txt/child", b"x"),
                    ("/ok.txt", b"ok"),
                ]
            )
        )

        assert [response.error for response in responses] == [
            "is_directory",
            "permission_denied",
            "invalid_path",
            None,
        ]
        assert run(backend.read("/ok.txt")) == "1\tok"

    def test_download_reports_per_item_errors(
        self, backend: VirtualShellBackend, interpreter: FakeInterpreter
    ) -> None:
        seed(backend, {"/dir/inner.txt": "x", "/ok.txt": "ok", "/locked.txt": "l"})
        interpreter.fs.denied.add("/locked.txt")

        responses = run(
            backend.download_files(["/missing.txt", "/dir", "/locked.txt", "/ok.txt"])
        )

        assert responses == [
            FileDownloadResponse(path="/missing.txt", error="file_not_found"),
            FileDownloadResponse(path="/dir", error="is_directory"),
            FileDownloadResponse(path="/locked.txt", error="permission_denied"),
            FileDownloadResponse(path="/ok.txt", content=b"ok"),
        ]
