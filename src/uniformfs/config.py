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

"""Configuration dataclass shared by every backend."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

DEFAULT_READ_LIMIT: Final[int] = 500
DEFAULT_MAX_SEARCH_FILE_BYTES: Final[int] = 10 * 1024 * 1024
DEFAULT_MAX_OUTPUT_CHARS: Final[int] = 30_000

_READ_LIMIT_ENV = "UNIFORMFS_READ_LIMIT"
_MAX_SEARCH_FILE_BYTES_ENV = "UNIFORMFS_MAX_SEARCH_FILE_BYTES"
_MAX_OUTPUT_CHARS_ENV = "UNIFORMFS_MAX_OUTPUT_CHARS"


@dataclass(slots=True, frozen=True)
class BackendConfig:
    """Tunables for backend behaviour.

    Attributes:
        read_limit: Default number of lines returned by ``read()`` when the
            caller does not pass ``limit``.
        max_search_file_bytes: Files larger than this are skipped during
            recursive ``grep_raw`` scans on handle-backed substrates.
        max_output_chars: Combined stdout/stderr characters kept by
            ``execute()`` before the output is cut and flagged as truncated.

    Example::

        config = BackendConfig(max_search_file_bytes=1024 * 1024)
        backend = DirectoryHandleBackend(handle, config=config)
    """

    read_limit: int = DEFAULT_READ_LIMIT
    max_search_file_bytes: int = DEFAULT_MAX_SEARCH_FILE_BYTES
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS

    def __post_init__(self) -> None:
        for name in ("read_limit", "max_search_file_bytes", "max_output_chars"):
            value = getattr(self, name)
            if value <= 0:
                msg = f"{name} must be positive, got {value}"
                raise ValueError(msg)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BackendConfig:
        """Build a config from ``UNIFORMFS_*`` environment variables.

        Unset variables fall back to the defaults. Values that are not
        integers raise ``ValueError``.
        """
        env = env if env is not None else os.environ
        return cls(
            read_limit=_int_from_env(env, _READ_LIMIT_ENV, DEFAULT_READ_LIMIT),
            max_search_file_bytes=_int_from_env(
                env, _MAX_SEARCH_FILE_BYTES_ENV, DEFAULT_MAX_SEARCH_FILE_BYTES
            ),
            max_output_chars=_int_from_env(
                env, _MAX_OUTPUT_CHARS_ENV, DEFAULT_MAX_OUTPUT_CHARS
            ),
        )


def _int_from_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{key} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


__all__ = [
    "DEFAULT_MAX_OUTPUT_CHARS",
    "DEFAULT_MAX_SEARCH_FILE_BYTES",
    "DEFAULT_READ_LIMIT",
    "BackendConfig",
]
