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

"""Structured logging for :mod:`uniformfs` backends.

Backends report through :class:`StructuredLogger`, so every record carries a
dotted ``event`` name and a ``context`` mapping. Event names follow
``backend.<operation>.<outcome>`` (``backend.write.failed``,
``backend.grep.skipped_large_file``) and the context names the backend id
plus whatever the event concerns, usually a path or a shell command::

    logger = get_logger(__name__, context={"component": "backend"})
    logger.warning(
        "Directory handle write failed.",
        event="backend.write.failed",
        context={"backend": "directory-handle", "path": "/a.txt"},
    )

Nothing is configured on import. Applications that want uniformfs output on
stderr call :func:`configure_logging`, optionally driven by
``UNIFORMFS_LOG_LEVEL`` and ``UNIFORMFS_LOG_FORMAT``.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any, cast

from typing_extensions import override

__all__ = [
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]

_LOG_LEVEL_ENV = "UNIFORMFS_LOG_LEVEL"
_LOG_FORMAT_ENV = "UNIFORMFS_LOG_FORMAT"
_LEVEL_NAMES = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


class StructuredLogger(logging.LoggerAdapter[logging.Logger]):
    """Adapter that turns ``event=``/``context=`` keywords into record fields.

    The adapter's own mapping is the baseline context (for example
    ``{"component": "backend"}``). Each call layers its ``context`` and any
    plain ``extra`` keys on top, and the result lands on the record as
    ``record.context`` next to ``record.event``.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(logger, dict(context or {}))

    def bind(self, **context: object) -> StructuredLogger:
        """Return an adapter whose baseline context also includes ``context``."""
        baseline = cast(Mapping[str, object], self.extra)
        return type(self)(self.logger, context={**baseline, **context})

    @override
    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = _extra_fields(kwargs.get("extra"))
        event = kwargs.pop("event", None) or extra.pop("event", None)
        if not isinstance(event, str):
            raise TypeError(
                f"Backend log call for {msg!r} is missing its 'event' name."
            )

        context: dict[str, object] = dict(cast(Mapping[str, object], self.extra))
        context.update(_call_context(kwargs.pop("context", None)))
        context.update(extra)

        kwargs["extra"] = {"event": event, "context": context}
        return msg, kwargs


def _extra_fields(value: object) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError("Log 'extra' must be a mapping of context fields.")
    return dict(cast(Mapping[str, object], value))


def _call_context(value: object) -> Mapping[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(
            f"Log 'context' must be a mapping, got {type(value).__name__}."
        )
    return cast(Mapping[str, object], value)


def get_logger(
    name: str,
    *,
    logger_override: logging.Logger | None = None,
    context: Mapping[str, object] | None = None,
) -> StructuredLogger:
    """Return a :class:`StructuredLogger` scoped to ``name``.

    ``logger_override`` lets callers route records through a logger they
    already own (tests use this to capture output).
    """

    base_logger = (
        logger_override if logger_override is not None else logging.getLogger(name)
    )
    return StructuredLogger(base_logger, context=context)


def configure_logging(
    *,
    level: int | str | None = None,
    json_mode: bool | None = None,
    env: Mapping[str, str] | None = None,
    force: bool = False,
) -> None:
    """Configure the root logger with sensible defaults.

    ``level`` and ``json_mode`` can be supplied directly or via the
    ``UNIFORMFS_LOG_LEVEL`` and ``UNIFORMFS_LOG_FORMAT`` environment variables
    (``json`` enables structured output, ``text`` keeps the plain formatter).

    Existing handlers installed by the host application are left alone unless
    ``force=True`` is supplied; only the level is adjusted.
    """

    env = env if env is not None else os.environ

    resolved_level = _coerce_level(level or env.get(_LOG_LEVEL_ENV) or logging.INFO)

    if json_mode is None:
        format_value = env.get(_LOG_FORMAT_ENV)
        json_mode = format_value is not None and format_value.lower() == "json"

    root_logger = logging.getLogger()

    if root_logger.handlers and not force:
        root_logger.setLevel(resolved_level)
        return

    formatter_key = "json" if json_mode else "text"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {
                    "format": "%(asctime)s %(levelname)s %(name)s %(event)s %(message)s %(context)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {
                    "()": "uniformfs.logging._JsonFormatter",
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": formatter_key,
                }
            },
            "root": {
                "handlers": ["stderr"],
                "level": resolved_level,
            },
        }
    )


class _JsonFormatter(logging.Formatter):
    """Formatter that renders structured records as compact JSON."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event is not None:
            payload["event"] = event
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=repr, separators=(",", ":"))


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    try:
        return _LEVEL_NAMES[level.upper()]
    except KeyError:
        raise TypeError(f"Unknown log level: {level!r}") from None
