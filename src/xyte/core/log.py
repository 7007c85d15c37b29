"""
Logging setup and the TUI debug event log.

``configure_logging()`` builds the ``xyte`` logger once at process start.  The
returned instance is handed to the runtime, renderer and loaders explicitly;
they fall back to their module logger only when constructed without one.

``TuiDebugLog`` is an append-only JSONL file of UI events::

    debug = TuiDebugLog(path)
    debug.log("ui.screen.switch", {"from": "setup", "to": "dashboard"})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from xyte.core.config import XyteConfig

LOGGER_NAME = "xyte"


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: XyteConfig, stream: Any = None) -> logging.Logger:
    """Create the process logger from ``[logging]`` config.  Logs go to stderr so stdout stays NDJSON."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.logging.level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if config.logging.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseException):
        return {"name": type(value).__name__, "message": str(value)}
    return str(value)


def _strip_cycles(value: Any, ancestors: set[int]) -> Any:
    if isinstance(value, dict):
        if id(value) in ancestors:
            return "[Circular]"
        ancestors.add(id(value))
        try:
            return {str(k): _strip_cycles(v, ancestors) for k, v in value.items()}
        finally:
            ancestors.discard(id(value))
    if isinstance(value, (list, tuple)):
        if id(value) in ancestors:
            return "[Circular]"
        ancestors.add(id(value))
        try:
            return [_strip_cycles(v, ancestors) for v in value]
        finally:
            ancestors.discard(id(value))
    return value


class TuiDebugLog:
    """
    Append-only JSONL writer for UI debug events.

    Best-effort: write failures are reported through ``logger`` and never raised.
    A disabled instance accepts calls and writes nothing.
    """

    def __init__(
        self,
        path: Path | None = None,
        enabled: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.path = path
        self.enabled = enabled and path is not None
        self._sequence = 0
        if self.enabled and self.path is not None:
            try:
                self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            except OSError as exc:
                self._logger.error("TuiDebugLog: cannot create %s: %s", self.path.parent, exc)
                self.enabled = False
        if self.enabled:
            self.log("logger.started", {"path": str(self.path)})

    @classmethod
    def disabled(cls) -> TuiDebugLog:
        return cls(path=None, enabled=False)

    def log(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Append one event line."""
        if not self.enabled or self.path is None:
            return
        self._sequence += 1
        entry = {
            "seq": self._sequence,
            "timestamp": datetime.now(UTC).isoformat(),
            "pid": os.getpid(),
            "event": event,
            "data": _strip_cycles(data, set()),
        }
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, default=_json_default) + "\n")
        except (OSError, TypeError, ValueError) as exc:
            self._logger.error("TuiDebugLog: failed to write to %s: %s", self.path, exc)

    def tail(self, n: int = 50) -> list[dict[str, Any]]:
        """Return the last ``n`` entries as dicts (oldest first)."""
        if self.path is None or not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        except OSError as exc:
            self._logger.error("TuiDebugLog: cannot read %s: %s", self.path, exc)
            return []

        entries: list[dict[str, Any]] = []
        for line in lines[-n:]:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return entries
