"""Unit tests for logger setup and the TUI debug log."""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path

from xyte.core.config import LoggingConfig, XyteConfig
from xyte.core.log import LOGGER_NAME, TuiDebugLog, configure_logging


class TestConfigureLogging:
    def test_json_format(self) -> None:
        stream = io.StringIO()
        cfg = XyteConfig(logging=LoggingConfig(level="INFO", format="json"))
        logger = configure_logging(cfg, stream=stream)
        logger.info("hello %s", "world")

        assert logger.name == LOGGER_NAME
        record = json.loads(stream.getvalue())
        assert record["level"] == "info"
        assert record["message"] == "hello world"

    def test_level_filters_and_handlers_are_replaced(self) -> None:
        stream = io.StringIO()
        configure_logging(XyteConfig(), stream=io.StringIO())
        logger = configure_logging(XyteConfig(logging=LoggingConfig(level="ERROR")), stream=stream)
        logger.warning("dropped")
        logger.error("kept")
        assert len(logger.handlers) == 1
        assert "dropped" not in stream.getvalue()
        assert "ERROR xyte: kept" in stream.getvalue()


class TestTuiDebugLog:
    def test_entries_are_sequenced(self, tmp_path: Path) -> None:
        debug = TuiDebugLog(tmp_path / "logs" / "debug.log")
        debug.log("ui.key", {"key": "v"})
        debug.log("ui.screen.switch", {"from": "setup", "to": "devices"})

        entries = debug.tail()
        assert [e["event"] for e in entries] == ["logger.started", "ui.key", "ui.screen.switch"]
        assert [e["seq"] for e in entries] == [1, 2, 3]
        assert entries[1]["data"] == {"key": "v"}

    def test_tail_limit(self, tmp_path: Path) -> None:
        debug = TuiDebugLog(tmp_path / "debug.log")
        for i in range(10):
            debug.log("tick", {"i": i})
        assert [e["data"]["i"] for e in debug.tail(3)] == [7, 8, 9]

    def test_cycles_and_exceptions_are_serialized(self, tmp_path: Path) -> None:
        debug = TuiDebugLog(tmp_path / "debug.log")
        data: dict = {"name": "loop"}
        data["self"] = data
        debug.log("cyclic", {"payload": data, "error": ValueError("bad")})

        entry = debug.tail(1)[0]
        assert entry["data"]["payload"]["self"] == "[Circular]"
        assert entry["data"]["error"] == {"name": "ValueError", "message": "bad"}

    def test_disabled_writes_nothing(self, tmp_path: Path) -> None:
        path = tmp_path / "debug.log"
        debug = TuiDebugLog(path, enabled=False)
        debug.log("ignored")
        assert not path.exists()
        assert TuiDebugLog.disabled().tail() == []

    def test_write_failure_is_logged_not_raised(self, tmp_path: Path, caplog) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        logger = logging.getLogger("debuglog.test")
        with caplog.at_level(logging.ERROR, logger="debuglog.test"):
            debug = TuiDebugLog(blocker / "debug.log", logger=logger)
            debug.log("event")
        assert debug.enabled is False
        assert "cannot create" in caplog.text
