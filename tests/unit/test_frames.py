"""Unit tests for frame construction, rendering, and the emitter."""

from __future__ import annotations

import errno
import io
import json

import pytest

from xyte.core.constants import HEADLESS_FRAME_SCHEMA_VERSION, PREVIEW_TRUNCATED_BANNER
from xyte.tui.frames import (
    FrameEmitter,
    create_frame,
    infer_render_safety,
    navigation_meta,
    refresh_state_for,
    render_frame_as_text,
)
from xyte.tui.scene import stats_panel, table_panel, text_panel


def _frame(sequence: int = 0, **overrides):
    kwargs = {
        "session_id": "session-1",
        "sequence": sequence,
        "screen": "devices",
        "title": "Devices",
        "status": "Loaded",
        "logo": "XYTE",
        "panels": [table_panel("devices-table", "Devices", ["ID"], [["dev-1"]])],
    }
    kwargs.update(overrides)
    return create_frame(**kwargs)


class _ClosedPipe(io.StringIO):
    def __init__(self, exc: OSError) -> None:
        super().__init__()
        self.exc = exc

    def write(self, text: str) -> int:
        raise self.exc


class TestCreateFrame:
    def test_default_meta_is_present(self) -> None:
        meta = _frame().meta
        assert meta["inputState"] == "idle"
        assert meta["queueDepth"] == 0
        assert meta["tableFormat"] == "compact-v1"
        assert meta["navigationMode"] == "pane-focus"
        assert meta["contract"]["frameVersion"] == HEADLESS_FRAME_SCHEMA_VERSION

    def test_none_optional_meta_is_dropped(self) -> None:
        meta = _frame(meta={"readiness": None, "redirectedFrom": None, "tabNavBoundary": None}).meta
        assert "readiness" not in meta
        assert "redirectedFrom" not in meta
        assert meta["tabNavBoundary"] is None

    def test_overrides_win(self) -> None:
        meta = _frame(meta={"refreshState": "retrying", "redirectedFrom": "dashboard"}).meta
        assert meta["refreshState"] == "retrying"
        assert meta["redirectedFrom"] == "dashboard"

    def test_unknown_screen_rejected(self) -> None:
        with pytest.raises(ValueError):
            _frame(screen="nowhere")

    def test_json_is_single_compact_line(self) -> None:
        line = _frame(tenant_id="acme").to_json()
        assert "\n" not in line
        data = json.loads(line)
        assert data["schemaVersion"] == HEADLESS_FRAME_SCHEMA_VERSION
        assert data["sessionId"] == "session-1"
        assert data["tenantId"] == "acme"
        assert data["panels"][0]["table"]["rows"] == [["dev-1"]]
        assert data["timestamp"].endswith("Z")

    def test_tenant_omitted_when_absent(self) -> None:
        assert "tenantId" not in _frame().to_dict()


class TestMetaHelpers:
    def test_navigation_meta_uses_default_pane(self) -> None:
        meta = navigation_meta("incidents", transitionState="idle")
        assert meta["tabId"] == "incidents"
        assert meta["activePane"] == "incidents-table"
        assert meta["availablePanes"] == ["incidents-table", "detail-box", "triage-box"]
        assert meta["tabOrder"][0] == "setup"
        assert meta["transitionState"] == "idle"

    def test_render_safety(self) -> None:
        ok = [stats_panel("s", "S", [("a", 1)]), text_panel("t", "T", ["fine"])]
        cut = [text_panel("t", "T", [PREVIEW_TRUNCATED_BANNER, "{"])]
        assert infer_render_safety(ok) == "ok"
        assert infer_render_safety(cut) == "truncated"
        assert infer_render_safety([text_panel("t", "T", ["...", "[Truncated]"])]) == "truncated"

    def test_refresh_state(self) -> None:
        assert refresh_state_for("connected") == "idle"
        assert refresh_state_for("not_checked") == "idle"
        assert refresh_state_for("timeout", retried=True) == "retrying"
        assert refresh_state_for("timeout") == "error"


class TestTextRender:
    def test_sections(self) -> None:
        text = render_frame_as_text(_frame(sequence=3, motion_enabled=True, motion_phase=2))
        assert "Contract: xyte.headless.frame.v1" in text
        assert "Session: session-1 #3" in text
        assert "Tenant: none" in text
        assert "Motion: on (phase=2)" in text
        assert "== Devices ==" in text
        assert "ID\n--\ndev-1" in text

    def test_long_tables_are_cut(self) -> None:
        rows = [[str(i)] for i in range(25)]
        frame = _frame(panels=[table_panel("devices-table", "Devices", ["ID"], rows)])
        assert "... 5 more rows" in render_frame_as_text(frame)


class TestFrameEmitter:
    def test_sequence_is_monotonic(self) -> None:
        emitter = FrameEmitter(io.StringIO(), session_id="s")
        assert [emitter.next_sequence() for _ in range(3)] == [0, 1, 2]

    def test_json_lines(self) -> None:
        out = io.StringIO()
        emitter = FrameEmitter(out, session_id="s")
        for _ in range(2):
            assert emitter.emit(_frame(sequence=emitter.next_sequence()))
        lines = out.getvalue().splitlines()
        assert [json.loads(line)["sequence"] for line in lines] == [0, 1]
        assert emitter.emitted == 2

    def test_text_format(self) -> None:
        out = io.StringIO()
        FrameEmitter(out, format="text").emit(_frame())
        assert out.getvalue().endswith("\n\n")
        assert "Screen: devices" in out.getvalue()

    def test_generated_session_id(self) -> None:
        assert len(FrameEmitter(io.StringIO()).session_id) == 36

    @pytest.mark.parametrize(
        "exc",
        [BrokenPipeError(), OSError(errno.EPIPE, "Broken pipe")],
        ids=["broken-pipe", "epipe"],
    )
    def test_closed_reader_marks_broken(self, exc: OSError) -> None:
        emitter = FrameEmitter(_ClosedPipe(exc))
        assert emitter.emit(_frame()) is False
        assert emitter.broken is True
        assert emitter.emit(_frame()) is False
        assert emitter.emitted == 0

    def test_other_write_errors_propagate(self) -> None:
        emitter = FrameEmitter(_ClosedPipe(OSError(errno.ENOSPC, "No space left")))
        with pytest.raises(OSError):
            emitter.emit(_frame())
        assert emitter.broken is False
