"""
Headless frame protocol (``xyte.headless.frame.v1``).

One frame is one JSON object on one line (NDJSON)::

    {"schemaVersion":"xyte.headless.frame.v1","timestamp":"...","sessionId":"...",
     "sequence":7,"mode":"headless","screen":"devices","title":"Devices",...,
     "panels":[...],"meta":{"refreshState":"idle",...}}

``sessionId`` is fixed for a run and ``sequence`` starts at 0 and increases by
exactly one per emitted frame.  Frames with ``meta.startup`` are boot
animation; consumers should use the last frame without it.
"""

from __future__ import annotations

import errno
import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Literal, TextIO

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from xyte.core.constants import (
    HEADLESS_FRAME_SCHEMA_VERSION,
    NAVIGATION_MODE,
    PREVIEW_TRUNCATED_BANNER,
    TABLE_FORMAT,
)
from xyte.tui.navigation import SCREEN_PANE_CONFIG, TAB_ORDER, ScreenId
from xyte.tui.scene import Panel

FrameMode = Literal["headless", "interactive"]
OutputFormat = Literal["json", "text"]

OPTIONAL_META_KEYS = frozenset({"readiness", "connection", "retry", "blocking", "redirectedFrom"})

TEXT_TABLE_MAX_ROWS = 20


class Frame(BaseModel):
    """One emitted unit of screen state.  Immutable once built."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    schema_version: Literal["xyte.headless.frame.v1"] = HEADLESS_FRAME_SCHEMA_VERSION
    timestamp: str
    session_id: str
    sequence: int = Field(ge=0)
    mode: FrameMode = "headless"
    screen: ScreenId
    title: str
    status: str
    tenant_id: str | None = None
    motion_enabled: bool = False
    motion_phase: int = 0
    logo: str
    panels: list[Panel] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
            "sequence": self.sequence,
            "mode": self.mode,
            "screen": self.screen.value,
            "title": self.title,
            "status": self.status,
        }
        if self.tenant_id is not None:
            data["tenantId"] = self.tenant_id
        data.update(
            {
                "motionEnabled": self.motion_enabled,
                "motionPhase": self.motion_phase,
                "logo": self.logo,
                "panels": [panel.to_dict() for panel in self.panels],
                "meta": self.meta,
            }
        )
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# Meta helpers
# ---------------------------------------------------------------------------


def default_meta() -> dict[str, Any]:
    return {
        "inputState": "idle",
        "queueDepth": 0,
        "droppedEvents": 0,
        "transitionState": "idle",
        "refreshState": "idle",
        "navigationMode": NAVIGATION_MODE,
        "availablePanes": [],
        "activePane": "",
        "tabNavBoundary": None,
        "renderSafety": "ok",
        "tableFormat": TABLE_FORMAT,
        "contract": {
            "frameVersion": HEADLESS_FRAME_SCHEMA_VERSION,
            "tableFormat": TABLE_FORMAT,
            "navigationMode": NAVIGATION_MODE,
        },
    }


def navigation_meta(screen: ScreenId | str, **overrides: Any) -> dict[str, Any]:
    """Tab and pane meta for ``screen`` (default pane focused), merged with ``overrides``."""
    screen_id = ScreenId(screen)
    panes = SCREEN_PANE_CONFIG[screen_id]
    meta: dict[str, Any] = {
        "tableFormat": TABLE_FORMAT,
        "tabId": screen_id.value,
        "tabOrder": [s.value for s in TAB_ORDER],
        "tabNavBoundary": None,
        "renderSafety": "ok",
        "activePane": panes.default_pane,
        "availablePanes": list(panes.panes),
        "navigationMode": NAVIGATION_MODE,
    }
    meta.update(overrides)
    return meta


def infer_render_safety(panels: list[Panel]) -> Literal["ok", "truncated"]:
    for panel in panels:
        if panel.text is None:
            continue
        for line in panel.text.lines:
            if PREVIEW_TRUNCATED_BANNER in line or "[Truncated]" in line:
                return "truncated"
    return "ok"


def refresh_state_for(connection_state: str, retried: bool = False) -> Literal["idle", "retrying", "error"]:
    if connection_state in ("connected", "not_checked"):
        return "idle"
    return "retrying" if retried else "error"


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_frame(
    *,
    session_id: str,
    sequence: int,
    screen: ScreenId | str,
    title: str,
    status: str,
    logo: str,
    panels: list[Panel],
    tenant_id: str | None = None,
    motion_enabled: bool = False,
    motion_phase: int = 0,
    mode: FrameMode = "headless",
    meta: dict[str, Any] | None = None,
) -> Frame:
    """Build a frame; ``meta`` is layered over the default runtime meta."""
    merged = default_meta()
    for key, value in (meta or {}).items():
        if value is None and key in OPTIONAL_META_KEYS:
            continue
        merged[key] = value
    return Frame(
        timestamp=_utc_timestamp(),
        session_id=session_id,
        sequence=sequence,
        mode=mode,
        screen=ScreenId(screen),
        title=title,
        status=status,
        tenant_id=tenant_id,
        motion_enabled=motion_enabled,
        motion_phase=motion_phase,
        logo=logo,
        panels=panels,
        meta=merged,
    )


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def _panel_to_text(panel: Panel) -> str:
    lines = [f"== {panel.title} =="]
    if panel.status:
        lines.append(f"[{panel.status}]")
    if panel.stats is not None:
        lines.extend(f"{stat.label}: {stat.value}" for stat in panel.stats)
    if panel.table is not None:
        header = " | ".join(panel.table.columns)
        lines.append(header)
        lines.append("-" * min(100, len(header)))
        for row in panel.table.rows[:TEXT_TABLE_MAX_ROWS]:
            lines.append(" | ".join(str(cell) for cell in row))
        if len(panel.table.rows) > TEXT_TABLE_MAX_ROWS:
            lines.append(f"... {len(panel.table.rows) - TEXT_TABLE_MAX_ROWS} more rows")
    if panel.text is not None:
        lines.extend(panel.text.lines)
    return "\n".join(lines)


def render_frame_as_text(frame: Frame) -> str:
    sections = [
        frame.logo,
        f"Contract: {frame.schema_version}",
        f"Session: {frame.session_id} #{frame.sequence}",
        f"Screen: {frame.screen.value}",
        f"Title: {frame.title}",
        f"Status: {frame.status}",
        f"Tenant: {frame.tenant_id or 'none'}",
        f"Motion: {'on' if frame.motion_enabled else 'off'} (phase={frame.motion_phase})",
    ]
    sections.extend(_panel_to_text(panel) for panel in frame.panels)
    return "\n\n".join(sections)


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


class FrameEmitter:
    """
    Owns the session id and sequence counter and writes frames to ``output``.

    A closed reader (broken pipe) is normal termination: the emitter flips to
    ``broken`` and every later write is a no-op returning False.  Other write
    errors propagate.
    """

    def __init__(
        self,
        output: TextIO,
        session_id: str | None = None,
        format: OutputFormat = "json",
        logger: logging.Logger | None = None,
    ) -> None:
        self.output = output
        self.session_id = session_id or str(uuid.uuid4())
        self.format = format
        self._logger = logger or logging.getLogger(__name__)
        self._sequence = 0
        self._broken = False
        self.emitted = 0

    @property
    def broken(self) -> bool:
        return self._broken

    def next_sequence(self) -> int:
        current = self._sequence
        self._sequence += 1
        return current

    def emit(self, frame: Frame) -> bool:
        if self._broken:
            return False
        if self.format == "text":
            text = render_frame_as_text(frame) + "\n\n"
        else:
            text = frame.to_json() + "\n"
        try:
            self.output.write(text)
            self.output.flush()
        except BrokenPipeError:
            self._mark_broken()
            return False
        except OSError as exc:
            if exc.errno != errno.EPIPE:
                raise
            self._mark_broken()
            return False
        self.emitted += 1
        return True

    def _mark_broken(self) -> None:
        self._broken = True
        self._logger.debug("Frame output closed by reader; stopping emission")
