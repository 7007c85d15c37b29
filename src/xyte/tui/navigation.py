"""Screens, tab order, and pane focus movement."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

Direction = Literal["left", "right"]


class ScreenId(StrEnum):
    SETUP = "setup"
    CONFIG = "config"
    DASHBOARD = "dashboard"
    SPACES = "spaces"
    DEVICES = "devices"
    INCIDENTS = "incidents"
    TICKETS = "tickets"
    COPILOT = "copilot"


TAB_ORDER: tuple[ScreenId, ...] = (
    ScreenId.SETUP,
    ScreenId.CONFIG,
    ScreenId.DASHBOARD,
    ScreenId.SPACES,
    ScreenId.DEVICES,
    ScreenId.INCIDENTS,
    ScreenId.TICKETS,
    ScreenId.COPILOT,
)


@dataclass(frozen=True)
class ScreenPaneConfig:
    panes: tuple[str, ...]

    @property
    def default_pane(self) -> str:
        return self.panes[0]


SCREEN_PANE_CONFIG: dict[ScreenId, ScreenPaneConfig] = {
    ScreenId.SETUP: ScreenPaneConfig(("providers-table", "checklist-box")),
    ScreenId.CONFIG: ScreenPaneConfig(("providers-table", "slots-table", "actions-box")),
    ScreenId.DASHBOARD: ScreenPaneConfig(("kpi", "provider", "incidents", "tickets")),
    ScreenId.SPACES: ScreenPaneConfig(("spaces-table", "detail-box", "devices-table")),
    ScreenId.DEVICES: ScreenPaneConfig(("devices-table", "detail-box")),
    ScreenId.INCIDENTS: ScreenPaneConfig(("incidents-table", "detail-box", "triage-box")),
    ScreenId.TICKETS: ScreenPaneConfig(("tickets-table", "detail-box", "draft-box")),
    ScreenId.COPILOT: ScreenPaneConfig(("prompt-input", "provider-box", "output-box")),
}


def next_tab(current: ScreenId | str, direction: Direction) -> ScreenId:
    """Wrap-around tab movement.  Unknown screens count as the first tab."""
    try:
        index = TAB_ORDER.index(ScreenId(current))
    except ValueError:
        index = 0
    delta = -1 if direction == "left" else 1
    return TAB_ORDER[(index + delta) % len(TAB_ORDER)]


def move_pane_with_boundary(panes: tuple[str, ...], active_pane: str, direction: Direction) -> tuple[str, bool]:
    """Move focus one pane left/right without wrapping; returns ``(pane, hit_boundary)``."""
    if not panes:
        return active_pane, True
    current = panes.index(active_pane) if active_pane in panes else 0
    if direction == "left":
        if current <= 0:
            return panes[0], True
        return panes[current - 1], False
    if current >= len(panes) - 1:
        return panes[-1], True
    return panes[current + 1], False


def clamp_index(index: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(index, total - 1))
