"""Logo art and startup animation frames."""

from __future__ import annotations

import os
from dataclasses import dataclass

XYTE_LOGO_LINES: tuple[str, ...] = (
    "██   ██ ██    ██ ████████ ███████",
    " ██ ██   ██  ██     ██    ██     ",
    "  ███     ████      ██    █████  ",
    " ██ ██     ██       ██    ██     ",
    "██   ██    ██       ██    ███████",
)

XYTE_LOGO_COMPACT = "XYTE"

STARTUP_TITLE = "XYTE SDK TUI"

BOOT_STATUS: tuple[str, ...] = (
    "Booting terminal shell...",
    "Loading tenant profile...",
    "Hydrating XYTE panels...",
)

_PULSE_CHARS = (".", "o", "O", "@", "O", "o")


@dataclass(frozen=True)
class StartupFrame:
    banner: str
    status: str
    title: str = STARTUP_TITLE


def xyte_logo_text() -> str:
    return "\n".join(XYTE_LOGO_LINES)


def logo_reveal_frames() -> list[str]:
    """The logo revealed one line at a time."""
    return ["\n".join(XYTE_LOGO_LINES[:i]) for i in range(1, len(XYTE_LOGO_LINES) + 1)]


def startup_frames() -> list[StartupFrame]:
    logos = logo_reveal_frames()
    count = max(len(logos), len(BOOT_STATUS))
    return [
        StartupFrame(
            banner=logos[min(i, len(logos) - 1)],
            status=BOOT_STATUS[min(i, len(BOOT_STATUS) - 1)],
        )
        for i in range(count)
    ]


def pulse_char(phase: int) -> str:
    return _PULSE_CHARS[abs(phase) % len(_PULSE_CHARS)]


def is_motion_enabled(headless: bool = False, explicit_motion: bool | None = None) -> bool:
    """``XYTE_TUI_REDUCED_MOTION=1`` wins; then an explicit flag; headless defaults to off."""
    if os.environ.get("XYTE_TUI_REDUCED_MOTION") == "1":
        return False
    if explicit_motion is not None:
        return explicit_motion
    return not headless
