"""Cell formatting for compact-v1 tables: sanitizing, ellipsizing, and short ids."""

from __future__ import annotations

import math
import re
from typing import Any, Literal

EllipsisMode = Literal["middle", "end"]

ELLIPSIS = "…"

_LINE_BREAKS_RE = re.compile(r"[\r\n\t]+")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]+")
_WHITESPACE_RUN_RE = re.compile(r"\s{2,}")

_TRUTHY_TAGS = frozenset({"yes", "true", "1", "active", "on"})


def sanitize_printable(value: Any) -> str:
    """Render ``value`` as a single printable line; empty or None becomes ``n/a``."""
    if value is None:
        return "n/a"
    text = _LINE_BREAKS_RE.sub(" ", str(value))
    text = _CONTROL_RE.sub("", text)
    text = _WHITESPACE_RUN_RE.sub(" ", text).strip()
    return text or "n/a"


def ellipsize_end(value: Any, width: int) -> str:
    text = sanitize_printable(value)
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width == 1:
        return ELLIPSIS
    return text[: width - 1] + ELLIPSIS


def ellipsize_middle(value: Any, width: int) -> str:
    """Keep both ends of ``value``: ``ellipsize_middle("abcdefghijklmnopqrstuvwxyz", 10) == "abcde…wxyz"``."""
    text = sanitize_printable(value)
    if len(text) <= width:
        return text
    if width <= 1:
        return ELLIPSIS
    if width < 3:
        return ellipsize_end(text, width)
    body = width - 1
    head = math.ceil(body / 2)
    tail = body - head
    return text[:head] + ELLIPSIS + text[len(text) - tail :]


def fit_cell(value: Any, width: int, mode: EllipsisMode = "end") -> str:
    if mode == "middle":
        return ellipsize_middle(value, width)
    return ellipsize_end(value, width)


def format_bool_tag(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    return "yes" if sanitize_printable(value).lower() in _TRUTHY_TAGS else "no"


def short_id(value: Any, head: int = 6, tail: int = 4) -> str:
    text = sanitize_printable(value)
    if len(text) <= head + tail + 1:
        return text
    return text[:head] + ELLIPSIS + text[len(text) - tail :]
