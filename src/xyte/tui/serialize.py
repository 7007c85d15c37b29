"""
Safe serializer for vendor payloads.

API responses are arbitrary JSON-ish structures: possibly huge, possibly deep,
and (once normalized into Python objects) possibly cyclic.  Everything that
reaches a panel goes through ``safe_inspect()``, which bounds depth, breadth
and output size, and never raises.

Markers written into the output::

    [Circular]              container re-encountered on its own ancestor path
    [DepthLimit]            nesting deeper than max_depth
    [Truncated N items]     sequence longer than max_array_items
    "[Truncated]": "N keys omitted"
    [Function]              callables
    \\n[Truncated]           appended when the text is cut at max_output_chars
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from xyte.core.constants import PREVIEW_TRUNCATED_BANNER

DEFAULT_MAX_DEPTH = 6
DEFAULT_MAX_ARRAY_ITEMS = 50
DEFAULT_MAX_OBJECT_KEYS = 80
DEFAULT_MAX_OUTPUT_CHARS = 40_000
SEARCH_MAX_OUTPUT_CHARS = 20_000
SUMMARY_MAX_OUTPUT_CHARS = 8_000


@dataclass(frozen=True)
class SafeInspectResult:
    text: str
    truncated: bool
    approx_size: int
    key_count: int


@dataclass
class _InspectState:
    max_depth: int
    max_array_items: int
    max_object_keys: int
    ancestors: set[int] = field(default_factory=set)
    truncated: bool = False
    approx_size: int = 0
    key_count: int = 0


def _sanitize(value: Any, depth: int, state: _InspectState) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, bool, int, float)):
        state.approx_size += len(str(value))
        return value
    if isinstance(value, (bytes, bytearray)):
        state.approx_size += len(value)
        return f"<{len(value)} bytes>"
    if not isinstance(value, (Mapping, list, tuple, set, frozenset)):
        if callable(value):
            state.truncated = True
            return "[Function]"
        try:
            text = str(value)
        except Exception:  # noqa: BLE001
            state.truncated = True
            return f"<{type(value).__name__}>"
        state.approx_size += len(text)
        return text

    marker = id(value)
    if marker in state.ancestors:
        state.truncated = True
        return "[Circular]"
    if depth >= state.max_depth:
        state.truncated = True
        return "[DepthLimit]"

    state.ancestors.add(marker)
    try:
        if isinstance(value, Mapping):
            keys = list(value.keys())
            limit = min(len(keys), state.max_object_keys)
            result: dict[str, Any] = {}
            for key in keys[:limit]:
                name = str(key)
                state.key_count += 1
                state.approx_size += len(name)
                result[name] = _sanitize(value[key], depth + 1, state)
            if len(keys) > limit:
                state.truncated = True
                result["[Truncated]"] = f"{len(keys) - limit} keys omitted"
            return result

        items = list(value)
        limit = min(len(items), state.max_array_items)
        out = [_sanitize(item, depth + 1, state) for item in items[:limit]]
        if len(items) > limit:
            state.truncated = True
            out.append(f"[Truncated {len(items) - limit} items]")
        return out
    finally:
        state.ancestors.discard(marker)


def safe_inspect(
    value: Any,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_array_items: int = DEFAULT_MAX_ARRAY_ITEMS,
    max_object_keys: int = DEFAULT_MAX_OBJECT_KEYS,
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
    compact: bool = False,
) -> SafeInspectResult:
    """Render ``value`` as bounded JSON text.  Never raises."""
    state = _InspectState(
        max_depth=max_depth,
        max_array_items=max_array_items,
        max_object_keys=max_object_keys,
    )
    indent = None if compact else 2
    separators = (",", ":") if compact else None
    try:
        sanitized = _sanitize(value, 0, state)
        text = json.dumps(sanitized, indent=indent, separators=separators, ensure_ascii=False)
    except Exception as exc:  # noqa: BLE001
        state.truncated = True
        text = json.dumps(
            {"error": f"Serialization failed: {exc}"}, indent=indent, separators=separators
        )

    if len(text) > max_output_chars:
        state.truncated = True
        text = text[:max_output_chars] + "\n[Truncated]"

    return SafeInspectResult(
        text=text,
        truncated=state.truncated,
        approx_size=state.approx_size,
        key_count=state.key_count,
    )


def payload_summary(value: Any) -> dict[str, Any]:
    inspected = safe_inspect(value, compact=True, max_output_chars=SUMMARY_MAX_OUTPUT_CHARS)
    if value is None:
        kind = "null"
    elif isinstance(value, (list, tuple, set, frozenset)):
        kind = "array"
    elif isinstance(value, Mapping):
        kind = "object"
    elif isinstance(value, bool):
        kind = "boolean"
    elif isinstance(value, (int, float)):
        kind = "number"
    elif isinstance(value, str):
        kind = "string"
    else:
        kind = type(value).__name__
    return {
        "kind": kind,
        "approx_size": inspected.approx_size,
        "key_count": inspected.key_count,
        "truncated": inspected.truncated,
    }


def _first_present(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def summarize_object(value: Any) -> list[str]:
    """A few identifying lines for a record (id, name, status, severity, device)."""
    if not isinstance(value, Mapping):
        return []
    fields = (
        ("id", ("id", "_id", "uuid")),
        ("name", ("name", "title", "subject")),
        ("status", ("status", "state")),
        ("severity", ("severity", "priority")),
        ("device", ("device_id", "deviceId")),
    )
    lines = []
    for label, keys in fields:
        found = _first_present(value, *keys)
        if found is not None:
            lines.append(f"{label}: {found}")
    return lines


def safe_lines(value: Any, **options: Any) -> tuple[list[str], bool]:
    """``safe_inspect`` split into lines; returns ``(lines, truncated)``."""
    inspected = safe_inspect(value, **options)
    return inspected.text.split("\n"), inspected.truncated


def safe_preview_lines(value: Any, **options: Any) -> tuple[list[str], bool]:
    """Like ``safe_lines`` but prefixes the stability banner and a summary when truncated."""
    lines, truncated = safe_lines(value, **options)
    if not truncated:
        return lines, False
    return [PREVIEW_TRUNCATED_BANNER, *summarize_object(value), *lines], True


def safe_search_text(value: Any, **options: Any) -> str:
    """Lowercased compact rendering used for filtering rows."""
    merged = {"compact": True, "max_output_chars": SEARCH_MAX_OUTPUT_CHARS, **options}
    return safe_inspect(value, **merged).text.lower()
