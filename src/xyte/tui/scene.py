"""
Scene builders: pure functions from screen state to panels.

Every builder is deterministic: same state in, same panels out.  Vendor
records are read defensively (absent, null and non-scalar fields are treated
as missing), tables go through the table formatter, and detail previews go
through the safe serializer so a hostile payload cannot blow up a frame.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from xyte.tui.data_loaders import Record, normalize_record
from xyte.tui.navigation import clamp_index
from xyte.tui.serialize import safe_preview_lines
from xyte.tui.table_format import fit_cell, format_bool_tag, sanitize_printable, short_id

PanelKind = Literal["stats", "table", "text"]
Cell = str | int

# ---------------------------------------------------------------------------
# Panel model
# ---------------------------------------------------------------------------


class SceneStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: Cell


class SceneTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    columns: list[str]
    rows: list[list[Cell]]


class SceneText(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: list[str]


class Panel(BaseModel):
    """One panel.  Exactly the payload matching ``kind`` is set."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    kind: PanelKind
    stats: list[SceneStat] | None = None
    table: SceneTable | None = None
    text: SceneText | None = None
    status: str | None = None

    @model_validator(mode="after")
    def check_payload_matches_kind(self) -> Panel:
        present = {
            name for name in ("stats", "table", "text") if getattr(self, name) is not None
        }
        if present != {self.kind}:
            raise ValueError(f"Panel {self.id!r} of kind {self.kind!r} has payloads {sorted(present)}")
        return self

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def stats_panel(panel_id: str, title: str, stats: Sequence[tuple[str, Cell]], status: str | None = None) -> Panel:
    return Panel(
        id=panel_id,
        title=title,
        kind="stats",
        stats=[SceneStat(label=label, value=value) for label, value in stats],
        status=status,
    )


def table_panel(
    panel_id: str,
    title: str,
    columns: list[str],
    rows: list[list[Cell]],
    status: str | None = None,
) -> Panel:
    return Panel(id=panel_id, title=title, kind="table", table=SceneTable(columns=columns, rows=rows), status=status)


def text_panel(panel_id: str, title: str, lines: list[str], status: str | None = None) -> Panel:
    return Panel(id=panel_id, title=title, kind="text", text=SceneText(lines=lines), status=status)


# ---------------------------------------------------------------------------
# Screen state inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DashboardSceneState:
    devices: list[Any]
    incidents: list[Any]
    tickets: list[Any]
    tenant_id: str | None = None
    provider: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class DevicesSceneState:
    devices: list[Any]
    tenant_id: str | None = None
    search_text: str = ""
    selected_index: int = 0


@dataclass(frozen=True)
class IncidentsSceneState:
    incidents: list[Any]
    tenant_id: str | None = None
    severity_filter: str = ""
    selected_index: int = 0
    triage_text: str | None = None


@dataclass(frozen=True)
class TicketsSceneState:
    tickets: list[Any]
    mode: Literal["organization", "partner"] = "organization"
    tenant_id: str | None = None
    search_text: str = ""
    selected_index: int = 0
    detail_text: str | None = None
    draft_text: str | None = None


@dataclass(frozen=True)
class SpacesSceneState:
    spaces: list[Any]
    tenant_id: str | None = None
    search_text: str = ""
    selected_index: int = 0
    loading: bool = False
    pane_status: str = ""
    space_detail: Any = None
    devices_in_space: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class CopilotSceneState:
    tenant_id: str | None = None
    provider: str | None = None
    model: str | None = None
    logs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderRow:
    provider: str
    slot_count: int
    active_slot: str
    has_secret: bool
    last_validated_at: str | None = None


@dataclass(frozen=True)
class SlotRow:
    provider: str
    slot_id: str
    name: str
    active: bool
    has_secret: bool
    fingerprint: str


@dataclass(frozen=True)
class SetupSceneState:
    readiness_state: str
    connection_state: str
    tenant_id: str | None = None
    missing_items: list[str] = field(default_factory=list)
    recommended_actions: list[str] = field(default_factory=list)
    provider_rows: list[ProviderRow] = field(default_factory=list)


@dataclass(frozen=True)
class ConfigSceneState:
    tenant_id: str | None = None
    provider_rows: list[ProviderRow] = field(default_factory=list)
    selected_provider: str | None = None
    slot_rows: list[SlotRow] = field(default_factory=list)
    selected_slot: SlotRow | None = None
    doctor_status: str | None = None


# ---------------------------------------------------------------------------
# Record field access
# ---------------------------------------------------------------------------


def _field(record: Record, *keys: str) -> Any:
    """First present scalar among ``keys``."""
    for key in keys:
        value = record.get(key)
        if isinstance(value, (str, int, float)):
            return value
    return None


def _nested(record: Record, outer: str, inner: str) -> Any:
    value = record.get(outer)
    if isinstance(value, Mapping):
        return _field(dict(value), inner)
    return None


def _or(value: Any, default: str) -> Any:
    return default if value is None else value


def _row_id(record: Record, index: int) -> str:
    return str(_or(_field(record, "id", "_id", "uuid", "device_id"), f"row-{index + 1}"))


def _row_name(record: Record) -> str:
    return str(_or(_field(record, "name", "title", "subject", "status"), "n/a"))


def _row_status(record: Record) -> str:
    return str(_or(_field(record, "status", "state", "online_status"), "unknown"))


def _space_id(record: Record, index: int) -> str:
    return str(_or(_field(record, "id", "space_id", "_id", "uuid"), f"space-{index + 1}"))


def _records(items: list[Any]) -> list[Record]:
    return [normalize_record(item) for item in items]


def _detail_block(lines: list[str], preview: list[str] | None) -> list[str]:
    if preview is None:
        return lines
    return [*lines, "", "Preview:", *preview]


def _preview(value: Any) -> list[str]:
    lines, _ = safe_preview_lines(value)
    return lines


SETUP_ACTION_LINES = [
    "Interactive actions:",
    "- a add tenant",
    "- u use tenant",
    "- k add key slot",
    "- p set active slot",
    "- c test connectivity",
    "- r refresh",
    "Global keys: [ ] switch tab, 1-8 jump, r refresh, ? help, q quit",
]

CONFIG_ACTION_LINES = [
    "Interactive actions:",
    "- j/k select slot",
    "- u use selected slot",
    "- c doctor",
    "- r refresh",
    "Global keys: [ ] switch tab, 1-8 jump, r refresh, ? help, q quit",
]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def scene_from_dashboard_state(state: DashboardSceneState) -> list[Panel]:
    incidents = _records(state.incidents)
    tickets = _records(state.tickets)
    return [
        stats_panel(
            "dashboard-kpis",
            "KPI",
            [
                ("Tenant", state.tenant_id or "none"),
                ("Devices", len(state.devices)),
                ("Open incidents", len(incidents)),
                ("Open tickets", len(tickets)),
            ],
        ),
        text_panel(
            "dashboard-provider",
            "Provider Status",
            [
                f"Provider override: {state.provider or 'none'}",
                f"Model override: {state.model or 'none'}",
                "Copilot outputs are advisory only.",
            ],
        ),
        table_panel(
            "dashboard-incidents",
            "Recent Incidents",
            ["ID", "Name", "State"],
            [
                [short_id(_row_id(r, i)), fit_cell(_row_name(r), 26), fit_cell(_row_status(r), 10)]
                for i, r in enumerate(incidents[:6])
            ],
        ),
        table_panel(
            "dashboard-tickets",
            "Recent Tickets",
            ["ID", "Subject", "State"],
            [
                [short_id(_row_id(r, i)), fit_cell(_row_name(r), 26), fit_cell(_row_status(r), 10)]
                for i, r in enumerate(tickets[:6])
            ],
        ),
    ]


def scene_from_devices_state(state: DevicesSceneState) -> list[Panel]:
    devices = _records(state.devices)
    index = clamp_index(state.selected_index, len(devices))
    if devices:
        selected = devices[index]
        detail = _detail_block(
            [
                f"ID: {sanitize_printable(_field(selected, 'id', '_id', 'uuid'))}",
                f"Name: {sanitize_printable(_field(selected, 'name', 'title'))}",
                f"State: {sanitize_printable(_or(_field(selected, 'status', 'state', 'online_status'), 'unknown'))}",
                f"Space: {sanitize_printable(_field(selected, 'space_name', 'space_id'))}",
            ],
            _preview(selected),
        )
    else:
        detail = ["No matching devices."]

    return [
        table_panel(
            "devices-table",
            "Devices",
            ["ID", "Name", "State", "Space"],
            [
                [
                    short_id(_row_id(r, i)),
                    fit_cell(_row_name(r), 24),
                    fit_cell(_row_status(r), 10),
                    fit_cell(_field(r, "space_name", "space_id"), 20),
                ]
                for i, r in enumerate(devices)
            ],
            status=f"filter={state.search_text}" if state.search_text else "filter=none",
        ),
        text_panel("devices-detail", "Device Detail", detail),
    ]


def scene_from_incidents_state(state: IncidentsSceneState) -> list[Panel]:
    incidents = _records(state.incidents)
    index = clamp_index(state.selected_index, len(incidents))
    if incidents:
        selected = incidents[index]
        device = _or(_field(selected, "device_id"), _nested(selected, "device", "id"))
        detail = _detail_block(
            [
                f"ID: {sanitize_printable(_field(selected, 'id', '_id', 'uuid'))}",
                f"Sev: {sanitize_printable(_or(_field(selected, 'severity', 'priority'), 'unknown'))}",
                f"State: {sanitize_printable(_or(_field(selected, 'status', 'state'), 'unknown'))}",
                f"Device: {sanitize_printable(device)}",
            ],
            _preview(selected),
        )
    else:
        detail = ["No incidents."]

    rows: list[list[Cell]] = []
    for i, r in enumerate(incidents):
        device = _or(_field(r, "device_id"), _nested(r, "device", "id"))
        rows.append(
            [
                short_id(_row_id(r, i)),
                fit_cell(_or(_field(r, "severity", "priority"), "unknown"), 7),
                fit_cell(_row_status(r), 10),
                short_id(device),
            ]
        )

    return [
        table_panel(
            "incidents-table",
            "Incidents",
            ["ID", "Sev", "State", "Device"],
            rows,
            status=f"severity={state.severity_filter}" if state.severity_filter else "severity=all",
        ),
        text_panel("incidents-detail", "Incident Detail", detail),
        text_panel(
            "incidents-triage",
            "Triage",
            state.triage_text.split("\n") if state.triage_text else ["No triage notes for this incident."],
        ),
    ]


def scene_from_tickets_state(state: TicketsSceneState) -> list[Panel]:
    tickets = _records(state.tickets)
    index = clamp_index(state.selected_index, len(tickets))
    selected = tickets[index] if tickets else None

    summary: list[str] = []
    if selected is not None:
        summary = [
            f"ID: {sanitize_printable(_field(selected, 'id', '_id'))}",
            f"State: {sanitize_printable(_or(_field(selected, 'status', 'state'), 'unknown'))}",
            f"Pri: {sanitize_printable(_field(selected, 'priority'))}",
            f"Subject: {sanitize_printable(_field(selected, 'subject', 'title'))}",
            "",
        ]
    if state.detail_text:
        detail = [*summary, *state.detail_text.split("\n")]
    elif selected is not None:
        detail = _detail_block(summary, _preview(selected))
    else:
        detail = ["No tickets."]

    status = f"mode={state.mode}"
    if state.search_text:
        status += f" filter={state.search_text}"

    return [
        table_panel(
            "tickets-table",
            "Tickets",
            ["ID", "State", "Pri", "Subject"],
            [
                [
                    short_id(_row_id(r, i)),
                    fit_cell(_row_status(r), 10),
                    fit_cell(_field(r, "priority"), 6),
                    fit_cell(_field(r, "subject", "title"), 28),
                ]
                for i, r in enumerate(tickets)
            ],
            status=status,
        ),
        text_panel("tickets-detail", "Ticket Detail", detail),
        text_panel(
            "tickets-draft",
            "Draft Tool",
            state.draft_text.split("\n") if state.draft_text else ["No draft for this ticket."],
        ),
    ]


def scene_from_spaces_state(state: SpacesSceneState) -> list[Panel]:
    spaces = _records(state.spaces)
    index = clamp_index(state.selected_index, len(spaces))
    if spaces:
        selected = spaces[index]
        preview_source = state.space_detail if state.space_detail is not None else selected
        detail = _detail_block(
            [
                f"ID: {sanitize_printable(_space_id(selected, index))}",
                f"Name: {sanitize_printable(_field(selected, 'name', 'title'))}",
                f"Type: {sanitize_printable(_field(selected, 'space_type', 'type'))}",
                f"Path: {sanitize_printable(_field(selected, 'path', 'full_path'))}",
            ],
            _preview(preview_source),
        )
    else:
        detail = ["No spaces."]

    devices = _records(state.devices_in_space)
    return [
        table_panel(
            "spaces-list",
            "Spaces",
            ["ID", "Name", "Type", "Path"],
            [
                [
                    short_id(_row_id(r, i)),
                    fit_cell(_row_name(r), 22),
                    fit_cell(_field(r, "space_type", "type"), 10),
                    fit_cell(_field(r, "path", "full_path"), 28),
                ]
                for i, r in enumerate(spaces)
            ],
            status=f"filter={state.search_text}" if state.search_text else "filter=none",
        ),
        text_panel("spaces-detail", "Space Detail", detail, status="loading=1" if state.loading else "loading=0"),
        table_panel(
            "spaces-devices",
            "Devices In Space",
            ["ID", "Name", "State"],
            [
                [short_id(_row_id(r, i)), fit_cell(_row_name(r), 24), fit_cell(_row_status(r), 10)]
                for i, r in enumerate(devices)
            ],
            status=state.pane_status,
        ),
    ]


def scene_from_copilot_state(state: CopilotSceneState) -> list[Panel]:
    return [
        text_panel(
            "copilot-status",
            "Provider",
            [
                f"Provider override: {state.provider or 'none'}",
                f"Model override: {state.model or 'none'}",
                f"Tenant: {state.tenant_id or 'none'}",
            ],
        ),
        text_panel(
            "copilot-log",
            "Output",
            list(state.logs)
            or ["This view is a read-only snapshot of the current copilot log."],
        ),
    ]


def scene_from_setup_state(state: SetupSceneState) -> list[Panel]:
    checklist: list[str] = []
    if state.missing_items:
        checklist.append("Missing:")
        checklist.extend(f"- {item}" for item in state.missing_items)
    else:
        checklist.append("No missing setup items.")
    checklist.append("")
    checklist.append("Recommended actions:" if state.recommended_actions else "No recommendations.")
    checklist.extend(f"- {item}" for item in state.recommended_actions)
    checklist.append("")
    checklist.extend(SETUP_ACTION_LINES)

    return [
        stats_panel(
            "setup-overview",
            "Setup Readiness",
            [
                ("Readiness", state.readiness_state),
                ("Tenant", state.tenant_id or "none"),
                ("Connection", state.connection_state),
            ],
        ),
        table_panel(
            "setup-providers",
            "Provider Slots",
            ["Provider", "Slots", "Active Slot", "Has Secret"],
            [
                [fit_cell(row.provider, 20), row.slot_count, short_id(row.active_slot), format_bool_tag(row.has_secret)]
                for row in state.provider_rows
            ],
        ),
        text_panel("setup-checklist", "Checklist", checklist),
    ]


def scene_from_config_state(state: ConfigSceneState) -> list[Panel]:
    slot = state.selected_slot
    actions = [
        f"Tenant: {state.tenant_id or 'none'}",
        f"Provider: {state.selected_provider or 'none'}",
        f"Doctor: {state.doctor_status or 'not run'}",
        "",
    ]
    if slot is not None:
        actions.extend(
            [
                "Selected slot:",
                f"- Provider: {slot.provider}",
                f"- Slot: {slot.name} ({slot.slot_id})",
                f"- Fingerprint: {slot.fingerprint}",
                f"- Active: {format_bool_tag(slot.active)}",
                f"- Secret stored: {format_bool_tag(slot.has_secret)}",
                "",
            ]
        )
    else:
        actions.extend(["Selected slot: none", ""])
    actions.extend(CONFIG_ACTION_LINES)

    return [
        table_panel(
            "config-providers",
            "Provider Health",
            ["Provider", "Slots", "Active Slot", "Has Secret", "Last Validated"],
            [
                [
                    fit_cell(row.provider, 16),
                    row.slot_count,
                    short_id(row.active_slot, head=4, tail=3),
                    format_bool_tag(row.has_secret),
                    fit_cell(row.last_validated_at, 18),
                ]
                for row in state.provider_rows
            ],
        ),
        table_panel(
            "config-slots",
            "Key Slots",
            ["Provider", "Slot", "Active", "Secret"],
            [
                [
                    fit_cell(row.provider, 16),
                    fit_cell(f"{row.name} ({short_id(row.slot_id, head=4, tail=3)})", 26),
                    format_bool_tag(row.active),
                    format_bool_tag(row.has_secret),
                ]
                for row in state.slot_rows
            ],
        ),
        text_panel("config-actions", "Actions", actions),
    ]
