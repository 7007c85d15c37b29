"""
Interactive terminal app.

The app renders the same scenes as the headless renderer, drawn with ``rich``
instead of serialized.  Keys are read a line at a time from stdin (``v`` then
Enter opens Devices, ``/text`` filters, ``jjj`` moves the selection three rows)
and fed through the ``InputController``; every screen load goes through the
``ScreenRuntime`` so switching screens mid-refresh never shows stale data.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sys
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TextIO

from rich.console import Console
from rich.live import Live
from rich.text import Text

from xyte.cli._setup import DEFAULT_PROVIDER, DEFAULT_SLOT_NAME, normalize_tenant_id, store_tenant_key
from xyte.client.base import XyteClient
from xyte.core.constants import ERROR_STORM_THRESHOLD, ERROR_STORM_WINDOW_MS
from xyte.core.exceptions import XyteError
from xyte.core.log import TuiDebugLog
from xyte.core.readiness import (
    ReadinessCheck,
    ReadinessState,
    can_open_screen,
    evaluate_readiness,
)
from xyte.core.retry import RetryPolicy
from xyte.secure.keychain import KeychainStore
from xyte.secure.profile_store import ProfileStore
from xyte.tui.animation import XYTE_LOGO_COMPACT, pulse_char, startup_frames
from xyte.tui.data_loaders import LoadOutcome, Record, ScreenDataLoader, get_space_id
from xyte.tui.frames import Frame, create_frame, infer_render_safety, navigation_meta
from xyte.tui.headless import config_scene_state, setup_scene_state
from xyte.tui.input_controller import InputController, KeyEvent
from xyte.tui.navigation import (
    SCREEN_PANE_CONFIG,
    TAB_ORDER,
    Direction,
    ScreenId,
    clamp_index,
    move_pane_with_boundary,
    next_tab,
)
from xyte.tui.render import render_frame
from xyte.tui.runtime import (
    ErrorStormState,
    RefreshReason,
    ScreenRuntime,
    ScreenRuntimeStatus,
    update_error_storm_state,
)
from xyte.tui.scene import (
    ConfigSceneState,
    CopilotSceneState,
    DashboardSceneState,
    DevicesSceneState,
    IncidentsSceneState,
    Panel,
    SpacesSceneState,
    TicketsSceneState,
    scene_from_config_state,
    scene_from_copilot_state,
    scene_from_dashboard_state,
    scene_from_devices_state,
    scene_from_incidents_state,
    scene_from_setup_state,
    scene_from_spaces_state,
    scene_from_tickets_state,
    text_panel,
)
from xyte.tui.serialize import safe_search_text

SCREEN_KEYS: dict[str, ScreenId] = {
    "u": ScreenId.SETUP,
    "g": ScreenId.CONFIG,
    "d": ScreenId.DASHBOARD,
    "s": ScreenId.SPACES,
    "v": ScreenId.DEVICES,
    "i": ScreenId.INCIDENTS,
    "t": ScreenId.TICKETS,
    "p": ScreenId.COPILOT,
}

# Screen-local actions; on these screens they win over the global keys above.
SETUP_ACTION_KEYS = frozenset({"a", "u", "k", "p", "c"})
CONFIG_ACTION_KEYS = frozenset({"u", "c"})

Prompt = Callable[[str, str, bool], Awaitable[str | None]]

NAMED_KEYS = frozenset({"left", "right", "up", "down", "tab", "shift+tab", "enter", "ctrl+c", "help"})

# pane id → panel id, for focus highlighting
PANE_PANELS: dict[ScreenId, dict[str, str]] = {
    ScreenId.SETUP: {"providers-table": "setup-providers", "checklist-box": "setup-checklist"},
    ScreenId.CONFIG: {
        "providers-table": "config-providers",
        "slots-table": "config-slots",
        "actions-box": "config-actions",
    },
    ScreenId.DASHBOARD: {
        "kpi": "dashboard-kpis",
        "provider": "dashboard-provider",
        "incidents": "dashboard-incidents",
        "tickets": "dashboard-tickets",
    },
    ScreenId.SPACES: {
        "spaces-table": "spaces-list",
        "detail-box": "spaces-detail",
        "devices-table": "spaces-devices",
    },
    ScreenId.DEVICES: {"devices-table": "devices-table", "detail-box": "devices-detail"},
    ScreenId.INCIDENTS: {
        "incidents-table": "incidents-table",
        "detail-box": "incidents-detail",
        "triage-box": "incidents-triage",
    },
    ScreenId.TICKETS: {"tickets-table": "tickets-table", "detail-box": "tickets-detail", "draft-box": "tickets-draft"},
    ScreenId.COPILOT: {"provider-box": "copilot-status", "output-box": "copilot-log"},
}

HELP_LINES = [
    "[ / ] or left/right   switch tab",
    "1-8                   jump to tab",
    "u g d s v i t p       setup config dashboard spaces devices incidents tickets copilot",
    "tab / shift+tab       move pane focus (switches tab at the edge)",
    "j / k or down / up    move selection",
    "enter                 open selected space",
    "a u k p c             setup: add tenant, use tenant, add key slot, set active slot, test connectivity",
    "u c                   config: use selected slot, run doctor",
    "/text                 filter the current table (/ alone clears)",
    "r                     refresh",
    "?                     toggle this help",
    "q                     quit",
]


def parse_keys(line: str) -> list[str]:
    """Turn one input line into key names."""
    stripped = line.strip()
    if not stripped:
        return ["enter"]
    if stripped.startswith("/"):
        return [stripped]
    keys: list[str] = []
    for token in stripped.split():
        lowered = token.lower()
        if lowered in NAMED_KEYS:
            keys.append(lowered)
        elif token == "?":
            keys.append("help")
        else:
            keys.extend(token)
    return keys


class TuiApp:
    """
    Interactive screens over one ``ScreenRuntime`` and one ``InputController``.

    ``handle_key`` is the single entry point for input; tests drive it
    directly and use ``runtime.wait_idle()`` to settle refreshes.
    """

    def __init__(
        self,
        client: XyteClient,
        profile_store: ProfileStore,
        keychain: KeychainStore,
        console: Console | None = None,
        err_console: Console | None = None,
        logger: logging.Logger | None = None,
        debug_log: TuiDebugLog | None = None,
        retry_policy: RetryPolicy | None = None,
        tenant_id: str | None = None,
        initial_screen: ScreenId | str = ScreenId.DASHBOARD,
        motion_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        prompt: Prompt | None = None,
    ) -> None:
        self._client = client
        self._profile_store = profile_store
        self._keychain = keychain
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self._logger = logger or logging.getLogger(__name__)
        self.debug_log = debug_log or TuiDebugLog.disabled()
        self._retry_policy = retry_policy
        self._explicit_tenant_id = tenant_id
        self.initial_screen = ScreenId(initial_screen)
        self.motion_enabled = motion_enabled
        self._clock = clock
        self._prompt = prompt or self._read_prompt
        self._input_stream: TextIO | None = None

        self.session_id = str(uuid.uuid4())
        self._sequence = 0
        self._phase = 0

        self.screen = ScreenId.SETUP
        self.active_pane = SCREEN_PANE_CONFIG[ScreenId.SETUP].default_pane
        self.tab_boundary: str | None = None
        self.redirected_from: ScreenId | None = None
        self.transition_state = "idle"
        self.show_help = False
        self.status_message = "Starting..."

        self.tenant_id: str | None = tenant_id
        self.readiness: ReadinessCheck | None = None
        self.outcomes: dict[ScreenId, LoadOutcome[Any]] = {}
        self.config_state: ConfigSceneState | None = None
        self.space_drilldown: LoadOutcome[Any] | None = None
        self.selected: dict[ScreenId, int] = {}
        self.search: dict[ScreenId, str] = {}

        self.error_storm: ErrorStormState | None = None
        self.toasts: list[str] = []
        self.storm_reports: list[str] = []

        self._quit = asyncio.Event()
        self.runtime = ScreenRuntime(
            refresh=self._refresh_current,
            on_status=self._on_runtime_status,
            on_error=self._on_refresh_error,
            logger=self._logger,
        )
        self.input = InputController(handle=self.handle_key, on_error=self._on_refresh_error, logger=self._logger)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, input_stream: TextIO | None = None) -> None:
        """Show the startup animation, mount the first screen, then read keys until quit or EOF."""
        stream = input_stream or sys.stdin
        self._input_stream = stream
        loop = asyncio.get_running_loop()
        self.debug_log.log("app.start", {"session": self.session_id, "screen": self.initial_screen.value})
        await self._play_startup()
        await self.switch_screen(self.initial_screen)

        while not self._quit.is_set():
            line = await loop.run_in_executor(None, stream.readline)
            if not line:
                break
            for key in parse_keys(line):
                self.input.dispatch(KeyEvent(key))
            await self.input.drain()

        self.debug_log.log("app.stop", {"staleDiscarded": self.runtime.get_status().stale_discarded})

    async def quit(self) -> None:
        self._quit.set()

    @property
    def quitting(self) -> bool:
        return self._quit.is_set()

    async def _play_startup(self) -> None:
        if not self.motion_enabled:
            return
        with Live(console=self.console, transient=True, refresh_per_second=20) as live:
            for boot in startup_frames():
                live.update(Text(f"{boot.banner}\n\n{boot.title}  {boot.status}", style="bold cyan"))
                await asyncio.sleep(0.08)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def switch_screen(self, screen: ScreenId | str, boundary: str | None = None) -> None:
        target = ScreenId(screen)
        redirected_from = None
        if self.readiness is not None and not can_open_screen(target, self.readiness):
            redirected_from = target
            target = ScreenId.SETUP

        self.transition_state = "switching"
        self.debug_log.log(
            "ui.screen.switch",
            {"from": self.screen.value, "to": target.value, "redirectedFrom": redirected_from},
        )
        self.runtime.cancel_pending_for_unmount()
        self.screen = target
        self.active_pane = SCREEN_PANE_CONFIG[target].default_pane
        self.redirected_from = redirected_from
        self.tab_boundary = boundary
        self.space_drilldown = None
        self.status_message = f"Loading {target.value}..."
        self.runtime.run_refresh(RefreshReason.MOUNT)
        self.transition_state = "idle"
        self.redraw()

    async def handle_key(self, event: KeyEvent) -> None:
        key = event.key
        self.debug_log.log("ui.key", {"key": key, "screen": self.screen.value})

        if key in ("q", "ctrl+c"):
            await self.quit()
            return
        if key == "help":
            self.show_help = not self.show_help
        elif key.startswith("/"):
            self.search[self.screen] = key[1:].strip()
            self.selected[self.screen] = 0
        elif self.screen == ScreenId.SETUP and key in SETUP_ACTION_KEYS:
            await self._run_action(self._setup_action, key)
            return
        elif self.screen == ScreenId.CONFIG and key in CONFIG_ACTION_KEYS:
            await self._run_action(self._config_action, key)
            return
        elif key in SCREEN_KEYS:
            await self.switch_screen(SCREEN_KEYS[key])
            return
        elif key.isdigit() and 1 <= int(key) <= len(TAB_ORDER):
            await self.switch_screen(TAB_ORDER[int(key) - 1])
            return
        elif key in ("[", "left", "]", "right"):
            await self.switch_screen(next_tab(self.screen, "left" if key in ("[", "left") else "right"))
            return
        elif key in ("tab", "shift+tab"):
            await self._move_pane("right" if key == "tab" else "left")
            return
        elif key in ("j", "down", "k", "up"):
            self._move_selection(1 if key in ("j", "down") else -1)
        elif key == "r":
            self.runtime.run_refresh(RefreshReason.MANUAL)
        elif key == "enter" and self.screen == ScreenId.SPACES:
            self.runtime.run_refresh(RefreshReason.MANUAL)
        else:
            self._logger.debug("Unbound key %r", key)
        self.redraw()

    async def _move_pane(self, direction: Direction) -> None:
        panes = SCREEN_PANE_CONFIG[self.screen].panes
        pane, at_boundary = move_pane_with_boundary(panes, self.active_pane, direction)
        if at_boundary:
            await self.switch_screen(next_tab(self.screen, direction), boundary=direction)
            return
        self.active_pane = pane
        self.tab_boundary = None
        self.redraw()

    def _move_selection(self, delta: int) -> None:
        if self.screen == ScreenId.CONFIG:
            total = len(self._config_view().slot_rows)
        else:
            total = len(self._visible_records(self.screen))
        self.selected[self.screen] = clamp_index(self.selected.get(self.screen, 0) + delta, total)
        if self.screen == ScreenId.SPACES:
            self.space_drilldown = None

    # ------------------------------------------------------------------
    # Setup and config actions
    # ------------------------------------------------------------------

    async def _read_prompt(self, message: str, default: str = "", secret: bool = False) -> str | None:
        """Read one answer from the input stream; blank keeps ``default``, EOF cancels."""
        loop = asyncio.get_running_loop()
        label = f"{message} [{default}] " if default and not secret else f"{message} "
        stream = self._input_stream or sys.stdin
        if stream is sys.stdin:
            try:
                ask = functools.partial(self.console.input, label, markup=False, password=secret)
                line = await loop.run_in_executor(None, ask)
            except EOFError:
                return None
        else:
            self.console.print(label, end="", markup=False)
            line = await loop.run_in_executor(None, stream.readline)
            if not line:
                return None
        return line.strip() or default or None

    async def _run_action(self, action: Callable[[str], Awaitable[str | None]], key: str) -> None:
        self.debug_log.log("ui.action", {"key": key, "screen": self.screen.value})
        try:
            notice = await action(key)
        except XyteError as exc:
            self.status_message = str(exc)
            self.report_error(str(exc))
            self.redraw()
            return
        if notice is None:
            self.status_message = "Canceled."
            self.redraw()
            return
        self.runtime.run_refresh(RefreshReason.MANUAL)
        await self.runtime.wait_idle()
        self.status_message = notice
        self.redraw()

    async def _active_tenant_id(self) -> str | None:
        return self._explicit_tenant_id or (await self._profile_store.get_data()).active_tenant_id

    async def _setup_action(self, key: str) -> str | None:
        """Run one setup-screen action; returns the status notice, or None when canceled."""
        if key == "c":
            return "Connectivity probe complete."

        if key == "a":
            raw = await self._prompt("Tenant id:", "", False)
            if not raw:
                return None
            tenant_id = normalize_tenant_id(raw)
            name = await self._prompt("Tenant display name:", tenant_id, False) or tenant_id
            await self._profile_store.upsert_tenant(tenant_id, name=name)
            await self._profile_store.set_active_tenant(tenant_id)
            self._explicit_tenant_id = None
            return f"Tenant {tenant_id} configured and active."

        if key == "u":
            data = await self._profile_store.get_data()
            hint = data.active_tenant_id or (data.tenants[0].id if data.tenants else "")
            tenant_id = await self._prompt("Set active tenant id:", hint, False)
            if not tenant_id:
                return None
            await self._profile_store.set_active_tenant(tenant_id)
            self._explicit_tenant_id = None
            return f"Active tenant set to {tenant_id}."

        tenant_id = await self._active_tenant_id()
        if not tenant_id:
            return "Set an active tenant first (a/u)."
        tenant = await self._profile_store.get_tenant(tenant_id)
        if tenant is None:
            return f"Unknown tenant {tenant_id}; add it first (a)."

        if key == "k":
            slot_name = await self._prompt("Slot name:", DEFAULT_SLOT_NAME, False)
            if not slot_name:
                return None
            key_value = await self._prompt("API key value:", "", True)
            if not key_value:
                return None
            result = await store_tenant_key(
                self._profile_store,
                self._keychain,
                tenant_id=tenant_id,
                tenant_name=tenant.name,
                key_value=key_value,
                slot_name=slot_name,
            )
            return f"Saved {result.provider} slot {result.slot.name} ({result.slot.slot_id})."

        provider = await self._prompt("Provider:", DEFAULT_PROVIDER, False)
        if not provider:
            return None
        slot_ref = await self._prompt("Slot id or name:", "", False)
        if not slot_ref:
            return None
        await self._profile_store.set_active_key_slot(tenant_id, provider, slot_ref)
        return f"Active slot updated for {provider}."

    async def _config_action(self, key: str) -> str | None:
        """Run one config-screen action; returns the status notice."""
        if key == "c":
            return "Connectivity doctor executed."

        tenant_id = await self._active_tenant_id()
        if not tenant_id:
            return "No active tenant. Use setup screen first."
        view = self._config_view()
        slot = view.selected_slot
        if slot is None:
            return "No slot selected to activate."
        await self._profile_store.set_active_key_slot(tenant_id, slot.provider, slot.slot_id)
        return f"Active slot changed for {slot.provider}."

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def _refresh_current(self) -> None:
        token = self.runtime.mount_token
        screen = self.screen

        tenant_id = self._explicit_tenant_id or (await self._profile_store.get_data()).active_tenant_id
        readiness = await evaluate_readiness(
            self._profile_store,
            self._keychain,
            tenant_id=tenant_id,
            client=self._client,
            check_connectivity=True,
        )
        if token != self.runtime.mount_token:
            return
        self.readiness = readiness
        self.tenant_id = readiness.tenant_id

        if not can_open_screen(screen, readiness):
            self._logger.info("Screen %s blocked (readiness=%s); showing setup", screen, readiness.state)
            self.redirected_from = screen
            self.screen = ScreenId.SETUP
            self.active_pane = SCREEN_PANE_CONFIG[ScreenId.SETUP].default_pane
            self.status_message = "Setup required"
            return

        if screen == ScreenId.SETUP:
            self.status_message = "Setup complete" if readiness.state == ReadinessState.READY else "Setup required"
            return
        if screen == ScreenId.CONFIG:
            doctor = f"{readiness.connection_state.value}: {readiness.connectivity.message}"
            state = await config_scene_state(self._profile_store, self._keychain, readiness, doctor)
            if token == self.runtime.mount_token:
                self.config_state = state
                self.status_message = "Config snapshot"
            return
        if screen == ScreenId.COPILOT:
            self.status_message = "Copilot snapshot"
            return

        outcome, drilldown = await self._load(screen, tenant_id)
        if token != self.runtime.mount_token:
            return
        self.outcomes[screen] = outcome
        if screen == ScreenId.SPACES:
            self.space_drilldown = drilldown
        if outcome.error is not None:
            self.status_message = f"{screen.value.capitalize()} {outcome.connection_state.value}: {outcome.error.message}"
            self.report_error(self.status_message)
        else:
            self.status_message = f"{screen.value.capitalize()} loaded"

    async def _load(
        self, screen: ScreenId, tenant_id: str | None
    ) -> tuple[LoadOutcome[Any], LoadOutcome[Any] | None]:
        """Load ``screen``'s data; for spaces also the selected space's drilldown."""
        loader = ScreenDataLoader(self._client, tenant_id, self._retry_policy, self._logger)
        if screen == ScreenId.DASHBOARD:
            return await loader.load_dashboard(), None
        if screen == ScreenId.DEVICES:
            return await loader.load_devices(), None
        if screen == ScreenId.INCIDENTS:
            return await loader.load_incidents(), None
        if screen == ScreenId.TICKETS:
            return await loader.load_tickets(), None

        spaces = await loader.load_spaces()
        visible = self._filter(spaces.data, self.search.get(ScreenId.SPACES, ""))
        if not visible:
            return spaces, None
        space_id = get_space_id(visible[clamp_index(self.selected.get(ScreenId.SPACES, 0), len(visible))])
        if not space_id:
            return spaces, None
        devices = self.outcomes.get(ScreenId.DEVICES)
        cache = devices.data if devices is not None else []
        return spaces, await loader.load_space_drilldown(space_id, cache)

    def _on_runtime_status(self, status: ScreenRuntimeStatus) -> None:
        self.debug_log.log("runtime.status", status.to_dict())
        if not status.refresh_in_flight:
            self.redraw()

    def _on_refresh_error(self, error: BaseException) -> None:
        self.report_error(str(error) or type(error).__name__)

    def report_error(self, message: str) -> None:
        """Toast the first occurrence; report a storm once repeats reach the threshold inside the window."""
        now_ms = self._clock() * 1000
        self.error_storm = update_error_storm_state(self.error_storm, message, now_ms, ERROR_STORM_WINDOW_MS)
        self.debug_log.log("ui.error", {"message": message, "count": self.error_storm.count})
        if self.error_storm.count == 1:
            self.toasts.append(message)
        elif self.error_storm.count == ERROR_STORM_THRESHOLD:
            notice = f"Error storm: {message!r} repeated {self.error_storm.count} times within {ERROR_STORM_WINDOW_MS}ms"
            self.storm_reports.append(notice)
            self._logger.warning(notice)
            self.err_console.print(f"[yellow]{notice}[/yellow]")

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @staticmethod
    def _filter(records: list[Record], needle: str) -> list[Record]:
        if not needle:
            return records
        lowered = needle.lower()
        return [r for r in records if lowered in safe_search_text(r)]

    def _visible_records(self, screen: ScreenId) -> list[Record]:
        outcome = self.outcomes.get(screen)
        if outcome is None:
            return []
        data = outcome.data
        if screen == ScreenId.TICKETS:
            data = data.tickets
        elif screen == ScreenId.DASHBOARD:
            return []
        return self._filter(data, self.search.get(screen, ""))

    def _config_view(self) -> ConfigSceneState:
        """The config snapshot, with the slot picked by j/k once the user has moved."""
        state = self.config_state or ConfigSceneState(tenant_id=self.tenant_id)
        if state.slot_rows and ScreenId.CONFIG in self.selected:
            index = clamp_index(self.selected[ScreenId.CONFIG], len(state.slot_rows))
            state = replace(state, selected_slot=state.slot_rows[index])
        return state

    def _panels(self) -> list[Panel]:
        screen = self.screen
        selected = self.selected.get(screen, 0)
        search = self.search.get(screen, "")

        if screen == ScreenId.SETUP:
            readiness = self.readiness or ReadinessCheck(
                state=ReadinessState.NEEDS_SETUP, missing_items=["Checking readiness..."]
            )
            return scene_from_setup_state(setup_scene_state(readiness))
        if screen == ScreenId.CONFIG:
            return scene_from_config_state(self._config_view())
        if screen == ScreenId.COPILOT:
            return scene_from_copilot_state(CopilotSceneState(tenant_id=self.tenant_id))
        if screen == ScreenId.DASHBOARD:
            outcome = self.outcomes.get(screen)
            data = outcome.data if outcome is not None else None
            return scene_from_dashboard_state(
                DashboardSceneState(
                    tenant_id=self.tenant_id,
                    devices=data.devices if data else [],
                    incidents=data.incidents if data else [],
                    tickets=data.tickets if data else [],
                )
            )

        records = self._visible_records(screen)
        if screen == ScreenId.DEVICES:
            return scene_from_devices_state(
                DevicesSceneState(tenant_id=self.tenant_id, devices=records, search_text=search, selected_index=selected)
            )
        if screen == ScreenId.INCIDENTS:
            return scene_from_incidents_state(
                IncidentsSceneState(
                    tenant_id=self.tenant_id, incidents=records, severity_filter=search, selected_index=selected
                )
            )
        if screen == ScreenId.TICKETS:
            outcome = self.outcomes.get(screen)
            return scene_from_tickets_state(
                TicketsSceneState(
                    tenant_id=self.tenant_id,
                    mode=outcome.data.mode if outcome is not None else "organization",
                    tickets=records,
                    search_text=search,
                    selected_index=selected,
                )
            )

        drill = self.space_drilldown
        return scene_from_spaces_state(
            SpacesSceneState(
                tenant_id=self.tenant_id,
                spaces=records,
                search_text=search,
                selected_index=selected,
                loading=self.runtime.get_status().refresh_in_flight,
                pane_status=drill.data.pane_status if drill is not None else "Press enter to load the selected space.",
                space_detail=drill.data.space_detail if drill is not None else None,
                devices_in_space=drill.data.devices_in_space if drill is not None else [],
            )
        )

    def current_frame(self) -> Frame:
        """Snapshot the visible screen as an interactive-mode frame."""
        panels = self._panels()
        status = self.runtime.get_status()
        input_state = self.input.get_state()
        if self.show_help:
            panels = [*panels, text_panel("help", "Keys", list(HELP_LINES))]

        meta: dict[str, Any] = {
            "inputState": "modal" if self.show_help else ("busy" if status.refresh_in_flight else "idle"),
            "queueDepth": input_state.queue_depth,
            "droppedEvents": input_state.dropped_events,
            "transitionState": self.transition_state,
            "refreshState": status.state.value,
            "tabNavBoundary": self.tab_boundary,
            "activePane": self.active_pane,
            "renderSafety": infer_render_safety(panels),
            "redirectedFrom": self.redirected_from.value if self.redirected_from else None,
        }
        if self.readiness is not None:
            meta["readiness"] = self.readiness.state.value
            meta["connection"] = self.readiness.connectivity.to_meta()
            meta["blocking"] = self.screen == ScreenId.SETUP and self.readiness.state != ReadinessState.READY
        outcome = self.outcomes.get(self.screen)
        if outcome is not None:
            meta["retry"] = outcome.retry.to_meta()

        frame = create_frame(
            session_id=self.session_id,
            sequence=self._sequence,
            screen=self.screen,
            title=self.screen.value.capitalize(),
            status=self.status_message,
            tenant_id=self.tenant_id,
            motion_enabled=self.motion_enabled,
            motion_phase=self._phase,
            logo=f"{XYTE_LOGO_COMPACT} {pulse_char(self._phase)}" if self.motion_enabled else XYTE_LOGO_COMPACT,
            panels=panels,
            mode="interactive",
            meta=navigation_meta(self.screen, **meta),
        )
        self._sequence += 1
        self._phase += 1
        return frame

    def redraw(self) -> None:
        if self.quitting:
            return
        frame = self.current_frame()
        self.console.clear()
        self.console.print(render_frame(frame, PANE_PANELS.get(self.screen)))
        if self.toasts:
            self.console.print(f"[red]{self.toasts[-1]}[/red]")
