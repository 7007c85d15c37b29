"""
Headless renderer: streams screen frames for automated agents.

Lifecycle::

    renderer = HeadlessRenderer(client, profile_store, keychain, screen="devices")
    await renderer.run()     # returns after one frame, or on stop/SIGINT/SIGTERM/EPIPE in follow mode

Each iteration resolves the tenant, evaluates readiness (with a connectivity
probe), redirects operational screens to ``setup`` when not ready, loads the
screen's data and emits exactly one runtime frame.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any, TextIO

from xyte.client.base import XyteClient
from xyte.core.connectivity import ConnectionState
from xyte.core.constants import DEFAULT_FOLLOW_INTERVAL_MS, MIN_FOLLOW_INTERVAL_MS
from xyte.core.readiness import ReadinessCheck, ReadinessState, evaluate_readiness, is_operational_screen
from xyte.core.retry import RetryPolicy
from xyte.secure.key_slots import XYTE_PROVIDERS
from xyte.secure.keychain import KeychainStore
from xyte.secure.profile_store import ProfileStore
from xyte.tui.animation import XYTE_LOGO_COMPACT, startup_frames
from xyte.tui.data_loaders import LoadOutcome, ScreenDataLoader, get_space_id
from xyte.tui.frames import (
    Frame,
    FrameEmitter,
    OutputFormat,
    create_frame,
    infer_render_safety,
    navigation_meta,
    refresh_state_for,
)
from xyte.tui.navigation import ScreenId
from xyte.tui.scene import (
    ConfigSceneState,
    CopilotSceneState,
    DashboardSceneState,
    DevicesSceneState,
    IncidentsSceneState,
    Panel,
    ProviderRow,
    SetupSceneState,
    SlotRow,
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
)


def setup_scene_state(readiness: ReadinessCheck) -> SetupSceneState:
    return SetupSceneState(
        tenant_id=readiness.tenant_id,
        readiness_state=readiness.state.value,
        connection_state=readiness.connection_state.value,
        missing_items=list(readiness.missing_items),
        recommended_actions=list(readiness.recommended_actions),
        provider_rows=[
            ProviderRow(
                provider=p.provider,
                slot_count=p.slot_count,
                active_slot=p.active_slot_id or "none",
                has_secret=p.has_active_secret,
            )
            for p in readiness.providers
        ],
    )


async def config_scene_state(
    profile_store: ProfileStore,
    keychain: KeychainStore,
    readiness: ReadinessCheck,
    doctor_status: str | None = None,
) -> ConfigSceneState:
    """Provider health and the slots of the first provider that has any."""
    tenant_id = readiness.tenant_id
    all_slots = await profile_store.list_key_slots(tenant_id) if readiness.active_tenant else []

    provider_rows: list[ProviderRow] = []
    active_ids: dict[str, str] = {}
    for provider in XYTE_PROVIDERS:
        active = (
            await profile_store.get_active_key_slot(tenant_id, provider)
            if tenant_id and readiness.active_tenant
            else None
        )
        has_secret = False
        if active is not None and tenant_id:
            active_ids[provider] = active.slot_id
            has_secret = bool(await keychain.get_slot_secret(tenant_id, provider, active.slot_id))
        provider_rows.append(
            ProviderRow(
                provider=provider,
                slot_count=sum(1 for s in all_slots if s.provider == provider),
                active_slot=active.slot_id if active else "none",
                has_secret=has_secret,
                last_validated_at=active.last_validated_at if active else None,
            )
        )

    selected_provider = next((r.provider for r in provider_rows if r.slot_count > 0), "xyte-org")
    slot_rows: list[SlotRow] = []
    for slot in all_slots:
        if slot.provider != selected_provider or not tenant_id:
            continue
        slot_rows.append(
            SlotRow(
                provider=slot.provider,
                slot_id=slot.slot_id,
                name=slot.name,
                active=active_ids.get(slot.provider) == slot.slot_id,
                has_secret=bool(await keychain.get_slot_secret(tenant_id, slot.provider, slot.slot_id)),
                fingerprint=slot.fingerprint,
            )
        )

    selected_slot = next((r for r in slot_rows if r.active), slot_rows[0] if slot_rows else None)
    return ConfigSceneState(
        tenant_id=tenant_id,
        provider_rows=provider_rows,
        selected_provider=selected_provider,
        slot_rows=slot_rows,
        selected_slot=selected_slot,
        doctor_status=doctor_status,
    )


class HeadlessRenderer:
    """Builds and emits runtime frames for one screen, once or in follow mode."""

    def __init__(
        self,
        client: XyteClient,
        profile_store: ProfileStore,
        keychain: KeychainStore,
        screen: ScreenId | str = ScreenId.DASHBOARD,
        output: TextIO | None = None,
        format: OutputFormat = "json",
        motion_enabled: bool = False,
        follow: bool = False,
        interval_ms: int | None = None,
        tenant_id: str | None = None,
        retry_policy: RetryPolicy | None = None,
        logger: logging.Logger | None = None,
        handle_signals: bool = True,
        session_id: str | None = None,
    ) -> None:
        self._client = client
        self._profile_store = profile_store
        self._keychain = keychain
        self.screen = ScreenId(screen)
        self.follow = follow
        self.interval_ms = max(MIN_FOLLOW_INTERVAL_MS, interval_ms or DEFAULT_FOLLOW_INTERVAL_MS)
        self.motion_enabled = motion_enabled
        self._explicit_tenant_id = tenant_id
        self._retry_policy = retry_policy
        self._logger = logger or logging.getLogger(__name__)
        self._handle_signals = handle_signals
        self.emitter = FrameEmitter(output or sys.stdout, session_id=session_id, format=format, logger=self._logger)
        self._shutdown_event = asyncio.Event()
        self._phase = 0
        self._reconnect_attempts = 0

    async def stop(self) -> None:
        """Request the follow loop to end after the current iteration."""
        self._shutdown_event.set()

    async def run(self) -> None:
        self._write_startup()
        installed = self._setup_signal_handlers() if self._handle_signals else []
        try:
            await self._run_loop()
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._logger.debug(
                "Headless renderer finished: %d frame(s), broken_pipe=%s",
                self.emitter.emitted,
                self.emitter.broken,
            )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _run_loop(self) -> None:
        while not self.emitter.broken:
            tenant_id = await self._resolve_tenant_id()
            readiness = await evaluate_readiness(
                self._profile_store,
                self._keychain,
                tenant_id=tenant_id,
                client=self._client,
                check_connectivity=True,
            )
            frame = await self.build_frame(readiness, tenant_id)
            if not self.emitter.emit(frame):
                break
            self._phase += 1

            if not self.follow or self._shutdown_event.is_set():
                break

            connectivity = readiness.connectivity
            if connectivity.retriable and connectivity.state != ConnectionState.CONNECTED:
                self._reconnect_attempts += 1
                if not self.emitter.emit(self._reconnect_frame(readiness)):
                    break
                self._phase += 1
            else:
                self._reconnect_attempts = 0

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.interval_ms / 1000)
            except TimeoutError:
                continue
            break

    async def _resolve_tenant_id(self) -> str | None:
        if self._explicit_tenant_id:
            return self._explicit_tenant_id
        return (await self._profile_store.get_data()).active_tenant_id

    def _setup_signal_handlers(self) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(self.stop()))
            except (NotImplementedError, RuntimeError) as exc:
                self._logger.debug("Cannot install %s handler: %s", sig.name, exc)
                continue
            installed.append(sig)
        return installed

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def _write_startup(self) -> None:
        for index, boot in enumerate(startup_frames()):
            frame = create_frame(
                session_id=self.emitter.session_id,
                sequence=self.emitter.next_sequence(),
                screen=ScreenId.SETUP,
                title=boot.title,
                status=boot.status,
                motion_enabled=self.motion_enabled,
                motion_phase=index,
                logo=boot.banner,
                panels=[],
                meta=navigation_meta(ScreenId.SETUP, startup=True),
            )
            if not self.emitter.emit(frame):
                return

    def _frame(
        self,
        screen: ScreenId,
        title: str,
        status: str,
        panels: list[Panel],
        tenant_id: str | None,
        meta: dict[str, Any],
    ) -> Frame:
        return create_frame(
            session_id=self.emitter.session_id,
            sequence=self.emitter.next_sequence(),
            screen=screen,
            title=title,
            status=status,
            tenant_id=tenant_id,
            motion_enabled=self.motion_enabled,
            motion_phase=self._phase,
            logo=XYTE_LOGO_COMPACT,
            panels=panels,
            meta=navigation_meta(screen, renderSafety=infer_render_safety(panels), **meta),
        )

    async def build_frame(self, readiness: ReadinessCheck, tenant_id: str | None) -> Frame:
        """Gate the requested screen on readiness and build its runtime frame."""
        requested = self.screen
        blocked = readiness.state != ReadinessState.READY and is_operational_screen(requested)
        if blocked:
            self._logger.info("Screen %s blocked (readiness=%s); showing setup", requested, readiness.state)
            return self._setup_frame(readiness, redirected_from=requested)
        if requested == ScreenId.SETUP:
            return self._setup_frame(readiness)
        if requested == ScreenId.CONFIG:
            return await self._config_frame(readiness)
        return await self._operational_frame(requested, readiness, tenant_id)

    def _setup_frame(self, readiness: ReadinessCheck, redirected_from: ScreenId | None = None) -> Frame:
        panels = scene_from_setup_state(setup_scene_state(readiness))
        return self._frame(
            ScreenId.SETUP,
            "Setup",
            "Setup complete" if readiness.state == ReadinessState.READY else "Setup required",
            panels,
            readiness.tenant_id,
            {
                "readiness": readiness.state.value,
                "connection": readiness.connectivity.to_meta(),
                "blocking": readiness.state != ReadinessState.READY,
                "redirectedFrom": redirected_from.value if redirected_from else None,
                "refreshState": refresh_state_for(readiness.connection_state.value),
            },
        )

    async def _config_frame(self, readiness: ReadinessCheck) -> Frame:
        doctor = f"{readiness.connection_state.value}: {readiness.connectivity.message}"
        state = await config_scene_state(self._profile_store, self._keychain, readiness, doctor)
        panels = scene_from_config_state(state)
        return self._frame(
            ScreenId.CONFIG,
            "Config",
            "Config snapshot",
            panels,
            readiness.tenant_id,
            {
                "readiness": readiness.state.value,
                "connection": readiness.connectivity.to_meta(),
                "blocking": False,
                "refreshState": refresh_state_for(readiness.connection_state.value),
            },
        )

    def _reconnect_frame(self, readiness: ReadinessCheck) -> Frame:
        panels = scene_from_setup_state(setup_scene_state(readiness))
        return self._frame(
            ScreenId.SETUP,
            "Reconnect",
            f"Retrying connectivity in {self.interval_ms}ms",
            panels,
            readiness.tenant_id,
            {
                "readiness": readiness.state.value,
                "connection": readiness.connectivity.to_meta(),
                "retry": {"attempt": self._reconnect_attempts, "nextDelayMs": self.interval_ms},
                "refreshState": "retrying",
            },
        )

    async def _operational_frame(self, screen: ScreenId, readiness: ReadinessCheck, tenant_id: str | None) -> Frame:
        loader = ScreenDataLoader(self._client, tenant_id, self._retry_policy, self._logger)
        title = screen.value.capitalize()

        if screen == ScreenId.COPILOT:
            panels = scene_from_copilot_state(CopilotSceneState(tenant_id=tenant_id))
            return self._frame(
                screen,
                title,
                "Copilot snapshot",
                panels,
                tenant_id,
                {"readiness": readiness.state.value, "refreshState": "idle"},
            )

        extra_connection: dict[str, Any] = {}
        retry_meta: dict[str, Any] | None = None
        outcome: LoadOutcome[Any]

        if screen == ScreenId.DASHBOARD:
            outcome = await loader.load_dashboard()
            panels = scene_from_dashboard_state(
                DashboardSceneState(
                    tenant_id=tenant_id,
                    devices=outcome.data.devices,
                    incidents=outcome.data.incidents,
                    tickets=outcome.data.tickets,
                )
            )
        elif screen == ScreenId.DEVICES:
            outcome = await loader.load_devices()
            panels = scene_from_devices_state(DevicesSceneState(tenant_id=tenant_id, devices=outcome.data))
        elif screen == ScreenId.INCIDENTS:
            outcome = await loader.load_incidents()
            panels = scene_from_incidents_state(IncidentsSceneState(tenant_id=tenant_id, incidents=outcome.data))
        elif screen == ScreenId.TICKETS:
            outcome = await loader.load_tickets()
            panels = scene_from_tickets_state(
                TicketsSceneState(tenant_id=tenant_id, mode=outcome.data.mode, tickets=outcome.data.tickets)
            )
        else:
            outcome = await loader.load_spaces()
            selected_id = get_space_id(outcome.data[0]) if outcome.data else ""
            detail: Any = None
            devices_in_space: list[Any] = []
            pane_status = "Loading selected space..." if outcome.data else "No spaces found for tenant."
            drilldown_retry = None
            if selected_id:
                drilldown = await loader.load_space_drilldown(selected_id, [])
                detail = drilldown.data.space_detail
                devices_in_space = drilldown.data.devices_in_space
                pane_status = drilldown.data.pane_status
                drilldown_retry = drilldown.retry.to_meta()
                if drilldown.error is not None:
                    extra_connection["drilldownError"] = drilldown.error.message
            panels = scene_from_spaces_state(
                SpacesSceneState(
                    tenant_id=tenant_id,
                    spaces=outcome.data,
                    pane_status=pane_status,
                    space_detail=detail,
                    devices_in_space=devices_in_space,
                )
            )
            retry_meta = {"spaces": outcome.retry.to_meta(), "drilldown": drilldown_retry}

        connection: dict[str, Any] = {"state": outcome.connection_state.value}
        if outcome.error is not None:
            connection["error"] = outcome.error.message
        connection.update(extra_connection)

        status = (
            f"{title} {outcome.connection_state.value}: {outcome.error.message}"
            if outcome.error is not None
            else f"{title} snapshot"
        )
        return self._frame(
            screen,
            title,
            status,
            panels,
            tenant_id,
            {
                "readiness": readiness.state.value,
                "connection": connection,
                "retry": retry_meta if retry_meta is not None else outcome.retry.to_meta(),
                "refreshState": refresh_state_for(outcome.connection_state.value, outcome.retry.retried),
            },
        )
