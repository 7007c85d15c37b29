"""Unit tests for the screen runtime (coalescing, stale discard) and error storm tracking."""

from __future__ import annotations

import asyncio

import pytest

from xyte.tui.runtime import (
    ErrorStormState,
    RefreshReason,
    RefreshState,
    ScreenRuntime,
    ScreenRuntimeStatus,
    update_error_storm_state,
)


class _GatedRefresh:
    """Refresh that blocks until ``release()``; counts calls."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.gate = asyncio.Event()
        self.error = error

    async def __call__(self) -> None:
        self.calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error

    def release(self) -> None:
        self.gate.set()


class TestCoalescing:
    @pytest.mark.asyncio
    async def test_requests_while_in_flight_collapse_into_one_follow_up(self) -> None:
        refresh = _GatedRefresh()
        runtime = ScreenRuntime(refresh)

        runtime.run_refresh(RefreshReason.MOUNT)
        runtime.run_refresh(RefreshReason.MANUAL)
        runtime.run_refresh(RefreshReason.MANUAL)
        runtime.run_refresh(RefreshReason.BACKGROUND)

        status = runtime.get_status()
        assert status.refresh_in_flight is True
        assert status.refresh_queued is True
        assert status.state == RefreshState.RETRYING

        refresh.release()
        await runtime.wait_idle()

        assert refresh.calls == 2
        final = runtime.get_status()
        assert final.refresh_in_flight is False
        assert final.refresh_queued is False
        assert final.state == RefreshState.IDLE

    @pytest.mark.asyncio
    async def test_requests_while_queued_change_nothing(self) -> None:
        seen: list[ScreenRuntimeStatus] = []
        refresh = _GatedRefresh()
        runtime = ScreenRuntime(refresh, on_status=seen.append)

        runtime.run_refresh(RefreshReason.MOUNT)
        runtime.run_refresh(RefreshReason.MANUAL)
        emitted = len(seen)
        runtime.run_refresh(RefreshReason.BACKGROUND)
        runtime.run_refresh(RefreshReason.BACKGROUND)

        assert len(seen) == emitted
        assert runtime.get_status().reason == RefreshReason.MANUAL
        refresh.release()
        await runtime.wait_idle()
        assert refresh.calls == 2

    @pytest.mark.asyncio
    async def test_single_request_runs_once(self) -> None:
        refresh = _GatedRefresh()
        refresh.release()
        runtime = ScreenRuntime(refresh)
        runtime.run_refresh("manual")
        await runtime.wait_idle()
        assert refresh.calls == 1
        assert runtime.get_status().reason == RefreshReason.MANUAL

    @pytest.mark.asyncio
    async def test_status_callback_sees_loading_then_idle(self) -> None:
        seen: list[ScreenRuntimeStatus] = []
        refresh = _GatedRefresh()
        refresh.release()
        runtime = ScreenRuntime(refresh, on_status=seen.append)
        runtime.run_refresh(RefreshReason.MOUNT)
        await runtime.wait_idle()
        assert [s.state for s in seen] == [RefreshState.LOADING, RefreshState.IDLE]


class TestStaleDiscard:
    @pytest.mark.asyncio
    async def test_completion_after_unmount_is_discarded(self) -> None:
        refresh = _GatedRefresh()
        updates: list[ScreenRuntimeStatus] = []
        runtime = ScreenRuntime(refresh, on_status=updates.append)

        runtime.run_refresh(RefreshReason.MOUNT)
        runtime.cancel_pending_for_unmount()
        updates.clear()

        refresh.release()
        await runtime.wait_idle()

        status = runtime.get_status()
        assert status.stale_discarded == 1
        assert status.state == RefreshState.IDLE
        assert status.refresh_in_flight is False
        assert updates == []

    @pytest.mark.asyncio
    async def test_stale_error_is_not_reported(self) -> None:
        errors: list[BaseException] = []
        refresh = _GatedRefresh(error=RuntimeError("boom"))
        runtime = ScreenRuntime(refresh, on_error=errors.append)

        runtime.run_refresh(RefreshReason.MOUNT)
        runtime.cancel_pending_for_unmount()
        refresh.release()
        await runtime.wait_idle()

        assert errors == []
        assert runtime.get_status().last_error is None

    @pytest.mark.asyncio
    async def test_unmount_drops_queued_refresh(self) -> None:
        refresh = _GatedRefresh()
        runtime = ScreenRuntime(refresh)
        runtime.run_refresh(RefreshReason.MOUNT)
        runtime.run_refresh(RefreshReason.MANUAL)
        runtime.cancel_pending_for_unmount()
        refresh.release()
        await runtime.wait_idle()
        assert refresh.calls == 1

    @pytest.mark.asyncio
    async def test_remount_keeps_queued_refresh(self) -> None:
        refresh = _GatedRefresh()
        runtime = ScreenRuntime(refresh)
        runtime.run_refresh(RefreshReason.MOUNT)
        runtime.run_refresh(RefreshReason.MANUAL)
        runtime.set_mount_token(runtime.mount_token + 5)

        refresh.release()
        await runtime.wait_idle()

        status = runtime.get_status()
        assert refresh.calls == 2
        assert status.stale_discarded == 1
        assert status.state == RefreshState.IDLE
        assert status.refresh_queued is False

    @pytest.mark.asyncio
    async def test_unmount_bumps_mount_token(self) -> None:
        runtime = ScreenRuntime(_GatedRefresh())
        before = runtime.mount_token
        runtime.cancel_pending_for_unmount()
        assert runtime.mount_token == before + 1


class TestRefreshErrors:
    @pytest.mark.asyncio
    async def test_failure_sets_error_state_and_notifies(self) -> None:
        errors: list[BaseException] = []
        refresh = _GatedRefresh(error=RuntimeError("api down"))
        refresh.release()
        runtime = ScreenRuntime(refresh, on_error=errors.append)

        runtime.run_refresh(RefreshReason.MANUAL)
        await runtime.wait_idle()

        status = runtime.get_status()
        assert status.state == RefreshState.ERROR
        assert status.last_error == "api down"
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_escape(self) -> None:
        def explode(_: object) -> None:
            raise ValueError("callback bug")

        refresh = _GatedRefresh()
        refresh.release()
        runtime = ScreenRuntime(refresh, on_status=explode)
        runtime.run_refresh(RefreshReason.MOUNT)
        await runtime.wait_idle()
        assert refresh.calls == 1

    def test_status_to_dict_is_camel_case(self) -> None:
        status = ScreenRuntimeStatus(
            state=RefreshState.IDLE,
            refresh_in_flight=False,
            refresh_queued=False,
            stale_discarded=2,
            reason=RefreshReason.MOUNT,
        )
        assert status.to_dict() == {
            "state": "idle",
            "refreshInFlight": False,
            "refreshQueued": False,
            "staleDiscarded": 2,
            "lastError": None,
            "reason": "mount",
        }


class TestErrorStorm:
    def test_repeats_inside_window_count_up(self) -> None:
        state = update_error_storm_state(None, "timeout", 0)
        assert state.count == 1
        state = update_error_storm_state(state, "timeout", 400)
        assert state.count == 2
        state = update_error_storm_state(state, "timeout", 900)
        assert state.count == 3
        assert state.started_at == 0

    def test_different_message_resets(self) -> None:
        state = ErrorStormState(message="timeout", count=3, started_at=0)
        state = update_error_storm_state(state, "auth failed", 1000)
        assert state.count == 1
        assert state.message == "auth failed"

    def test_repeat_after_window_resets(self) -> None:
        state = ErrorStormState(message="timeout", count=3, started_at=0)
        state = update_error_storm_state(state, "timeout", 2900)
        assert state.count == 1
        assert state.started_at == 2900

    def test_window_is_anchored_at_first_occurrence(self) -> None:
        state = update_error_storm_state(None, "x", 0)
        for now in (500, 1000, 1500, 2000):
            state = update_error_storm_state(state, "x", now)
        assert state.count == 5
        state = update_error_storm_state(state, "x", 2001)
        assert state.count == 1
