"""Unit tests for the bounded key queue."""

from __future__ import annotations

import asyncio

import pytest

from xyte.tui.input_controller import InputController, KeyEvent


class _Recorder:
    def __init__(self) -> None:
        self.keys: list[str] = []
        self.gate = asyncio.Event()
        self.gate.set()

    async def __call__(self, event: KeyEvent) -> None:
        await self.gate.wait()
        self.keys.append(event.key)


class TestInputController:
    @pytest.mark.asyncio
    async def test_handles_in_order(self) -> None:
        recorder = _Recorder()
        controller = InputController(recorder)
        for key in "abc":
            controller.dispatch(KeyEvent(key))
        await controller.drain()
        assert recorder.keys == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_overflow_drops_oldest(self) -> None:
        recorder = _Recorder()
        recorder.gate.clear()
        controller = InputController(recorder, max_queue_size=2)

        controller.dispatch(KeyEvent("a"))
        await asyncio.sleep(0)
        for key in "bcd":
            controller.dispatch(KeyEvent(key))
        # "a" is held by the handler; "b" was dropped when "d" arrived
        assert controller.dropped_events == 1
        assert controller.queue_depth == 2

        recorder.gate.set()
        await controller.drain()
        assert recorder.keys == ["a", "c", "d"]

    @pytest.mark.asyncio
    async def test_critical_keys_bypass_queue(self) -> None:
        recorder = _Recorder()
        handled: list[str] = []

        async def handle(event: KeyEvent) -> None:
            if event.key == "q":
                handled.append("q")
                return
            await recorder(event)

        recorder.gate.clear()
        controller = InputController(handle, max_queue_size=1)
        controller.dispatch(KeyEvent("a"))
        result = controller.dispatch(KeyEvent("q"))
        assert result.bypassed is True

        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert handled == ["q"]
        assert recorder.keys == []

        recorder.gate.set()
        await controller.drain()
        assert recorder.keys == ["a"]

    @pytest.mark.asyncio
    async def test_handler_failure_is_reported_and_queue_continues(self) -> None:
        errors: list[BaseException] = []
        seen: list[str] = []

        async def handle(event: KeyEvent) -> None:
            if event.key == "x":
                raise RuntimeError("bad key")
            seen.append(event.key)

        controller = InputController(handle, on_error=errors.append)
        for key in "xy":
            controller.dispatch(KeyEvent(key))
        await controller.drain()
        assert seen == ["y"]
        assert len(errors) == 1
        assert controller.get_state().in_flight is False
