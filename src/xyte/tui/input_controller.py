"""
Bounded key queue for the interactive app.

One handler runs at a time.  When the queue is full the oldest pending event
is dropped (and counted) so a key-mashing user cannot build unbounded lag.
Critical keys (``q``, ``ctrl+c``) skip the queue entirely.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from xyte.core.constants import DEFAULT_INPUT_QUEUE_SIZE

CRITICAL_KEYS = frozenset({"q", "ctrl+c"})


@dataclass(frozen=True)
class KeyEvent:
    key: str
    timestamp: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class DispatchResult:
    accepted: bool
    bypassed: bool
    queue_depth: int
    dropped_events: int


@dataclass(frozen=True)
class InputControllerState:
    queue_depth: int
    dropped_events: int
    in_flight: bool


def default_is_critical(event: KeyEvent) -> bool:
    return event.key in CRITICAL_KEYS


class InputController:
    """Serializes key handling through ``handle``.  Must be used inside a running event loop."""

    def __init__(
        self,
        handle: Callable[[KeyEvent], Awaitable[None]],
        is_critical: Callable[[KeyEvent], bool] = default_is_critical,
        max_queue_size: int = DEFAULT_INPUT_QUEUE_SIZE,
        on_error: Callable[[BaseException], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._handle = handle
        self._is_critical = is_critical
        self.max_queue_size = max(1, max_queue_size)
        self._on_error = on_error
        self._logger = logger or logging.getLogger(__name__)
        self._queue: deque[KeyEvent] = deque()
        self._in_flight = False
        self._dropped = 0
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def dropped_events(self) -> int:
        return self._dropped

    def get_state(self) -> InputControllerState:
        return InputControllerState(
            queue_depth=len(self._queue),
            dropped_events=self._dropped,
            in_flight=self._in_flight,
        )

    def dispatch(self, event: KeyEvent) -> DispatchResult:
        if self._is_critical(event):
            self._spawn(self._run_one(event))
            return DispatchResult(True, True, len(self._queue), self._dropped)

        if len(self._queue) >= self.max_queue_size:
            dropped = self._queue.popleft()
            self._dropped += 1
            self._logger.debug("Input queue full; dropped key %r", dropped.key)

        self._queue.append(event)
        if not self._in_flight:
            self._in_flight = True
            self._spawn(self._process_queue())
        return DispatchResult(True, False, len(self._queue), self._dropped)

    def clear(self) -> None:
        self._queue.clear()

    async def drain(self) -> None:
        """Wait until every dispatched event has been handled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                await self._run_one(self._queue.popleft())
        finally:
            self._in_flight = False

    async def _run_one(self, event: KeyEvent) -> None:
        try:
            await self._handle(event)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("Key handler failed for %r: %s", event.key, exc)
            if self._on_error is not None:
                self._on_error(exc)
