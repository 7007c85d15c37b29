"""
Screen runtime: coalesced refreshes for the mounted screen.

State machine (per mount token)::

    idle ──run_refresh──► refreshing ──run_refresh──► refreshing+queued
      ▲                       │                              │
      └──── completion ───────┘◄──── completion: start next ─┘

  - At most one refresh is in flight; further requests collapse into a single
    queued follow-up, so the last request is never lost.
  - A refresh that completes after the mount token changed is stale: its
    result is discarded and ``stale_discarded`` is incremented.
  - There is no hard cancellation.  Stale work runs to completion and is
    dropped by token comparison.

All transitions happen synchronously in ``run_refresh()`` and in the task
completion path, both on the event loop thread, so no locks are needed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from xyte.core.constants import ERROR_STORM_WINDOW_MS


class RefreshReason(StrEnum):
    MOUNT = "mount"
    MANUAL = "manual"
    BACKGROUND = "background"
    READINESS = "readiness"


class RefreshState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    RETRYING = "retrying"
    ERROR = "error"


@dataclass(frozen=True)
class ScreenRuntimeStatus:
    state: RefreshState
    refresh_in_flight: bool
    refresh_queued: bool
    stale_discarded: int
    last_error: str | None = None
    reason: RefreshReason | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "refreshInFlight": self.refresh_in_flight,
            "refreshQueued": self.refresh_queued,
            "staleDiscarded": self.stale_discarded,
            "lastError": self.last_error,
            "reason": self.reason.value if self.reason else None,
        }


class ScreenRuntime:
    """
    Runs an injected async ``refresh`` for the mounted screen.

    ``on_status`` receives a ``ScreenRuntimeStatus`` on every transition;
    ``on_error`` receives refresh exceptions that belong to the current mount.
    Neither the refresh failure nor a callback failure ever escapes.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        on_status: Callable[[ScreenRuntimeStatus], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._refresh = refresh
        self._on_status = on_status
        self._on_error = on_error
        self._logger = logger or logging.getLogger(__name__)

        self._mount_token = 0
        self._refresh_token = 0
        self._in_flight = False
        self._queued = False
        self._stale_discarded = 0
        self._last_error: str | None = None
        self._state = RefreshState.IDLE
        self._reason: RefreshReason | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def mount_token(self) -> int:
        return self._mount_token

    def get_status(self) -> ScreenRuntimeStatus:
        return ScreenRuntimeStatus(
            state=self._state,
            refresh_in_flight=self._in_flight,
            refresh_queued=self._queued,
            stale_discarded=self._stale_discarded,
            last_error=self._last_error,
            reason=self._reason,
        )

    def set_mount_token(self, token: int) -> None:
        self._mount_token = token

    def cancel_pending_for_unmount(self) -> None:
        """Invalidate in-flight work for the current screen and drop any queued refresh."""
        self._mount_token += 1
        self._refresh_token += 1
        self._in_flight = False
        self._queued = False
        self._state = RefreshState.IDLE
        self._reason = None
        self._emit_status()

    def run_refresh(self, reason: RefreshReason | str) -> None:
        """Request a refresh.  Must be called from inside a running event loop."""
        if self._queued:
            return
        self._reason = RefreshReason(reason)
        if self._in_flight:
            self._queued = True
            self._state = RefreshState.RETRYING
            self._emit_status()
            return
        self._start()

    async def wait_idle(self) -> None:
        """Wait until no refresh task (current or stale) is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self) -> None:
        self._in_flight = True
        self._queued = False
        self._state = RefreshState.LOADING
        self._refresh_token += 1
        mount_snapshot = self._mount_token
        refresh_snapshot = self._refresh_token
        self._emit_status()

        task = asyncio.get_running_loop().create_task(self._execute(mount_snapshot, refresh_snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(self, mount_snapshot: int, refresh_snapshot: int) -> None:
        error: Exception | None = None
        try:
            await self._refresh()
        except Exception as exc:  # noqa: BLE001
            error = exc
        self._complete(mount_snapshot, refresh_snapshot, error)

    def _complete(self, mount_snapshot: int, refresh_snapshot: int, error: Exception | None) -> None:
        owns_slot = refresh_snapshot == self._refresh_token
        stale = not owns_slot or mount_snapshot != self._mount_token

        if stale:
            self._stale_discarded += 1
            self._logger.debug(
                "Discarded stale refresh (mount %d, current %d)", mount_snapshot, self._mount_token
            )
        elif error is not None:
            self._last_error = str(error) or type(error).__name__
            self._logger.warning("Screen refresh failed: %s", self._last_error)
            self._notify_error(error)
        else:
            self._last_error = None

        if not owns_slot:
            # A newer refresh (after unmount) owns the in-flight slot.
            return

        self._in_flight = False
        if self._queued:
            self._state = RefreshState.RETRYING
            self._start()
            return

        if stale:
            self._state = RefreshState.IDLE
        else:
            self._state = RefreshState.ERROR if error is not None else RefreshState.IDLE
        self._emit_status()

    def _notify_error(self, error: BaseException) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:  # noqa: BLE001
            self._logger.exception("on_error callback failed")

    def _emit_status(self) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(self.get_status())
        except Exception:  # noqa: BLE001
            self._logger.exception("on_status callback failed")


# ---------------------------------------------------------------------------
# Error storm tracking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorStormState:
    message: str
    count: int
    started_at: float  # ms


def update_error_storm_state(
    state: ErrorStormState | None,
    message: str,
    now: float,
    window_ms: float = ERROR_STORM_WINDOW_MS,
) -> ErrorStormState:
    """
    Count repeats of one error message inside a window anchored at its first occurrence.

    A different message, or a repeat after the window elapsed, starts over at 1.
    """
    if state is None or state.message != message:
        return ErrorStormState(message=message, count=1, started_at=now)
    if now - state.started_at <= window_ms:
        return ErrorStormState(message=message, count=state.count + 1, started_at=state.started_at)
    return ErrorStormState(message=message, count=1, started_at=now)
