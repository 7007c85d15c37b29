"""
Screen data loaders.

Each loader runs its API calls under the retry policy and returns a
``LoadOutcome`` instead of raising: on failure the screen still renders with
fallback data, and the classified failure travels with the outcome into the
frame's ``meta.connection`` / ``meta.retry``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from xyte.client.base import XyteClient
from xyte.core.connectivity import (
    ConnectionErrorClass,
    ConnectionState,
    ConnectivityResult,
    classify_connectivity_error,
    state_severity,
)
from xyte.core.retry import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    RetryState,
    compute_retry_delay_ms,
    is_retryable_error_class,
    merge_retry_states,
)

T = TypeVar("T")

Record = dict[str, Any]
Sleep = Callable[[float], Awaitable[Any]]

logger = logging.getLogger(__name__)

_INCIDENT_KEYS = ("incidents", "data", "items")
_INCIDENT_WRAPPERS = ("payload", "result", "response", "body")


# ---------------------------------------------------------------------------
# Payload normalization
# ---------------------------------------------------------------------------


def normalize_record(value: Any) -> Record:
    """A mapping becomes a plain dict record; anything else is wrapped as ``{"value": ...}``."""
    if isinstance(value, Mapping):
        return dict(value)
    return {"value": value}


def extract_array(value: Any, preferred_keys: tuple[str, ...] = ("data", "items")) -> list[Any]:
    """Find the list inside an API envelope: the value itself, a preferred key, then any list value."""
    if isinstance(value, list):
        return value
    if not isinstance(value, Mapping):
        return []
    for key in preferred_keys:
        if isinstance(value.get(key), list):
            return value[key]
    for item in value.values():
        if isinstance(item, list):
            return item
    return []


def _extract_incidents(value: Any) -> list[Any]:
    primary = extract_array(value, _INCIDENT_KEYS)
    if primary or not isinstance(value, Mapping):
        return primary
    for wrapper in _INCIDENT_WRAPPERS:
        nested = extract_array(value.get(wrapper), _INCIDENT_KEYS)
        if nested:
            return nested
    return primary


def get_space_id(space: Any) -> str:
    record = normalize_record(space)
    for key in ("id", "_id", "space_id"):
        if record.get(key) is not None:
            return str(record[key])
    return ""


def get_space_name(space: Any) -> str:
    record = normalize_record(space)
    for key in ("name", "title", "path"):
        if record.get(key) is not None:
            return str(record[key])
    return "n/a"


def _matches_space(device: Any, space_id: str) -> bool:
    record = normalize_record(device)
    nested = record.get("space")
    candidates = (
        record.get("space_id"),
        nested.get("id") if isinstance(nested, Mapping) else None,
        record.get("spaceId"),
    )
    return any(c is not None and str(c) == space_id for c in candidates)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadOutcome(Generic[T]):
    data: T
    connection_state: ConnectionState
    retry: RetryState = field(default_factory=RetryState)
    error: ConnectivityResult | None = None


def pick_worst_outcome(outcomes: list[LoadOutcome[Any]]) -> LoadOutcome[Any]:
    """Most severe outcome; on equal severity the later one wins."""
    worst = outcomes[0]
    for current in outcomes[1:]:
        if state_severity(current.connection_state) >= state_severity(worst.connection_state):
            worst = current
    return worst


def merge_retry(outcomes: list[LoadOutcome[Any]]) -> RetryState:
    return merge_retry_states([o.retry for o in outcomes])


async def load_with_outcome(
    operation: Callable[[], Awaitable[T]],
    fallback: T,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
    log: logging.Logger | None = None,
) -> LoadOutcome[T]:
    """
    Run ``operation`` with retries.

    Non-retriable failures (``auth``, ``missing_key``) stop immediately; others
    back off per ``compute_retry_delay_ms`` until ``max_attempts`` is reached.
    """
    p = policy or DEFAULT_RETRY_POLICY
    log = log or logger
    retried = False
    attempts = 0

    for attempt in range(1, p.max_attempts + 1):
        attempts = attempt
        try:
            data = await operation()
        except Exception as exc:  # noqa: BLE001
            classified = classify_connectivity_error(exc)
            kind = classified.error_class.value if classified.error_class else None
            if not (is_retryable_error_class(kind) and classified.retriable) or attempt >= p.max_attempts:
                log.debug("Load failed after %d attempt(s): %s", attempt, classified.message)
                return LoadOutcome(
                    data=fallback,
                    connection_state=classified.state,
                    error=classified,
                    retry=RetryState(attempts=attempts, retried=retried),
                )
            retried = True
            wait_ms = compute_retry_delay_ms(attempt, p)
            log.debug("Load attempt %d failed (%s); retrying in %dms", attempt, kind, wait_ms)
            await sleep(wait_ms / 1000)
            continue
        return LoadOutcome(
            data=data,
            connection_state=ConnectionState.CONNECTED,
            retry=RetryState(attempts=attempts, retried=retried),
        )

    return LoadOutcome(
        data=fallback,
        connection_state=ConnectionState.UNKNOWN_ERROR,
        error=ConnectivityResult(
            state=ConnectionState.UNKNOWN_ERROR,
            error_class=ConnectionErrorClass.UNKNOWN,
            message="Unknown loader failure.",
            retriable=True,
        ),
        retry=RetryState(attempts=attempts, retried=retried),
    )


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DashboardData:
    devices: list[Record]
    incidents: list[Record]
    tickets: list[Record]


@dataclass(frozen=True)
class TicketsData:
    mode: Literal["organization", "partner"]
    tickets: list[Record]


@dataclass(frozen=True)
class SpaceDrilldown:
    space_detail: Any
    devices_in_space: list[Record]
    pane_status: str


class ScreenDataLoader:
    """Binds a client, tenant and retry policy to the per-screen loaders."""

    def __init__(
        self,
        client: XyteClient,
        tenant_id: str | None = None,
        policy: RetryPolicy | None = None,
        logger: logging.Logger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.tenant_id = tenant_id
        self.policy = policy or DEFAULT_RETRY_POLICY
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    async def _load(self, operation: Callable[[], Awaitable[T]], fallback: T) -> LoadOutcome[T]:
        return await load_with_outcome(operation, fallback, self.policy, self._sleep, self._logger)

    async def load_devices(self) -> LoadOutcome[list[Record]]:
        async def operation() -> list[Record]:
            try:
                raw = await self.client.organization.get_devices(tenant_id=self.tenant_id)
            except Exception as exc:  # noqa: BLE001
                self._logger.debug("Organization devices failed (%s); trying partner", exc)
                raw = await self.client.partner.get_devices(tenant_id=self.tenant_id)
            return [normalize_record(d) for d in extract_array(raw, ("devices", "data", "items"))]

        return await self._load(operation, [])

    async def load_incidents(self) -> LoadOutcome[list[Record]]:
        async def operation() -> list[Record]:
            raw = await self.client.organization.get_incidents(tenant_id=self.tenant_id)
            return [normalize_record(i) for i in _extract_incidents(raw)]

        return await self._load(operation, [])

    async def load_tickets(self) -> LoadOutcome[TicketsData]:
        async def org_tickets() -> list[Record]:
            raw = await self.client.organization.get_tickets(tenant_id=self.tenant_id)
            return [normalize_record(t) for t in extract_array(raw, ("tickets", "data", "items"))]

        async def partner_tickets() -> list[Record]:
            raw = await self.client.partner.get_tickets(tenant_id=self.tenant_id)
            return [normalize_record(t) for t in extract_array(raw, ("tickets", "data", "items"))]

        org = await self._load(org_tickets, [])
        if org.data or org.connection_state == ConnectionState.CONNECTED:
            return LoadOutcome(
                data=TicketsData(mode="organization", tickets=org.data),
                connection_state=org.connection_state,
                error=org.error,
                retry=org.retry,
            )

        partner = await self._load(partner_tickets, [])
        worst = pick_worst_outcome([org, partner])
        return LoadOutcome(
            data=TicketsData(mode="partner", tickets=partner.data),
            connection_state=worst.connection_state,
            error=worst.error,
            retry=merge_retry([org, partner]),
        )

    async def load_dashboard(self) -> LoadOutcome[DashboardData]:
        devices, incidents, tickets = await asyncio.gather(
            self.load_devices(), self.load_incidents(), self.load_tickets()
        )
        outcomes: list[LoadOutcome[Any]] = [devices, incidents, tickets]
        worst = pick_worst_outcome(outcomes)
        return LoadOutcome(
            data=DashboardData(devices=devices.data, incidents=incidents.data, tickets=tickets.data.tickets),
            connection_state=worst.connection_state,
            error=worst.error,
            retry=merge_retry(outcomes),
        )

    async def load_spaces(self) -> LoadOutcome[list[Record]]:
        async def operation() -> list[Record]:
            raw = await self.client.organization.get_spaces(tenant_id=self.tenant_id)
            return [normalize_record(s) for s in extract_array(raw, ("spaces", "data", "items"))]

        return await self._load(operation, [])

    async def load_space_drilldown(
        self, space_id: str, all_devices_cache: list[Record] | None = None
    ) -> LoadOutcome[SpaceDrilldown]:
        async def detail() -> Any:
            return await self.client.organization.get_space(space_id, tenant_id=self.tenant_id)

        async def queried_devices() -> list[Record]:
            raw = await self.client.organization.get_devices(
                tenant_id=self.tenant_id, query={"space_id": space_id}
            )
            return [normalize_record(d) for d in extract_array(raw, ("devices", "data", "items"))]

        detail_outcome, devices_outcome = await asyncio.gather(
            self._load(detail, None), self._load(queried_devices, [])
        )
        outcomes: list[LoadOutcome[Any]] = [detail_outcome, devices_outcome]

        devices_in_space = devices_outcome.data
        pane_status = "Loaded space detail and device listing."
        if not devices_in_space:
            if all_devices_cache:
                devices_in_space = [d for d in all_devices_cache if _matches_space(d, space_id)]
                pane_status = "Filtered devices by cached space_id fallback."
            else:
                fallback = await self.load_devices()
                outcomes.append(fallback)
                devices_in_space = [d for d in fallback.data if _matches_space(d, space_id)]
                pane_status = "Filtered devices by fetched space_id fallback."

        worst = pick_worst_outcome(outcomes)
        return LoadOutcome(
            data=SpaceDrilldown(
                space_detail=detail_outcome.data,
                devices_in_space=devices_in_space,
                pane_status=pane_status,
            ),
            connection_state=worst.connection_state,
            error=worst.error,
            retry=merge_retry(outcomes),
        )
