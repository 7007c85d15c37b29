"""
Readiness gate: decides whether operational screens may be served.

    needs_setup   no tenant, no usable key slot, or credentials rejected
    degraded      credentials present but the API is unreachable / throttled
    ready         everything checks out (or connectivity was not probed)

``evaluate_readiness()`` never raises; profile or keychain failures are
reported as missing items.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from xyte.core.connectivity import (
    ConnectionState,
    ConnectivityResult,
    not_checked,
    probe_connectivity,
)
from xyte.core.exceptions import XyteError
from xyte.secure.key_slots import XYTE_PROVIDERS
from xyte.secure.profile_store import TenantProfile

if TYPE_CHECKING:
    from xyte.client.base import XyteClient
    from xyte.secure.keychain import KeychainStore
    from xyte.secure.profile_store import ProfileStore

logger = logging.getLogger(__name__)

NON_OPERATIONAL_SCREENS: frozenset[str] = frozenset({"setup", "config"})

SETUP_COMMAND_HINT = 'Run "xyte setup run --tenant <tenant-id> --key <value>".'


class ReadinessState(StrEnum):
    READY = "ready"
    NEEDS_SETUP = "needs_setup"
    DEGRADED = "degraded"


class ProviderReadiness(BaseModel):
    provider: str
    slot_count: int = 0
    active_slot_id: str | None = None
    active_slot_name: str | None = None
    has_active_secret: bool = False


class ReadinessCheck(BaseModel):
    state: ReadinessState
    tenant_id: str | None = None
    active_tenant: TenantProfile | None = None
    missing_items: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    providers: list[ProviderReadiness] = Field(default_factory=list)
    connection_state: ConnectionState = ConnectionState.NOT_CHECKED
    connectivity: ConnectivityResult = Field(default_factory=not_checked)

    def to_meta(self) -> dict[str, Any]:
        """Compact camelCase form used in frame ``meta.readiness``."""
        return {
            "state": self.state.value,
            "tenantId": self.tenant_id,
            "connectionState": self.connection_state.value,
            "missingItems": list(self.missing_items),
            "recommendedActions": list(self.recommended_actions),
        }


def _connection_to_state(connection: ConnectivityResult) -> ReadinessState:
    if connection.state in (ConnectionState.CONNECTED, ConnectionState.NOT_CHECKED):
        return ReadinessState.READY
    if connection.state in (ConnectionState.AUTH_REQUIRED, ConnectionState.MISSING_KEY):
        return ReadinessState.NEEDS_SETUP
    return ReadinessState.DEGRADED


async def evaluate_readiness(
    profile_store: ProfileStore,
    keychain: KeychainStore,
    tenant_id: str | None = None,
    client: XyteClient | None = None,
    check_connectivity: bool = False,
) -> ReadinessCheck:
    """Evaluate tenant, key slot and (optionally) API readiness."""
    try:
        return await _evaluate(profile_store, keychain, tenant_id, client, check_connectivity)
    except (XyteError, OSError) as exc:
        logger.warning("Readiness evaluation failed: %s", exc)
        return ReadinessCheck(
            state=ReadinessState.NEEDS_SETUP,
            tenant_id=tenant_id,
            missing_items=[f"Profile could not be read: {exc}"],
            recommended_actions=[SETUP_COMMAND_HINT],
        )


async def _evaluate(
    profile_store: ProfileStore,
    keychain: KeychainStore,
    tenant_id: str | None,
    client: XyteClient | None,
    check_connectivity: bool,
) -> ReadinessCheck:
    profile = await profile_store.get_data()
    resolved_id = tenant_id or profile.active_tenant_id

    if not resolved_id:
        return ReadinessCheck(
            state=ReadinessState.NEEDS_SETUP,
            missing_items=["No active tenant is configured."],
            recommended_actions=[
                'Run "xyte tui" for guided setup, or "xyte setup run --tenant default --key <value>".'
            ],
        )

    tenant = await profile_store.get_tenant(resolved_id)
    if tenant is None:
        return ReadinessCheck(
            state=ReadinessState.NEEDS_SETUP,
            tenant_id=resolved_id,
            missing_items=[f'Active tenant "{resolved_id}" does not exist in profile.'],
            recommended_actions=['Run "xyte setup run" to recreate the active tenant profile.'],
        )

    missing_items: list[str] = []
    recommended_actions: list[str] = []
    providers: list[ProviderReadiness] = []

    for provider in XYTE_PROVIDERS:
        slots = await profile_store.list_key_slots(tenant.id, provider)
        active = await profile_store.get_active_key_slot(tenant.id, provider)
        has_secret = False
        if active is not None:
            has_secret = bool(await keychain.get_slot_secret(tenant.id, provider, active.slot_id))
        providers.append(
            ProviderReadiness(
                provider=provider,
                slot_count=len(slots),
                active_slot_id=active.slot_id if active else None,
                active_slot_name=active.name if active else None,
                has_active_secret=has_secret,
            )
        )

    has_credential = any(p.has_active_secret for p in providers)
    if not has_credential:
        missing_items.append(
            "No active Xyte API key slot is configured (xyte-org / xyte-partner / xyte-device)."
        )
        recommended_actions.append(SETUP_COMMAND_HINT)

    connectivity = not_checked()
    if client is not None and check_connectivity and has_credential:
        connectivity = await probe_connectivity(client, tenant_id=tenant.id)
        if connectivity.state in (ConnectionState.AUTH_REQUIRED, ConnectionState.MISSING_KEY):
            missing_items.append(f"Connectivity check requires updated credentials: {connectivity.message}")
            recommended_actions.append('Use "xyte setup run --slot-name <name>" to update the active slot.')
        elif connectivity.state != ConnectionState.CONNECTED:
            recommended_actions.append('Use the reconnect action in the TUI or run "xyte config doctor".')

    state = ReadinessState.NEEDS_SETUP if missing_items else _connection_to_state(connectivity)
    return ReadinessCheck(
        state=state,
        tenant_id=tenant.id,
        active_tenant=tenant,
        missing_items=missing_items,
        recommended_actions=recommended_actions,
        providers=providers,
        connection_state=connectivity.state,
        connectivity=connectivity,
    )


def is_operational_screen(screen: str) -> bool:
    return screen not in NON_OPERATIONAL_SCREENS


def can_open_screen(screen: str, readiness: ReadinessCheck) -> bool:
    """Setup and config are always reachable; everything else requires ``ready``."""
    if not is_operational_screen(screen):
        return True
    return readiness.state == ReadinessState.READY
