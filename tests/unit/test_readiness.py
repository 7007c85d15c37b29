"""Unit tests for the readiness gate."""

from __future__ import annotations

import pytest

from tests.fakes import FakeXyteClient, seeded_stores
from xyte.core.connectivity import ConnectionState
from xyte.core.exceptions import ProfileError, XyteHttpError
from xyte.core.readiness import (
    ReadinessCheck,
    ReadinessState,
    can_open_screen,
    evaluate_readiness,
    is_operational_screen,
)
from xyte.secure.keychain import MemoryKeychain
from xyte.secure.profile_store import MemoryProfileStore, ProfileStoreData


class TestEvaluateReadiness:
    @pytest.mark.asyncio
    async def test_no_tenant_needs_setup(self) -> None:
        store, keychain = await seeded_stores(with_tenant=False)
        readiness = await evaluate_readiness(store, keychain)
        assert readiness.state == ReadinessState.NEEDS_SETUP
        assert readiness.missing_items == ["No active tenant is configured."]
        assert readiness.recommended_actions

    @pytest.mark.asyncio
    async def test_unknown_tenant_needs_setup(self) -> None:
        store, keychain = await seeded_stores()
        readiness = await evaluate_readiness(store, keychain, tenant_id="ghost")
        assert readiness.state == ReadinessState.NEEDS_SETUP
        assert readiness.tenant_id == "ghost"
        assert "ghost" in readiness.missing_items[0]

    @pytest.mark.asyncio
    async def test_tenant_without_key_needs_setup(self) -> None:
        store, keychain = await seeded_stores(with_key=False)
        readiness = await evaluate_readiness(store, keychain)
        assert readiness.state == ReadinessState.NEEDS_SETUP
        assert [p.provider for p in readiness.providers] == ["xyte-org", "xyte-partner", "xyte-device"]
        assert not any(p.has_active_secret for p in readiness.providers)

    @pytest.mark.asyncio
    async def test_key_without_probe_is_ready(self) -> None:
        store, keychain = await seeded_stores()
        readiness = await evaluate_readiness(store, keychain)
        assert readiness.state == ReadinessState.READY
        assert readiness.connection_state == ConnectionState.NOT_CHECKED
        org = readiness.providers[0]
        assert org.active_slot_id == "primary"
        assert org.has_active_secret is True

    @pytest.mark.asyncio
    async def test_probe_connected(self) -> None:
        store, keychain = await seeded_stores()
        client = FakeXyteClient()
        readiness = await evaluate_readiness(store, keychain, client=client, check_connectivity=True)
        assert readiness.state == ReadinessState.READY
        assert readiness.connection_state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_probe_rejected_credentials_need_setup(self) -> None:
        store, keychain = await seeded_stores()
        rejected = XyteHttpError("Unauthorized", status=401)
        client = FakeXyteClient(
            {"organization.getOrganizationInfo": rejected, "partner.devices.getDevices": rejected}
        )
        readiness = await evaluate_readiness(store, keychain, client=client, check_connectivity=True)
        assert readiness.state == ReadinessState.NEEDS_SETUP
        assert readiness.connection_state == ConnectionState.AUTH_REQUIRED

    @pytest.mark.asyncio
    async def test_probe_unreachable_is_degraded(self) -> None:
        store, keychain = await seeded_stores()
        down = XyteHttpError("Bad gateway", status=502)
        client = FakeXyteClient({"organization.getOrganizationInfo": down, "partner.devices.getDevices": down})
        readiness = await evaluate_readiness(store, keychain, client=client, check_connectivity=True)
        assert readiness.state == ReadinessState.DEGRADED
        assert readiness.connectivity.retriable is True

    @pytest.mark.asyncio
    async def test_no_probe_without_credentials(self) -> None:
        store, keychain = await seeded_stores(with_key=False)
        client = FakeXyteClient()
        await evaluate_readiness(store, keychain, client=client, check_connectivity=True)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_never_raises(self) -> None:
        class BrokenStore(MemoryProfileStore):
            async def _load(self) -> ProfileStoreData:
                raise ProfileError("disk on fire")

        readiness = await evaluate_readiness(BrokenStore(), MemoryKeychain())
        assert readiness.state == ReadinessState.NEEDS_SETUP
        assert "disk on fire" in readiness.missing_items[0]

    @pytest.mark.asyncio
    async def test_to_meta_is_camel_case(self) -> None:
        store, keychain = await seeded_stores()
        meta = (await evaluate_readiness(store, keychain)).to_meta()
        assert meta["state"] == "ready"
        assert meta["tenantId"] == "acme"
        assert meta["connectionState"] == "not_checked"


class TestScreenGate:
    def test_setup_and_config_are_not_operational(self) -> None:
        assert is_operational_screen("setup") is False
        assert is_operational_screen("config") is False
        assert is_operational_screen("dashboard") is True

    def test_operational_screens_require_ready(self) -> None:
        degraded = ReadinessCheck(state=ReadinessState.DEGRADED)
        ready = ReadinessCheck(state=ReadinessState.READY)
        assert can_open_screen("devices", degraded) is False
        assert can_open_screen("devices", ready) is True
        assert can_open_screen("config", degraded) is True
