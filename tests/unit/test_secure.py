"""Unit tests for key slots, the profile store, and the keychains."""

from __future__ import annotations

import json
import sys
import types
from pathlib import Path

import pytest

from xyte.core.exceptions import ProfileError
from xyte.secure.key_slots import (
    build_slot_id,
    make_key_fingerprint,
    matches_slot_ref,
    slugify_slot_name,
)
from xyte.secure.keychain import KeyringKeychain, MemoryKeychain, slot_account
from xyte.secure.profile_store import FileProfileStore, MemoryProfileStore


class TestKeySlots:
    def test_fingerprint_is_short_and_stable(self) -> None:
        fp = make_key_fingerprint("abc")
        assert fp.startswith("sha256:")
        assert len(fp) == len("sha256:") + 12
        assert fp == make_key_fingerprint("abc")

    def test_slugify(self) -> None:
        assert slugify_slot_name("  Primary Key!  ") == "primary-key"
        assert slugify_slot_name("!!!") == "default"

    def test_build_slot_id_suffixes(self) -> None:
        assert build_slot_id("Primary", set()) == "primary"
        assert build_slot_id("Primary", {"primary"}) == "primary-2"
        assert build_slot_id("Primary", {"primary", "primary-2"}) == "primary-3"

    def test_matches_slot_ref(self) -> None:
        assert matches_slot_ref("primary", "Primary Key", "PRIMARY")
        assert matches_slot_ref("primary", "Primary Key", "primary key")
        assert not matches_slot_ref("primary", "Primary Key", "  ")


class TestProfileStore:
    @pytest.mark.asyncio
    async def test_first_tenant_becomes_active(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme")
        await store.upsert_tenant("globex")
        active = await store.get_active_tenant()
        assert active is not None and active.id == "acme"

    @pytest.mark.asyncio
    async def test_upsert_updates_name(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme", name="Acme")
        await store.upsert_tenant("acme", name="Acme Corp")
        tenant = await store.get_tenant("acme")
        assert tenant is not None and tenant.name == "Acme Corp"
        assert len(await store.list_tenants()) == 1

    @pytest.mark.asyncio
    async def test_first_slot_becomes_active(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme")
        await store.add_key_slot("acme", "xyte-org", "Primary", "fp1")
        await store.add_key_slot("acme", "xyte-org", "Backup", "fp2")
        active = await store.get_active_key_slot("acme", "xyte-org")
        assert active is not None and active.slot_id == "primary"

        await store.set_active_key_slot("acme", "xyte-org", "backup")
        active = await store.get_active_key_slot("acme", "xyte-org")
        assert active is not None and active.name == "Backup"

    @pytest.mark.asyncio
    async def test_duplicate_slot_name_rejected(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme")
        await store.add_key_slot("acme", "xyte-org", "Primary", "fp1")
        with pytest.raises(ProfileError):
            await store.add_key_slot("acme", "xyte-org", "primary", "fp2")

    @pytest.mark.asyncio
    async def test_update_key_slot_resets_validation(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme")
        await store.add_key_slot("acme", "xyte-org", "Primary", "fp1")
        await store.mark_slot_validated("acme", "xyte-org", "primary")
        slot = await store.update_key_slot("acme", "xyte-org", "primary", fingerprint="fp2")
        assert slot.fingerprint == "fp2"
        assert slot.last_validated_at is None

    @pytest.mark.asyncio
    async def test_unknown_tenant_and_slot(self) -> None:
        store = MemoryProfileStore()
        with pytest.raises(ProfileError):
            await store.list_key_slots("nobody")
        await store.upsert_tenant("acme")
        with pytest.raises(ProfileError):
            await store.set_active_key_slot("acme", "xyte-org", "missing")

    @pytest.mark.asyncio
    async def test_remove_active_tenant_promotes_next(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme")
        await store.upsert_tenant("globex")
        await store.remove_tenant("acme")
        assert (await store.get_data()).active_tenant_id == "globex"

    @pytest.mark.asyncio
    async def test_memory_store_hands_out_copies(self) -> None:
        store = MemoryProfileStore()
        await store.upsert_tenant("acme", name="Acme")
        data = await store.get_data()
        data.tenants[0].name = "mutated"
        tenant = await store.get_tenant("acme")
        assert tenant is not None and tenant.name == "Acme"

    @pytest.mark.asyncio
    async def test_file_store_persists_with_0600(self, tmp_path: Path) -> None:
        path = tmp_path / "profile.json"
        store = FileProfileStore(path)
        await store.upsert_tenant("acme")
        await store.add_key_slot("acme", "xyte-org", "Primary", "fp1")

        assert path.stat().st_mode & 0o777 == 0o600
        raw = json.loads(path.read_text())
        assert raw["active_tenant_id"] == "acme"
        assert "secret" not in path.read_text()

        reopened = FileProfileStore(path)
        slots = await reopened.list_key_slots("acme", "xyte-org")
        assert [s.slot_id for s in slots] == ["primary"]

    @pytest.mark.asyncio
    async def test_file_store_missing_file_is_empty(self, tmp_path: Path) -> None:
        data = await FileProfileStore(tmp_path / "absent.json").get_data()
        assert data.tenants == []

    @pytest.mark.asyncio
    async def test_file_store_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "profile.json"
        path.write_text("{not json")
        with pytest.raises(ProfileError):
            await FileProfileStore(path).get_data()


class TestKeychains:
    @pytest.mark.asyncio
    async def test_memory_keychain_round_trip(self) -> None:
        keychain = MemoryKeychain()
        await keychain.set_slot_secret("acme", "xyte-org", "primary", "s3cret")
        assert await keychain.get_slot_secret("acme", "xyte-org", "primary") == "s3cret"
        await keychain.clear_slot_secret("acme", "xyte-org", "primary")
        assert await keychain.get_slot_secret("acme", "xyte-org", "primary") is None

    @pytest.mark.asyncio
    async def test_keyring_keychain_uses_service_and_account(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store: dict[tuple[str, str], str] = {}
        mock_keyring = types.ModuleType("keyring")
        mock_keyring.set_password = lambda svc, acct, val: store.update({(svc, acct): val})  # type: ignore[attr-defined]
        mock_keyring.get_password = lambda svc, acct: store.get((svc, acct))  # type: ignore[attr-defined]
        mock_errors = types.ModuleType("keyring.errors")
        mock_errors.KeyringError = type("KeyringError", (Exception,), {})  # type: ignore[attr-defined]
        mock_errors.PasswordDeleteError = type("PasswordDeleteError", (Exception,), {})  # type: ignore[attr-defined]
        monkeypatch.setitem(sys.modules, "keyring", mock_keyring)
        monkeypatch.setitem(sys.modules, "keyring.errors", mock_errors)

        keychain = KeyringKeychain()
        await keychain.set_slot_secret("acme", "xyte-org", "primary", "s3cret")
        assert store == {("xyte-cli", slot_account("acme", "xyte-org", "primary")): "s3cret"}
        assert await keychain.get_slot_secret("acme", "xyte-org", "primary") == "s3cret"

    def test_slot_account_format(self) -> None:
        assert slot_account("acme", "xyte-org", "primary") == "acme:xyte-org:primary"
