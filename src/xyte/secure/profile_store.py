"""
Tenant profile store: tenants, key slot metadata, and the active tenant.

Secrets are not stored here (see ``xyte.secure.keychain``).  The store keeps
the same data shape in two backends:

  FileProfileStore    — ``profile.json`` in the config dir, 0600, atomic write
  MemoryProfileStore  — in-process, used by tests and ephemeral runs

All mutations go through ``_load()`` / ``_save()`` so the two backends share
one implementation of the registry rules.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from xyte.core.exceptions import ProfileError
from xyte.secure.key_slots import build_slot_id, ensure_slot_name, matches_slot_ref

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ApiKeySlotMeta(BaseModel):
    slot_id: str
    provider: str
    name: str
    fingerprint: str
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    last_validated_at: str | None = None


class TenantKeyRegistry(BaseModel):
    slots: list[ApiKeySlotMeta] = Field(default_factory=list)
    active_slot_by_provider: dict[str, str] = Field(default_factory=dict)


class TenantProfile(BaseModel):
    id: str
    name: str
    hub_base_url: str | None = None
    key_registry: TenantKeyRegistry = Field(default_factory=TenantKeyRegistry)
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class ProfileStoreData(BaseModel):
    version: int = 2
    active_tenant_id: str | None = None
    tenants: list[TenantProfile] = Field(default_factory=list)

    def find_tenant(self, tenant_id: str) -> TenantProfile | None:
        return next((t for t in self.tenants if t.id == tenant_id), None)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ProfileStore(ABC):
    """Read/write interface over ``ProfileStoreData``."""

    @abstractmethod
    async def _load(self) -> ProfileStoreData:
        ...

    @abstractmethod
    async def _save(self, data: ProfileStoreData) -> None:
        ...

    async def get_data(self) -> ProfileStoreData:
        return await self._load()

    async def list_tenants(self) -> list[TenantProfile]:
        return (await self._load()).tenants

    async def get_tenant(self, tenant_id: str) -> TenantProfile | None:
        return (await self._load()).find_tenant(tenant_id)

    async def get_active_tenant(self) -> TenantProfile | None:
        data = await self._load()
        if not data.active_tenant_id:
            return None
        return data.find_tenant(data.active_tenant_id)

    async def upsert_tenant(
        self,
        tenant_id: str,
        name: str | None = None,
        hub_base_url: str | None = None,
    ) -> TenantProfile:
        """Create or update a tenant.  The first tenant created becomes active."""
        data = await self._load()
        tenant = data.find_tenant(tenant_id)
        if tenant is None:
            tenant = TenantProfile(id=tenant_id, name=name or tenant_id, hub_base_url=hub_base_url)
            data.tenants.append(tenant)
            if not data.active_tenant_id:
                data.active_tenant_id = tenant.id
        else:
            if name is not None:
                tenant.name = name
            if hub_base_url is not None:
                tenant.hub_base_url = hub_base_url
            tenant.updated_at = _now()
        await self._save(data)
        return tenant

    async def set_active_tenant(self, tenant_id: str) -> None:
        data = await self._load()
        if data.find_tenant(tenant_id) is None:
            raise ProfileError(f"Unknown tenant: {tenant_id}")
        data.active_tenant_id = tenant_id
        await self._save(data)

    async def remove_tenant(self, tenant_id: str) -> None:
        data = await self._load()
        data.tenants = [t for t in data.tenants if t.id != tenant_id]
        if data.active_tenant_id == tenant_id:
            data.active_tenant_id = data.tenants[0].id if data.tenants else None
        await self._save(data)

    async def list_key_slots(self, tenant_id: str, provider: str | None = None) -> list[ApiKeySlotMeta]:
        tenant = self._required(await self._load(), tenant_id)
        slots = tenant.key_registry.slots
        return [s for s in slots if s.provider == provider] if provider else list(slots)

    async def add_key_slot(
        self,
        tenant_id: str,
        provider: str,
        name: str,
        fingerprint: str,
        slot_id: str | None = None,
    ) -> ApiKeySlotMeta:
        """Register a slot.  The first slot for a provider becomes its active slot."""
        data = await self._load()
        tenant = self._required(data, tenant_id)
        registry = tenant.key_registry
        slot_name = ensure_slot_name(name)
        provider_slots = [s for s in registry.slots if s.provider == provider]

        if any(s.name.lower() == slot_name.lower() for s in provider_slots):
            raise ProfileError(f'A key slot named "{slot_name}" already exists for provider {provider}.')

        existing_ids = {s.slot_id for s in provider_slots}
        new_id = (slot_id or "").strip() or build_slot_id(slot_name, existing_ids)
        if new_id in existing_ids:
            raise ProfileError(f'A key slot with id "{new_id}" already exists for provider {provider}.')

        slot = ApiKeySlotMeta(slot_id=new_id, provider=provider, name=slot_name, fingerprint=fingerprint)
        registry.slots.append(slot)
        registry.active_slot_by_provider.setdefault(provider, new_id)
        tenant.updated_at = _now()
        await self._save(data)
        return slot

    async def update_key_slot(
        self,
        tenant_id: str,
        provider: str,
        slot_ref: str,
        fingerprint: str | None = None,
        name: str | None = None,
    ) -> ApiKeySlotMeta:
        data = await self._load()
        tenant = self._required(data, tenant_id)
        slot = self._find_slot(tenant, provider, slot_ref)
        if name is not None:
            slot.name = ensure_slot_name(name)
        if fingerprint is not None:
            slot.fingerprint = fingerprint
            slot.last_validated_at = None
        slot.updated_at = _now()
        tenant.updated_at = slot.updated_at
        await self._save(data)
        return slot

    async def get_active_key_slot(self, tenant_id: str, provider: str) -> ApiKeySlotMeta | None:
        """Return the active slot, falling back to the provider's first slot."""
        tenant = self._required(await self._load(), tenant_id)
        registry = tenant.key_registry
        active_id = registry.active_slot_by_provider.get(provider)
        if active_id:
            for slot in registry.slots:
                if slot.provider == provider and slot.slot_id == active_id:
                    return slot
        return next((s for s in registry.slots if s.provider == provider), None)

    async def set_active_key_slot(self, tenant_id: str, provider: str, slot_ref: str) -> ApiKeySlotMeta:
        data = await self._load()
        tenant = self._required(data, tenant_id)
        slot = self._find_slot(tenant, provider, slot_ref)
        tenant.key_registry.active_slot_by_provider[provider] = slot.slot_id
        tenant.updated_at = _now()
        await self._save(data)
        return slot

    async def mark_slot_validated(self, tenant_id: str, provider: str, slot_ref: str) -> None:
        data = await self._load()
        tenant = self._required(data, tenant_id)
        self._find_slot(tenant, provider, slot_ref).last_validated_at = _now()
        await self._save(data)

    @staticmethod
    def _find_slot(tenant: TenantProfile, provider: str, slot_ref: str) -> ApiKeySlotMeta:
        slot = next(
            (
                s
                for s in tenant.key_registry.slots
                if s.provider == provider and matches_slot_ref(s.slot_id, s.name, slot_ref)
            ),
            None,
        )
        if slot is None:
            raise ProfileError(f'Unknown slot "{slot_ref}" for provider {provider}.')
        return slot

    @staticmethod
    def _required(data: ProfileStoreData, tenant_id: str) -> TenantProfile:
        tenant = data.find_tenant(tenant_id)
        if tenant is None:
            raise ProfileError(f"Unknown tenant: {tenant_id}")
        return tenant


class MemoryProfileStore(ProfileStore):
    """In-memory profile store.  Each load hands out a copy, like a file re-read."""

    def __init__(self, data: ProfileStoreData | None = None) -> None:
        self._data = data or ProfileStoreData()

    async def _load(self) -> ProfileStoreData:
        return self._data.model_copy(deep=True)

    async def _save(self, data: ProfileStoreData) -> None:
        self._data = data.model_copy(deep=True)


class FileProfileStore(ProfileStore):
    """JSON file-backed profile store."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def _load(self) -> ProfileStoreData:
        if not self.path.exists():
            return ProfileStoreData()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ProfileError(f"Cannot read profile {self.path}: {exc}") from exc
        try:
            return ProfileStoreData.model_validate(raw)
        except ValidationError as exc:
            raise ProfileError(f"Invalid profile at {self.path}: {exc}") from exc

    async def _save(self, data: ProfileStoreData) -> None:
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        try:
            tmp_path.write_text(data.model_dump_json(indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise ProfileError(f"Cannot write profile to {self.path}: {exc}") from exc
        self.path.chmod(0o600)
        logger.debug("Profile saved: %s", self.path)
