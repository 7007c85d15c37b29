"""In-memory Xyte client and seeded stores shared by the test suite."""

from __future__ import annotations

from typing import Any

from xyte.client.base import OrganizationNamespace, PartnerNamespace, QueryParams, XyteClient
from xyte.secure.key_slots import make_key_fingerprint
from xyte.secure.keychain import MemoryKeychain
from xyte.secure.profile_store import MemoryProfileStore

DEVICES = [
    {"id": "dev-1", "name": "Lobby Display", "status": "online", "space_id": "sp-1"},
    {"id": "dev-2", "name": "Boardroom Codec", "status": "offline", "space": {"id": "sp-2"}},
]
INCIDENTS = [{"id": "inc-1", "title": "Projector lamp", "severity": "high", "status": "open"}]
TICKETS = [{"id": "tk-1", "subject": "Replace cable", "status": "open"}]
SPACES = [{"id": "sp-1", "name": "Lobby"}, {"id": "sp-2", "name": "Boardroom"}]


class _Responder:
    """Returns canned payloads, or raises a canned error, and records every call."""

    def __init__(self, responses: dict[str, Any], calls: list[tuple[str, dict[str, Any]]]) -> None:
        self._responses = responses
        self._calls = calls

    async def _reply(self, key: str, **kwargs: Any) -> Any:
        self._calls.append((key, kwargs))
        value = self._responses.get(key)
        if isinstance(value, list) and value and all(isinstance(v, BaseException) for v in value):
            # A list of errors is consumed one per call; the last one repeats
            error = value.pop(0) if len(value) > 1 else value[0]
            raise error
        if isinstance(value, BaseException):
            raise value
        return value


class _FakeOrganization(_Responder, OrganizationNamespace):
    async def get_organization_info(self, tenant_id: str | None = None) -> Any:
        return await self._reply("organization.getOrganizationInfo", tenant_id=tenant_id)

    async def get_devices(self, tenant_id: str | None = None, query: QueryParams | None = None) -> Any:
        return await self._reply("organization.devices.getDevices", tenant_id=tenant_id, query=query)

    async def get_incidents(self, tenant_id: str | None = None) -> Any:
        return await self._reply("organization.incidents.getIncidents", tenant_id=tenant_id)

    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        return await self._reply("organization.tickets.getTickets", tenant_id=tenant_id)

    async def get_spaces(self, tenant_id: str | None = None) -> Any:
        return await self._reply("organization.spaces.getSpaces", tenant_id=tenant_id)

    async def get_space(self, space_id: str, tenant_id: str | None = None) -> Any:
        return await self._reply("organization.spaces.getSpace", space_id=space_id, tenant_id=tenant_id)


class _FakePartner(_Responder, PartnerNamespace):
    async def get_devices(self, tenant_id: str | None = None) -> Any:
        return await self._reply("partner.devices.getDevices", tenant_id=tenant_id)

    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        return await self._reply("partner.tickets.getTickets", tenant_id=tenant_id)


class FakeXyteClient(XyteClient):
    """
    Client whose responses are keyed by endpoint key.

    A value that is an exception is raised on every call; a list of exceptions
    is raised one per call (the last repeats).
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = {
            "organization.getOrganizationInfo": {"name": "Acme"},
            "organization.devices.getDevices": {"data": [dict(d) for d in DEVICES]},
            "organization.incidents.getIncidents": {"incidents": [dict(i) for i in INCIDENTS]},
            "organization.tickets.getTickets": {"tickets": [dict(t) for t in TICKETS]},
            "organization.spaces.getSpaces": {"spaces": [dict(s) for s in SPACES]},
            "organization.spaces.getSpace": {"id": "sp-1", "name": "Lobby", "floor": 1},
            "partner.devices.getDevices": {"devices": []},
            "partner.tickets.getTickets": {"tickets": []},
        }
        self.responses.update(responses or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.organization = _FakeOrganization(self.responses, self.calls)
        self.partner = _FakePartner(self.responses, self.calls)
        self.closed = False

    def count(self, key: str) -> int:
        return sum(1 for name, _ in self.calls if name == key)

    async def aclose(self) -> None:
        self.closed = True


async def seeded_stores(
    with_tenant: bool = True,
    with_key: bool = True,
    tenant_id: str = "acme",
) -> tuple[MemoryProfileStore, MemoryKeychain]:
    """Memory stores with an active tenant and (optionally) an ``xyte-org`` key."""
    store = MemoryProfileStore()
    keychain = MemoryKeychain()
    if with_tenant:
        await store.upsert_tenant(tenant_id, name="Acme Corp")
        if with_key:
            slot = await store.add_key_slot(tenant_id, "xyte-org", "primary", make_key_fingerprint("secret-key"))
            await keychain.set_slot_secret(tenant_id, "xyte-org", slot.slot_id, "secret-key")
    return store, keychain
