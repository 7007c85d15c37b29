"""
Xyte API client interface.

The screen runtime only depends on this boundary.  Each namespace call takes
keyword arguments (``tenant_id``, optional ``path`` params and ``query``) and
returns the decoded JSON body, raising ``XyteError`` subclasses (or transport
exceptions) on failure.

Contract:
  - Calls are read-only (the runtime never issues writes)
  - Failures are raised, never returned as values; classification happens
    in ``xyte.core.connectivity``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

QueryParams = dict[str, str | int | bool | None]

ENDPOINT_KEYS: tuple[str, ...] = (
    "organization.getOrganizationInfo",
    "organization.devices.getDevices",
    "organization.incidents.getIncidents",
    "organization.tickets.getTickets",
    "organization.spaces.getSpaces",
    "organization.spaces.getSpace",
    "partner.devices.getDevices",
    "partner.tickets.getTickets",
)


class OrganizationNamespace(ABC):
    """Organization-scoped read endpoints."""

    @abstractmethod
    async def get_organization_info(self, tenant_id: str | None = None) -> Any:
        ...

    @abstractmethod
    async def get_devices(self, tenant_id: str | None = None, query: QueryParams | None = None) -> Any:
        ...

    @abstractmethod
    async def get_incidents(self, tenant_id: str | None = None) -> Any:
        ...

    @abstractmethod
    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        ...

    @abstractmethod
    async def get_spaces(self, tenant_id: str | None = None) -> Any:
        ...

    @abstractmethod
    async def get_space(self, space_id: str, tenant_id: str | None = None) -> Any:
        ...


class PartnerNamespace(ABC):
    """Partner-scoped read endpoints."""

    @abstractmethod
    async def get_devices(self, tenant_id: str | None = None) -> Any:
        ...

    @abstractmethod
    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        ...


class XyteClient(ABC):
    """Aggregate client exposing the organization and partner namespaces."""

    organization: OrganizationNamespace
    partner: PartnerNamespace

    @abstractmethod
    async def aclose(self) -> None:
        """Release network resources."""
        ...
