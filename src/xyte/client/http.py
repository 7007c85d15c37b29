"""
httpx-backed Xyte client.

Endpoint paths are not baked in: ``[api.endpoints]`` in config maps each
endpoint key to a path template, e.g.::

    [api.endpoints]
    "organization.getOrganizationInfo" = "/core/v1/organization/info"
    "organization.spaces.getSpace" = "/core/v1/organization/spaces/{space_id}"

The API key comes from the tenant's active slot for the endpoint's provider
(``organization.*`` → ``xyte-org``, ``partner.*`` → ``xyte-partner``).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from xyte.client.base import OrganizationNamespace, PartnerNamespace, QueryParams, XyteClient
from xyte.core.config import ApiConfig
from xyte.core.exceptions import XyteAuthError, XyteHttpError, XyteValidationError
from xyte.secure.keychain import KeychainStore
from xyte.secure.profile_store import ProfileStore

_PROVIDER_BY_NAMESPACE = {"organization": "xyte-org", "partner": "xyte-partner"}


class HttpXyteClient(XyteClient):
    """Read-only Xyte client over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        api: ApiConfig,
        profile_store: ProfileStore,
        keychain: KeychainStore,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api = api
        self._profile_store = profile_store
        self._keychain = keychain
        self._logger = logger or logging.getLogger(__name__)
        self._http = httpx.AsyncClient(timeout=api.timeout_seconds, transport=transport)
        self.organization = _Organization(self)
        self.partner = _Partner(self)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _api_key(self, endpoint_key: str, tenant_id: str | None) -> tuple[str, str | None]:
        provider = _PROVIDER_BY_NAMESPACE.get(endpoint_key.split(".", 1)[0], "xyte-org")
        tenant = (
            await self._profile_store.get_tenant(tenant_id)
            if tenant_id
            else await self._profile_store.get_active_tenant()
        )
        if tenant is None:
            raise XyteAuthError("Missing API key: no active tenant is configured.")
        slot = await self._profile_store.get_active_key_slot(tenant.id, provider)
        secret = await self._keychain.get_slot_secret(tenant.id, provider, slot.slot_id) if slot else None
        if not secret:
            raise XyteAuthError(f"Missing API key for provider {provider} (tenant {tenant.id}).")
        return secret, tenant.hub_base_url

    async def call(
        self,
        endpoint_key: str,
        tenant_id: str | None = None,
        path: dict[str, str] | None = None,
        query: QueryParams | None = None,
    ) -> Any:
        template = self._api.endpoints.get(endpoint_key)
        if not template:
            raise XyteValidationError(
                f"Endpoint {endpoint_key!r} is not configured. Add it under [api.endpoints]."
            )
        try:
            rel_path = template.format(**(path or {}))
        except KeyError as exc:
            raise XyteValidationError(f"Missing required path parameter: {exc.args[0]}") from exc

        api_key, tenant_base = await self._api_key(endpoint_key, tenant_id)
        url = (tenant_base or self._api.hub_base_url).rstrip("/") + rel_path
        params = {k: v for k, v in (query or {}).items() if v is not None}

        self._logger.debug("GET %s (%s)", url, endpoint_key)
        response = await self._http.get(url, params=params, headers={"Authorization": api_key})
        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return {"message": response.text}

        message = _error_message(response) or f"HTTP {response.status_code}"
        raise XyteHttpError(
            message,
            status=response.status_code,
            status_text=response.reason_phrase,
            endpoint_key=endpoint_key,
            details=_safe_json(response),
        )


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    body = _safe_json(response)
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return response.text.strip()[:200]


class _Organization(OrganizationNamespace):
    def __init__(self, client: HttpXyteClient) -> None:
        self._client = client

    async def get_organization_info(self, tenant_id: str | None = None) -> Any:
        return await self._client.call("organization.getOrganizationInfo", tenant_id)

    async def get_devices(self, tenant_id: str | None = None, query: QueryParams | None = None) -> Any:
        return await self._client.call("organization.devices.getDevices", tenant_id, query=query)

    async def get_incidents(self, tenant_id: str | None = None) -> Any:
        return await self._client.call("organization.incidents.getIncidents", tenant_id)

    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        return await self._client.call("organization.tickets.getTickets", tenant_id)

    async def get_spaces(self, tenant_id: str | None = None) -> Any:
        return await self._client.call("organization.spaces.getSpaces", tenant_id)

    async def get_space(self, space_id: str, tenant_id: str | None = None) -> Any:
        return await self._client.call(
            "organization.spaces.getSpace", tenant_id, path={"space_id": space_id}
        )


class _Partner(PartnerNamespace):
    def __init__(self, client: HttpXyteClient) -> None:
        self._client = client

    async def get_devices(self, tenant_id: str | None = None) -> Any:
        return await self._client.call("partner.devices.getDevices", tenant_id)

    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        return await self._client.call("partner.tickets.getTickets", tenant_id)
