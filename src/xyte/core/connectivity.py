"""
Connectivity classification and probing.

Every failure the API layer can raise is mapped onto a small taxonomy::

    auth | missing_key | network | timeout | rate_limit | unknown

Classification is total: ``classify_connectivity_error()`` never raises and
always returns a ``ConnectivityResult``.  ``auth`` and ``missing_key`` are the
only non-retriable classes.
"""

from __future__ import annotations

import asyncio
import errno
import re
import socket
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict

from xyte.core.exceptions import XyteAuthError, XyteHttpError
from xyte.core.retry import is_retryable_error_class

if TYPE_CHECKING:
    from xyte.client.base import XyteClient


class ConnectionErrorClass(StrEnum):
    AUTH = "auth"
    MISSING_KEY = "missing_key"
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    AUTH_REQUIRED = "auth_required"
    MISSING_KEY = "missing_key"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNKNOWN_ERROR = "unknown_error"
    NOT_CHECKED = "not_checked"


_CLASS_TO_STATE: dict[ConnectionErrorClass, ConnectionState] = {
    ConnectionErrorClass.AUTH: ConnectionState.AUTH_REQUIRED,
    ConnectionErrorClass.MISSING_KEY: ConnectionState.MISSING_KEY,
    ConnectionErrorClass.NETWORK: ConnectionState.NETWORK_ERROR,
    ConnectionErrorClass.TIMEOUT: ConnectionState.TIMEOUT,
    ConnectionErrorClass.RATE_LIMIT: ConnectionState.RATE_LIMITED,
    ConnectionErrorClass.UNKNOWN: ConnectionState.UNKNOWN_ERROR,
}

# Least to most severe; anything unlisted ranks with unknown_error.
_SEVERITY: dict[ConnectionState, int] = {
    ConnectionState.CONNECTED: 0,
    ConnectionState.RATE_LIMITED: 1,
    ConnectionState.NETWORK_ERROR: 2,
    ConnectionState.TIMEOUT: 3,
    ConnectionState.AUTH_REQUIRED: 4,
    ConnectionState.MISSING_KEY: 5,
    ConnectionState.UNKNOWN_ERROR: 6,
}

_MISSING_KEY_RE = re.compile(r"missing api key|requires .*api key|no active .*key", re.IGNORECASE)

_NETWORK_ERRNOS = frozenset({errno.ECONNREFUSED, errno.ECONNRESET, errno.EHOSTUNREACH, errno.ENETUNREACH})


class ConnectivityResult(BaseModel):
    """Outcome of a connectivity probe or a classified failure.  Immutable."""

    model_config = ConfigDict(frozen=True)

    state: ConnectionState
    error_class: ConnectionErrorClass | None = None
    message: str = ""
    retriable: bool = False
    endpoint_key: str | None = None
    status_code: int | None = None

    def to_meta(self) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "state": self.state.value,
            "message": self.message,
            "retriable": self.retriable,
        }
        if self.error_class is not None:
            meta["class"] = self.error_class.value
        if self.endpoint_key is not None:
            meta["endpointKey"] = self.endpoint_key
        if self.status_code is not None:
            meta["statusCode"] = self.status_code
        return meta


def not_checked() -> ConnectivityResult:
    return ConnectivityResult(
        state=ConnectionState.NOT_CHECKED,
        message="Connectivity not checked.",
        retriable=False,
    )


def state_severity(state: ConnectionState | str) -> int:
    """Numeric severity of a connection state (higher is worse)."""
    try:
        return _SEVERITY.get(ConnectionState(state), 6)
    except ValueError:
        return 6


def class_to_state(kind: ConnectionErrorClass) -> ConnectionState:
    return _CLASS_TO_STATE[kind]


def is_missing_key_message(message: str) -> bool:
    return bool(_MISSING_KEY_RE.search(message))


def _result(
    kind: ConnectionErrorClass,
    message: str,
    endpoint_key: str | None = None,
    status_code: int | None = None,
) -> ConnectivityResult:
    return ConnectivityResult(
        state=class_to_state(kind),
        error_class=kind,
        message=message,
        retriable=is_retryable_error_class(kind.value),
        endpoint_key=endpoint_key,
        status_code=status_code,
    )


def _http_status_class(status: int, message: str) -> ConnectionErrorClass:
    if status in (401, 403):
        return ConnectionErrorClass.MISSING_KEY if is_missing_key_message(message) else ConnectionErrorClass.AUTH
    if status == 429:
        return ConnectionErrorClass.RATE_LIMIT
    if status == 408:
        return ConnectionErrorClass.TIMEOUT
    if status >= 500:
        return ConnectionErrorClass.NETWORK
    if is_missing_key_message(message):
        return ConnectionErrorClass.MISSING_KEY
    return ConnectionErrorClass.UNKNOWN


def classify_connectivity_error(error: BaseException | Any) -> ConnectivityResult:
    """Map any failure onto a ``ConnectivityResult``.  Never raises."""
    message = str(error)

    if isinstance(error, XyteAuthError):
        kind = ConnectionErrorClass.MISSING_KEY if is_missing_key_message(message) else ConnectionErrorClass.AUTH
        return _result(kind, message)

    if isinstance(error, XyteHttpError):
        return _result(
            _http_status_class(error.status, message),
            message,
            endpoint_key=error.endpoint_key,
            status_code=error.status,
        )

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return _result(_http_status_class(status, message), message, status_code=status)

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return _result(ConnectionErrorClass.TIMEOUT, message or "Request timed out.")

    if isinstance(error, httpx.TransportError):
        return _result(ConnectionErrorClass.NETWORK, message or "Network error.")

    if isinstance(error, socket.gaierror):
        return _result(ConnectionErrorClass.NETWORK, message or "DNS lookup failed.")

    if isinstance(error, OSError) and error.errno is not None:
        if error.errno == errno.ETIMEDOUT:
            return _result(ConnectionErrorClass.TIMEOUT, message)
        if error.errno in _NETWORK_ERRNOS:
            return _result(ConnectionErrorClass.NETWORK, message)

    if isinstance(error, ConnectionError):
        return _result(ConnectionErrorClass.NETWORK, message or "Network error.")

    if is_missing_key_message(message):
        return _result(ConnectionErrorClass.MISSING_KEY, message)

    return _result(ConnectionErrorClass.UNKNOWN, message)


def prefer_failure(a: ConnectivityResult, b: ConnectivityResult) -> ConnectivityResult:
    """Return the more severe of two results; ``a`` wins ties."""
    return a if state_severity(a.state) >= state_severity(b.state) else b


async def probe_connectivity(client: XyteClient, tenant_id: str | None = None) -> ConnectivityResult:
    """
    Probe the API with two lightweight calls.

    Either call succeeding is sufficient evidence of connectivity.  When both
    fail, the more actionable (more severe) failure is surfaced.
    """
    try:
        await client.organization.get_organization_info(tenant_id=tenant_id)
        return ConnectivityResult(
            state=ConnectionState.CONNECTED,
            message="Organization connectivity OK.",
            endpoint_key="organization.getOrganizationInfo",
        )
    except Exception as first_error:  # noqa: BLE001
        first = classify_connectivity_error(first_error)

    try:
        await client.partner.get_devices(tenant_id=tenant_id)
        return ConnectivityResult(
            state=ConnectionState.CONNECTED,
            message="Partner connectivity OK.",
            endpoint_key="partner.devices.getDevices",
        )
    except Exception as second_error:  # noqa: BLE001
        second = classify_connectivity_error(second_error)

    return prefer_failure(first, second)
