"""
Secret storage for API key slots.

Secrets never touch the profile file; only slot metadata and a fingerprint do.
``KeyringKeychain`` stores each slot secret in the OS keyring under service
``xyte-cli`` with account ``<tenant>:<provider>:<slot>``.  ``MemoryKeychain``
is the in-process twin used by tests and ``--no-keyring`` runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from xyte.core.constants import KEYRING_SERVICE

logger = logging.getLogger(__name__)


def slot_account(tenant_id: str, provider: str, slot_id: str) -> str:
    return f"{tenant_id}:{provider}:{slot_id}"


class KeychainStore(ABC):
    """Interface for per-slot secret storage."""

    @abstractmethod
    async def set_slot_secret(self, tenant_id: str, provider: str, slot_id: str, value: str) -> None:
        ...

    @abstractmethod
    async def get_slot_secret(self, tenant_id: str, provider: str, slot_id: str) -> str | None:
        """Return the stored secret, or None if absent or unreadable."""
        ...

    @abstractmethod
    async def clear_slot_secret(self, tenant_id: str, provider: str, slot_id: str) -> None:
        ...


class MemoryKeychain(KeychainStore):
    """Dict-backed keychain.  Lives for the process only."""

    def __init__(self) -> None:
        self._secrets: dict[str, str] = {}

    async def set_slot_secret(self, tenant_id: str, provider: str, slot_id: str, value: str) -> None:
        self._secrets[slot_account(tenant_id, provider, slot_id)] = value

    async def get_slot_secret(self, tenant_id: str, provider: str, slot_id: str) -> str | None:
        return self._secrets.get(slot_account(tenant_id, provider, slot_id))

    async def clear_slot_secret(self, tenant_id: str, provider: str, slot_id: str) -> None:
        self._secrets.pop(slot_account(tenant_id, provider, slot_id), None)


class KeyringKeychain(KeychainStore):
    """OS keyring-backed keychain (macOS Keychain, Secret Service, Windows Credential Locker)."""

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self.service = service

    async def set_slot_secret(self, tenant_id: str, provider: str, slot_id: str, value: str) -> None:
        import keyring

        keyring.set_password(self.service, slot_account(tenant_id, provider, slot_id), value)

    async def get_slot_secret(self, tenant_id: str, provider: str, slot_id: str) -> str | None:
        import keyring
        from keyring.errors import KeyringError

        try:
            value = keyring.get_password(self.service, slot_account(tenant_id, provider, slot_id))
        except KeyringError as exc:
            # A locked or missing backend reads as "no secret", readiness reports it
            logger.warning("Keyring lookup failed for %s/%s: %s", tenant_id, provider, exc)
            return None
        return value or None

    async def clear_slot_secret(self, tenant_id: str, provider: str, slot_id: str) -> None:
        import keyring
        from keyring.errors import PasswordDeleteError

        try:
            keyring.delete_password(self.service, slot_account(tenant_id, provider, slot_id))
        except PasswordDeleteError:
            pass
