"""xyte setup: store a tenant and its API key, then report readiness."""

from __future__ import annotations

import asyncio
import json
import os
import re
import sys
from dataclasses import dataclass
from typing import Any

import click
from rich.console import Console
from rich.prompt import Prompt

from xyte.client.base import XyteClient
from xyte.core.constants import ExitCode
from xyte.core.readiness import ReadinessCheck, ReadinessState, evaluate_readiness
from xyte.secure.key_slots import make_key_fingerprint
from xyte.secure.keychain import KeychainStore
from xyte.secure.profile_store import ApiKeySlotMeta, ProfileStore

DEFAULT_TENANT_ID = "default"
DEFAULT_PROVIDER = "xyte-org"
DEFAULT_SLOT_NAME = "primary"

_TENANT_SPACE_RE = re.compile(r"\s+")
_TENANT_INVALID_RE = re.compile(r"[^a-z0-9_-]")
_TENANT_DASHES_RE = re.compile(r"-+")


def normalize_tenant_id(value: str) -> str:
    """Lowercase slug of ``value``; blank input falls back to ``default``."""
    slug = _TENANT_SPACE_RE.sub("-", value.strip().lower())
    slug = _TENANT_DASHES_RE.sub("-", _TENANT_INVALID_RE.sub("-", slug)).strip("-")
    return slug or DEFAULT_TENANT_ID


@dataclass
class SetupResult:
    tenant_id: str
    provider: str
    slot: ApiKeySlotMeta
    readiness: ReadinessCheck

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "provider": self.provider,
            "slot": {"slotId": self.slot.slot_id, "name": self.slot.name, "fingerprint": self.slot.fingerprint},
            "readiness": readiness_to_dict(self.readiness),
        }


def readiness_to_dict(readiness: ReadinessCheck) -> dict[str, Any]:
    return readiness.model_dump(mode="json", exclude={"active_tenant"})


async def store_tenant_key(
    profile_store: ProfileStore,
    keychain: KeychainStore,
    tenant_id: str,
    tenant_name: str,
    key_value: str,
    provider: str = DEFAULT_PROVIDER,
    slot_name: str = DEFAULT_SLOT_NAME,
    hub_base_url: str | None = None,
    set_active: bool = True,
    client: XyteClient | None = None,
) -> SetupResult:
    """
    Upsert the tenant, make it active, and store ``key_value`` in the named slot.

    Re-running with the same slot name rotates the key in place.  When a
    client is given, readiness includes a live connectivity probe and a
    successful probe stamps the slot as validated.
    """
    await profile_store.upsert_tenant(tenant_id, name=tenant_name, hub_base_url=hub_base_url)
    await profile_store.set_active_tenant(tenant_id)

    fingerprint = make_key_fingerprint(key_value)
    slots = await profile_store.list_key_slots(tenant_id, provider)
    existing = next((s for s in slots if s.name.lower() == slot_name.lower()), None)
    if existing is not None:
        slot = await profile_store.update_key_slot(tenant_id, provider, existing.slot_id, fingerprint=fingerprint)
    else:
        slot = await profile_store.add_key_slot(tenant_id, provider, slot_name, fingerprint)

    await keychain.set_slot_secret(tenant_id, provider, slot.slot_id, key_value)
    if set_active:
        await profile_store.set_active_key_slot(tenant_id, provider, slot.slot_id)

    readiness = await evaluate_readiness(
        profile_store,
        keychain,
        tenant_id=tenant_id,
        client=client,
        check_connectivity=client is not None,
    )
    if client is not None and readiness.state == ReadinessState.READY:
        await profile_store.mark_slot_validated(tenant_id, provider, slot.slot_id)

    return SetupResult(tenant_id=tenant_id, provider=provider, slot=slot, readiness=readiness)


def format_readiness_text(readiness: ReadinessCheck) -> str:
    lines = [
        f"Readiness: {readiness.state.value}",
        f"Tenant: {readiness.tenant_id or 'none'}",
        f"Connectivity: {readiness.connection_state.value} ({readiness.connectivity.message})",
        "",
        "Providers:",
    ]
    for p in readiness.providers:
        lines.append(
            f"- {p.provider}: slots={p.slot_count}, active={p.active_slot_id or 'none'} "
            f"({p.active_slot_name or 'n/a'}), hasSecret={str(p.has_active_secret).lower()}"
        )
    if readiness.missing_items:
        lines += ["", "Missing items:"] + [f"- {item}" for item in readiness.missing_items]
    if readiness.recommended_actions:
        lines += ["", "Recommended actions:"] + [f"- {item}" for item in readiness.recommended_actions]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_setup_run(
    tenant: str,
    name: str,
    key: str,
    provider: str,
    slot_name: str,
    hub_url: str,
    non_interactive: bool,
    as_json: bool,
    no_keyring: bool,
    console: Console,
) -> None:
    from xyte.cli._context import build_context
    from xyte.client.http import HttpXyteClient
    from xyte.core.exceptions import XyteError

    if not key:
        key = os.environ.get("XYTE_CLI_KEY", "")
    tenant_label = (name or tenant or DEFAULT_TENANT_ID).strip() or DEFAULT_TENANT_ID

    if not non_interactive:
        if not key:
            key = Prompt.ask("[bold]Xyte API key[/bold]", password=True).strip()
        tenant_label = Prompt.ask("[bold]Tenant label[/bold]", default=tenant_label).strip() or tenant_label

    if not key:
        console.print("[red]Missing API key. Provide --key, set XYTE_CLI_KEY, or run interactively.[/red]")
        sys.exit(ExitCode.SETUP_REQUIRED)

    tenant_id = normalize_tenant_id(tenant or tenant_label)
    ctx = build_context(no_keyring=no_keyring, console=console)
    client = HttpXyteClient(ctx.config.api, ctx.profile_store, ctx.keychain, logger=ctx.logger)

    async def _run() -> SetupResult:
        try:
            return await store_tenant_key(
                ctx.profile_store,
                ctx.keychain,
                tenant_id=tenant_id,
                tenant_name=tenant_label,
                key_value=key,
                provider=provider,
                slot_name=slot_name,
                hub_base_url=hub_url or None,
                client=client,
            )
        finally:
            await client.aclose()

    try:
        result = asyncio.run(_run())
    except XyteError as exc:
        console.print(f"[red]Setup failed:[/red] {exc}")
        sys.exit(ExitCode.ERROR)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(f"[green]Tenant saved:[/green] {tenant_id} (active)")
    console.print(f"Key slot:     {provider}/{result.slot.slot_id}  {result.slot.fingerprint}")
    console.print(f"Profile:      {ctx.config.profile_path}")
    console.print()
    console.print(format_readiness_text(result.readiness), markup=False, highlight=False)


def cmd_setup_status(tenant: str, as_json: bool, no_keyring: bool, console: Console) -> None:
    from xyte.cli._context import build_context
    from xyte.client.http import HttpXyteClient

    ctx = build_context(no_keyring=no_keyring, console=console)
    client = HttpXyteClient(ctx.config.api, ctx.profile_store, ctx.keychain, logger=ctx.logger)

    async def _run() -> ReadinessCheck:
        try:
            return await evaluate_readiness(
                ctx.profile_store,
                ctx.keychain,
                tenant_id=tenant or None,
                client=client,
                check_connectivity=True,
            )
        finally:
            await client.aclose()

    readiness = asyncio.run(_run())
    if as_json:
        click.echo(json.dumps(readiness_to_dict(readiness), indent=2))
    else:
        console.print(format_readiness_text(readiness), markup=False, highlight=False)

    if readiness.state == ReadinessState.NEEDS_SETUP:
        sys.exit(ExitCode.SETUP_REQUIRED)
