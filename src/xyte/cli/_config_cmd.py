"""xyte config init | set-endpoint | show | doctor."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console

from xyte.core.connectivity import ConnectionState
from xyte.core.constants import ExitCode
from xyte.core.readiness import ReadinessCheck


def _read_raw_config(cfg_path: Path, console: Console) -> dict[str, Any]:
    """The TOML document as written, without defaults or env overrides."""
    import tomllib

    if not cfg_path.exists():
        return {}
    try:
        with open(cfg_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        console.print(f"[red]Config error:[/red] Cannot read {cfg_path}: {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)


def cmd_config_init(hub_url: str, force: bool, console: Console) -> None:
    from xyte.core.config import XyteConfig, _config_file_path, save_config
    from xyte.core.exceptions import ConfigError

    cfg_path = _config_file_path()
    if cfg_path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {cfg_path}")
        console.print("Use --force to overwrite it.")
        sys.exit(ExitCode.ERROR)

    data = XyteConfig().model_dump(mode="json")
    if hub_url:
        data["api"]["hub_base_url"] = hub_url.rstrip("/")
    try:
        written = save_config(data, cfg_path)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)
    console.print(f"[green]Config written:[/green] {written}")


def cmd_config_set_endpoint(endpoint_key: str, path_template: str, console: Console) -> None:
    from xyte.core.config import XyteConfig, _config_file_path, save_config
    from xyte.core.exceptions import ConfigError

    if not path_template.startswith("/"):
        console.print(f"[red]Invalid path:[/red] {path_template!r} must start with '/'")
        sys.exit(ExitCode.ERROR)

    cfg_path = _config_file_path()
    data = _read_raw_config(cfg_path, console)
    data.setdefault("api", {}).setdefault("endpoints", {})[endpoint_key] = path_template
    try:
        XyteConfig.model_validate(data)
        save_config(data, cfg_path)
    except (ConfigError, ValueError) as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)
    console.print(f"[green]Endpoint set:[/green] {endpoint_key} = {path_template}")


def cmd_config_show(as_json: bool, console: Console) -> None:
    from xyte.core.config import _config_file_path, load_config
    from xyte.core.exceptions import ConfigError

    cfg_path = _config_file_path()
    try:
        cfg = load_config(cfg_path)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    data: dict[str, Any] = cfg.model_dump(mode="json")
    data["_config_path"] = str(cfg_path)
    data["_config_exists"] = cfg_path.exists()
    data["_profile_path"] = str(cfg.profile_path)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    console.print("[bold]xyte-cli configuration[/bold]")
    source = "" if cfg_path.exists() else "  [dim](not found, using defaults)[/dim]"
    console.print(f"  Config:  {cfg_path}{source}")
    console.print(f"  Profile: {cfg.profile_path}\n")
    for section in ("logging", "headless", "tui", "retry", "api"):
        console.print(f"[bold cyan]\\[{section}][/bold cyan]")
        for key, value in data[section].items():
            if isinstance(value, dict):
                if not value:
                    console.print(f"  {key:<18} [dim](none)[/dim]")
                for sub_key, sub_value in value.items():
                    console.print(f"  {key}.{sub_key} = {sub_value}")
            else:
                console.print(f"  {key:<18} {value}")
        console.print()


def doctor_checks(readiness: ReadinessCheck, config_path_exists: bool) -> list[dict[str, str]]:
    """Flatten a readiness result into PASS/WARN/FAIL check rows."""
    checks = [
        {
            "name": "Python version",
            "status": "pass" if sys.version_info >= (3, 11) else "fail",
            "detail": sys.version.split()[0],
        },
        {
            "name": "Config file",
            "status": "pass" if config_path_exists else "warn",
            "detail": "found" if config_path_exists else "not found, using defaults",
        },
        {
            "name": "Active tenant",
            "status": "pass" if readiness.active_tenant else "fail",
            "detail": readiness.tenant_id or "none",
        },
    ]
    for p in readiness.providers:
        if p.has_active_secret:
            status, detail = "pass", f"slot {p.active_slot_id}"
        elif p.slot_count:
            status, detail = "fail", f"slot {p.active_slot_id} has no stored secret"
        else:
            status, detail = "warn", "no key slots"
        checks.append({"name": f"Key {p.provider}", "status": status, "detail": detail})

    connectivity = readiness.connectivity
    checks.append(
        {
            "name": "Connectivity",
            "status": "pass" if readiness.connection_state == ConnectionState.CONNECTED else "fail",
            "detail": f"{connectivity.state.value}: {connectivity.message}",
        }
    )
    return checks


def cmd_config_doctor(tenant: str, as_json: bool, no_keyring: bool, console: Console) -> None:
    from xyte.cli._context import build_context
    from xyte.client.http import HttpXyteClient
    from xyte.core.config import _config_file_path
    from xyte.core.readiness import evaluate_readiness

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
    checks = doctor_checks(readiness, _config_file_path().exists())
    all_pass = all(c["status"] != "fail" for c in checks)

    if as_json:
        click.echo(
            json.dumps(
                {"state": readiness.state.value, "checks": checks, "all_pass": all_pass},
                indent=2,
            )
        )
    else:
        console.print("[bold]xyte Doctor[/bold]\n")
        icons = {"pass": "[green]PASS[/green]", "warn": "[yellow]WARN[/yellow]", "fail": "[red]FAIL[/red]"}
        for c in checks:
            console.print(f"  {icons[c['status']]}  {c['name']}: {c['detail']}")
        console.print()
        if all_pass:
            console.print("[green]All checks passed.[/green]")
        else:
            for action in readiness.recommended_actions:
                console.print(f"  [dim]->[/dim] {action}")
            console.print("[red]Some checks failed.[/red]")

    if not all_pass:
        sys.exit(ExitCode.ERROR)
