"""
xyte CLI entry point.

Commands:
  xyte tui                   — interactive screens (dashboard, devices, ...)
  xyte tui --headless        — stream NDJSON frames for agents
  xyte setup run             — store a tenant and API key
  xyte setup status          — show readiness for the active tenant
  xyte config init           — write a default config file
  xyte config set-endpoint   — map an endpoint key to a path template
  xyte config show           — show the effective configuration
  xyte config doctor         — readiness and connectivity health check
  xyte version               — show version information
"""

from __future__ import annotations

import click
from rich.console import Console

from xyte import __version__
from xyte.client.base import ENDPOINT_KEYS
from xyte.secure.key_slots import XYTE_PROVIDERS
from xyte.tui.navigation import ScreenId

console = Console()
err_console = Console(stderr=True)

_SCREEN_CHOICES = [s.value for s in ScreenId]


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="xyte %(version)s")
@click.option(
    "--no-keyring",
    is_flag=True,
    default=False,
    envvar="XYTE_NO_KEYRING",
    help="Keep secrets in memory for this process instead of the OS keyring",
)
@click.pass_context
def cli(ctx: click.Context, no_keyring: bool) -> None:
    """xyte — terminal screens and headless frames for the Xyte fleet API."""
    ctx.ensure_object(dict)
    ctx.obj["no_keyring"] = no_keyring


# ---------------------------------------------------------------------------
# tui
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--screen", type=click.Choice(_SCREEN_CHOICES), default="dashboard", show_default=True)
@click.option("--headless", is_flag=True, default=False, help="Emit frames to stdout instead of drawing")
@click.option("--format", "output_format", type=click.Choice(["json", "text"]), default="json", show_default=True)
@click.option("--follow", is_flag=True, default=False, help="Keep emitting frames every --interval-ms")
@click.option("--interval-ms", type=int, default=None, help="Follow interval (minimum 250)")
@click.option("--tenant", default=None, help="Tenant id (defaults to the active tenant)")
@click.option("--motion/--no-motion", default=None, help="Startup animation (default: on for interactive)")
@click.option("--debug", is_flag=True, default=False, help="Write UI events to the debug log")
@click.pass_context
def tui(
    ctx: click.Context,
    screen: str,
    headless: bool,
    output_format: str,
    follow: bool,
    interval_ms: int | None,
    tenant: str | None,
    motion: bool | None,
    debug: bool,
) -> None:
    """Open the screens interactively, or stream them as frames with --headless."""
    from xyte.cli._tui import cmd_tui

    cmd_tui(
        screen=screen,
        headless=headless,
        output_format=output_format,
        follow=follow,
        interval_ms=interval_ms,
        tenant=tenant,
        motion=motion,
        debug=debug,
        no_keyring=ctx.obj["no_keyring"],
        console=console,
        err_console=err_console,
    )


# ---------------------------------------------------------------------------
# setup
# ---------------------------------------------------------------------------


@cli.group()
def setup() -> None:
    """Store tenants and API keys; check readiness."""


@setup.command("run")
@click.option("--tenant", default="", help="Tenant id (slugified)")
@click.option("--name", default="", help="Tenant display name")
@click.option("--key", default="", help="API key value (or XYTE_CLI_KEY)")
@click.option("--provider", type=click.Choice(list(XYTE_PROVIDERS)), default="xyte-org", show_default=True)
@click.option("--slot-name", default="primary", show_default=True)
@click.option("--hub-url", default="", help="Override the hub base URL for this tenant")
@click.option("--non-interactive", is_flag=True, default=False, help="Never prompt")
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_context
def setup_run(
    ctx: click.Context,
    tenant: str,
    name: str,
    key: str,
    provider: str,
    slot_name: str,
    hub_url: str,
    non_interactive: bool,
    as_json: bool,
) -> None:
    """Save a tenant and its API key, make them active, and check connectivity."""
    from xyte.cli._setup import cmd_setup_run

    cmd_setup_run(
        tenant=tenant,
        name=name,
        key=key,
        provider=provider,
        slot_name=slot_name,
        hub_url=hub_url,
        non_interactive=non_interactive,
        as_json=as_json,
        no_keyring=ctx.obj["no_keyring"],
        console=console,
    )


@setup.command("status")
@click.option("--tenant", default="", help="Tenant id override")
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_context
def setup_status(ctx: click.Context, tenant: str, as_json: bool) -> None:
    """Show readiness for the active (or given) tenant."""
    from xyte.cli._setup import cmd_setup_status

    cmd_setup_status(tenant=tenant, as_json=as_json, no_keyring=ctx.obj["no_keyring"], console=console)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group()
def config() -> None:
    """Inspect configuration and run health checks."""


@config.command("init")
@click.option("--hub-url", default="", help="Hub base URL to write into [api]")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing config file")
def config_init(hub_url: str, force: bool) -> None:
    """Write a config file with default settings."""
    from xyte.cli._config_cmd import cmd_config_init

    cmd_config_init(hub_url=hub_url, force=force, console=console)


@config.command("set-endpoint")
@click.argument("endpoint_key", type=click.Choice(ENDPOINT_KEYS))
@click.argument("path_template")
def config_set_endpoint(endpoint_key: str, path_template: str) -> None:
    """Map ENDPOINT_KEY to PATH_TEMPLATE under [api.endpoints]."""
    from xyte.cli._config_cmd import cmd_config_set_endpoint

    cmd_config_set_endpoint(endpoint_key=endpoint_key, path_template=path_template, console=console)


@config.command("show")
@click.option("--json", "as_json", is_flag=True, default=False)
def config_show(as_json: bool) -> None:
    """Display the effective configuration."""
    from xyte.cli._config_cmd import cmd_config_show

    cmd_config_show(as_json=as_json, console=console)


@config.command("doctor")
@click.option("--tenant", default="", help="Tenant id override")
@click.option("--json", "as_json", is_flag=True, default=False)
@click.pass_context
def config_doctor(ctx: click.Context, tenant: str, as_json: bool) -> None:
    """Check profile, key slots, and API connectivity."""
    from xyte.cli._config_cmd import cmd_config_doctor

    cmd_config_doctor(tenant=tenant, as_json=as_json, no_keyring=ctx.obj["no_keyring"], console=console)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False)
def version(as_json: bool) -> None:
    """Show version information."""
    import platform
    import sys as _sys

    from xyte.core.constants import HEADLESS_FRAME_SCHEMA_VERSION, TABLE_FORMAT

    if as_json:
        import json

        click.echo(
            json.dumps(
                {
                    "xyte": __version__,
                    "python": _sys.version.split()[0],
                    "platform": _sys.platform,
                    "arch": platform.machine(),
                    "frame_schema": HEADLESS_FRAME_SCHEMA_VERSION,
                    "table_format": TABLE_FORMAT,
                },
                indent=2,
            )
        )
    else:
        console.print(f"xyte {__version__}")
        console.print(f"Python {_sys.version.split()[0]}")
        console.print(f"Platform: {_sys.platform} {platform.machine()}")
        console.print(f"Frame schema: {HEADLESS_FRAME_SCHEMA_VERSION} ({TABLE_FORMAT})")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
