"""xyte tui: interactive screens or the headless NDJSON frame stream."""

from __future__ import annotations

import asyncio
import os
import sys

from rich.console import Console

from xyte.core.constants import ExitCode


def cmd_tui(
    screen: str,
    headless: bool,
    output_format: str,
    follow: bool,
    interval_ms: int | None,
    tenant: str | None,
    motion: bool | None,
    debug: bool,
    no_keyring: bool,
    console: Console,
    err_console: Console,
) -> None:
    from xyte.cli._context import build_context
    from xyte.client.http import HttpXyteClient
    from xyte.core.exceptions import XyteError
    from xyte.core.log import TuiDebugLog
    from xyte.tui.animation import is_motion_enabled

    ctx = build_context(no_keyring=no_keyring, console=err_console)
    config = ctx.config
    client = HttpXyteClient(config.api, ctx.profile_store, ctx.keychain, logger=ctx.logger)

    if headless:
        from xyte.tui.headless import HeadlessRenderer

        explicit_motion = motion if motion is not None else config.headless.motion
        renderer = HeadlessRenderer(
            client,
            ctx.profile_store,
            ctx.keychain,
            screen=screen,
            format="text" if output_format == "text" else "json",
            motion_enabled=is_motion_enabled(headless=True, explicit_motion=explicit_motion),
            follow=follow,
            interval_ms=interval_ms or config.headless.interval_ms,
            tenant_id=tenant,
            retry_policy=config.retry,
            logger=ctx.logger,
        )
        runner = renderer.run()
    else:
        from xyte.tui.app import TuiApp

        debug_log = TuiDebugLog(
            config.debug_log_path,
            enabled=debug or config.tui.debug_log,
            logger=ctx.logger,
        )
        explicit_motion = motion if motion is not None else config.tui.motion
        app = TuiApp(
            client,
            ctx.profile_store,
            ctx.keychain,
            console=console,
            err_console=err_console,
            logger=ctx.logger,
            debug_log=debug_log,
            retry_policy=config.retry,
            tenant_id=tenant,
            initial_screen=screen,
            motion_enabled=is_motion_enabled(explicit_motion=explicit_motion),
        )
        runner = app.run()

    async def _main() -> None:
        try:
            await runner
        finally:
            await client.aclose()

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass
    except XyteError as exc:
        err_console.print(f"[red]{exc}[/red]")
        sys.exit(ExitCode.ERROR)

    if headless:
        _close_stdout_quietly()


def _close_stdout_quietly() -> None:
    """Flush stdout; if the reader went away, point stdout at devnull so interpreter exit stays silent."""
    try:
        sys.stdout.flush()
    except BrokenPipeError:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
