"""Shared wiring for CLI commands: config, logger, stores, and API client."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass

from rich.console import Console

from xyte.core.config import XyteConfig
from xyte.core.constants import ExitCode
from xyte.secure.keychain import KeychainStore
from xyte.secure.profile_store import ProfileStore


@dataclass
class CliContext:
    config: XyteConfig
    logger: logging.Logger
    profile_store: ProfileStore
    keychain: KeychainStore


def build_context(no_keyring: bool, console: Console) -> CliContext:
    """Load config (exiting on error) and open the profile store and keychain."""
    from xyte.core.config import load_config
    from xyte.core.exceptions import ConfigError
    from xyte.core.log import configure_logging
    from xyte.secure.keychain import KeyringKeychain, MemoryKeychain
    from xyte.secure.profile_store import FileProfileStore

    try:
        config = load_config()
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    logger = configure_logging(config)
    keychain: KeychainStore = MemoryKeychain() if no_keyring else KeyringKeychain()
    return CliContext(
        config=config,
        logger=logger,
        profile_store=FileProfileStore(config.profile_path),
        keychain=keychain,
    )
