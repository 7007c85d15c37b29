"""xyte-cli configuration: Pydantic model, load, and save."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from xyte.core.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILENAME,
    DEBUG_LOG_FILENAME,
    DEFAULT_FOLLOW_INTERVAL_MS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_HUB_BASE_URL,
    MIN_FOLLOW_INTERVAL_MS,
    PROFILE_FILENAME,
)
from xyte.core.exceptions import ConfigError, ConfigNotFoundError
from xyte.core.retry import RetryPolicy


def config_dir() -> Path:
    """Return the xyte-cli config directory, creating it if needed."""
    if env_dir := os.environ.get("XYTE_CLI_CONFIG_DIR"):
        d = Path(env_dir).expanduser()
    elif sys.platform == "darwin":
        d = Path.home() / "Library" / "Application Support" / CONFIG_DIR_NAME
    elif sys.platform == "win32":
        app_data = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        d = Path(app_data) / CONFIG_DIR_NAME
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        d = Path(xdg) / CONFIG_DIR_NAME
    d.mkdir(mode=0o700, parents=True, exist_ok=True)
    return d


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v.lower() not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v.lower()


class HeadlessConfig(BaseModel):
    interval_ms: int = DEFAULT_FOLLOW_INTERVAL_MS
    motion: bool = False

    @field_validator("interval_ms")
    @classmethod
    def clamp_interval(cls, v: int) -> int:
        return max(MIN_FOLLOW_INTERVAL_MS, v)


class TuiConfig(BaseModel):
    debug_log: bool = False
    debug_log_path: str = ""  # empty → use default
    motion: bool = True


class ApiConfig(BaseModel):
    hub_base_url: str = DEFAULT_HUB_BASE_URL
    timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    # endpoint key → path template, e.g. "organization.spaces.getSpace" = "/spaces/{space_id}"
    endpoints: dict[str, str] = Field(default_factory=dict)

    @field_validator("hub_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class XyteConfig(BaseModel):
    """Root xyte-cli configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    headless: HeadlessConfig = Field(default_factory=HeadlessConfig)
    tui: TuiConfig = Field(default_factory=TuiConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    api: ApiConfig = Field(default_factory=ApiConfig)

    # Computed paths (not stored in config file)
    _config_path: Path | None = None

    @property
    def profile_path(self) -> Path:
        return config_dir() / PROFILE_FILENAME

    @property
    def debug_log_path(self) -> Path:
        if self.tui.debug_log_path:
            return Path(self.tui.debug_log_path).expanduser()
        return config_dir() / "logs" / DEBUG_LOG_FILENAME


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get("XYTE_CONFIG"):
        return Path(env_path)
    return config_dir() / CONFIG_FILENAME


def load_config(path: Path | None = None, required: bool = False) -> XyteConfig:
    """
    Load XyteConfig from TOML file, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (XYTE_*)
      2. Config file (<config dir>/config.toml)
      3. Built-in defaults (when the file is absent and not required)
    """
    import tomllib

    cfg_path = path or _config_file_path()

    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except Exception as exc:
            raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc
    elif required:
        raise ConfigNotFoundError(
            f"xyte-cli is not configured. Run 'xyte setup run' first.\n"
            f"(Config file not found: {cfg_path})"
        )

    _apply_env_overrides(data)

    try:
        config = XyteConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid config at {cfg_path}: {exc}") from exc

    config._config_path = cfg_path
    return config


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay XYTE_* environment variables onto the parsed TOML data."""
    if level := os.environ.get("XYTE_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level
    if base_url := os.environ.get("XYTE_HUB_BASE_URL"):
        data.setdefault("api", {})["hub_base_url"] = base_url
    if interval := os.environ.get("XYTE_HEADLESS_INTERVAL_MS"):
        try:
            data.setdefault("headless", {})["interval_ms"] = int(interval)
        except ValueError as exc:
            raise ConfigError(f"Invalid XYTE_HEADLESS_INTERVAL_MS={interval!r}: expected milliseconds") from exc
    if os.environ.get("XYTE_TUI_DEBUG") == "1":
        data.setdefault("tui", {})["debug_log"] = True


def save_config(config_data: dict[str, Any], path: Path | None = None) -> Path:
    """Write config dict to TOML file with secure permissions (0600)."""
    import tomli_w

    cfg_path = path or _config_file_path()
    cfg_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    # Write atomically
    tmp_path = cfg_path.with_suffix(".tmp")
    try:
        with open(tmp_path, "wb") as f:
            tomli_w.dump(config_data, f)
        tmp_path.replace(cfg_path)
    except Exception as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Cannot write config to {cfg_path}: {exc}") from exc

    cfg_path.chmod(0o600)
    return cfg_path
