"""xyte-cli exception hierarchy."""

from __future__ import annotations

from typing import Any


class XyteError(Exception):
    """Base exception for all xyte-cli errors."""

    code = "XYTE_ERROR"


class XyteHttpError(XyteError):
    """Raised when the Xyte API answers with a non-success status."""

    code = "XYTE_HTTP_ERROR"

    def __init__(
        self,
        message: str,
        status: int,
        status_text: str = "",
        endpoint_key: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.endpoint_key = endpoint_key
        self.details = details


class XyteAuthError(XyteError):
    """Raised when a request cannot be authenticated (missing or rejected key)."""

    code = "XYTE_AUTH_ERROR"


class XyteValidationError(XyteError):
    """Raised when a request is malformed before it reaches the network."""

    code = "XYTE_VALIDATION_ERROR"


class ConfigError(XyteError):
    """Raised when the configuration is invalid or cannot be read."""

    code = "XYTE_CONFIG_ERROR"


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file does not exist."""


class ProfileError(XyteError):
    """Raised when the tenant profile store cannot be read or updated."""

    code = "XYTE_PROFILE_ERROR"
