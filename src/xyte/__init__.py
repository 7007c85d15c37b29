"""
xyte-cli: terminal screen runtime and headless frame protocol for the Xyte
fleet-management API.

The same screens power two surfaces: an interactive terminal UI for humans and
a headless mode that streams versioned NDJSON frames to automated agents.

Package layout (src/xyte/):
  core/       — config, constants, exceptions, logging, retry, readiness
  secure/     — keyring secret store, key slots, tenant profile store
  client/     — Xyte API client boundary (httpx)
  tui/        — screen runtime, serializer, scenes, frames, headless renderer
  cli/        — Click CLI entry point
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
