"""xyte-cli constants: filesystem layout, protocol contract, timeouts, and limits."""

from __future__ import annotations

from enum import IntEnum

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    SETUP_REQUIRED = 3
    NETWORK_ERROR = 4
    PERMISSION_ERROR = 5


# ---------------------------------------------------------------------------
# Filesystem layout
# ---------------------------------------------------------------------------

CONFIG_DIR_NAME = "xyte-cli"
CONFIG_FILENAME = "config.toml"
PROFILE_FILENAME = "profile.json"
DEBUG_LOG_FILENAME = "tui-debug.log"
KEYRING_SERVICE = "xyte-cli"

# ---------------------------------------------------------------------------
# Headless frame contract
# ---------------------------------------------------------------------------

HEADLESS_FRAME_SCHEMA_VERSION = "xyte.headless.frame.v1"
TABLE_FORMAT = "compact-v1"
NAVIGATION_MODE = "pane-focus"
PREVIEW_TRUNCATED_BANNER = "Preview truncated for stability."

# ---------------------------------------------------------------------------
# Timeouts and limits
# ---------------------------------------------------------------------------

DEFAULT_FOLLOW_INTERVAL_MS = 2000
MIN_FOLLOW_INTERVAL_MS = 250
ERROR_STORM_WINDOW_MS = 2000
ERROR_STORM_THRESHOLD = 5  # identical errors within the window before reporting
DEFAULT_INPUT_QUEUE_SIZE = 48
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

DEFAULT_HUB_BASE_URL = "https://hub.xyte.io"
