"""Global constants and default values for dev-uploader.

This module defines the application identity, the on-disk locations used by
default (configuration file, mirror directory, state directory), and the
timing defaults of the watch/poll loops.
"""

import os
from pathlib import Path

# --- Identity ---
APP_NAME = "dev-uploader"
"""str: The human-readable application name, also used as the logger name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "dev-uploader"
"""Path: The directory for runtime state data (rotated logs)."""

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The default file path for the daemon logs when file logging is on."""

CONFIG_FILENAME = "devuploader.config.json"
"""str: The configuration file looked up in the current directory."""

CONFIG_ENV_VAR = "DEV_UPLOADER_CONFIG"
"""str: Environment variable overriding the configuration file location."""

DEFAULT_MIRROR_DIR = "dist"
"""str: Mirror directory name, relative to the configuration file."""

# --- Sync Logic Constants ---
DEBOUNCE_SECONDS = 3.0
"""float: Quiet period after the last filesystem event before a flush."""

POLL_INTERVAL_SECONDS = 5.0
"""float: Seconds between two polling cycles over the remote URLs."""

HTTP_TIMEOUT_SECONDS = 30.0
"""float: Connect/read timeout applied to every download."""

GIT_TIMEOUT_SECONDS = 60.0
"""float: Upper bound for a single git subprocess invocation."""

COMMIT_PREFIX = "Auto-commit"
"""str: Prefix of every commit message written by the publisher."""

REMOTE_PREFIX = "http"
"""str: Source identifiers starting with this prefix are remote URLs."""

DOWNLOAD_CHUNK_SIZE = 64 * 1024
"""int: Size of the chunks streamed from an HTTP response to disk."""

LOOPBACK_HOSTS = frozenset({"localhost", "localhost.localdomain", "ip6-localhost"})
"""frozenset[str]: Host names treated as loopback without address parsing."""

IGNORED_EVENT_TYPES = frozenset({"opened", "closed_no_write", "deleted"})
"""frozenset[str]: Watchdog event types that never mark a path as changed."""

IGNORED_NAMES = frozenset({".git"})
"""frozenset[str]: Path components never copied into or watched for the mirror."""
