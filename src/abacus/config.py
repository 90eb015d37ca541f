"""Application constants and default locations."""

from pathlib import Path

APP_NAME = "Abacus"
DATA_DIR = Path.home() / ".abacus"
DEFAULT_VAULT_DIR = DATA_DIR / "vault"
DEFAULT_LOCAL_DIR = DATA_DIR / "local"

# Shared (synced) layout
STATE_FILE = "data.json"
INCREMENT_FILE_PREFIX = "increments-"
INCREMENT_FILE_SUFFIX = ".json"

# Device-local key/value store
LOCAL_STORE_FILE = "local.json"
DEVICE_ID_KEY = "abacus-device-id"
DEVICE_NAME_KEY = "abacus-device-name"
DEVICE_ID_BYTES = 8  # 16 hex chars

# Settings defaults
DEFAULT_DAILY_GOAL = 500
DEFAULT_COMPACT_AFTER_DAYS = 30

# Timers (seconds)
FLUSH_DELAY_SECONDS = 2.0
REFRESH_DELAY_SECONDS = 0.5
REFRESH_INTERVAL_SECONDS = 60.0
POLL_INTERVAL_SECONDS = 1.0
