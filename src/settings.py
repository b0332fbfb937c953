"""Static configuration for tokenscope.

All user-editable settings (polling, dedup, retry, cache, notifications,
server, logging) live in a single JSON file for quick edits without touching
Python. Secrets stay in the environment (.env via python-dotenv).
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite dedup database.
DB_PATH = os.getenv("TOKENSCOPE_DB", os.path.join(PROJECT_ROOT, "tokenscope.db"))

CONFIG_PATH = os.getenv("TOKENSCOPE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _optional_int(value):
    return None if value is None else int(value)


_CONFIG = _load_json_config()

# Polling of the asset search upstream.
_poll = _CONFIG.get("poll", {})
POLL_INTERVAL_SECONDS = float(_poll.get("interval_seconds", 60))
POLL_LIMIT = int(_poll.get("limit", 100))
POLL_SORT_BY = _poll.get("sort_by", "created")
POLL_SORT_DIRECTION = _poll.get("sort_direction", "desc")

# Deduplication controls.
# - MIN_MARKET_CAP_USD: tokens below this never reach the dedup store
# - TOKEN_TTL_SECONDS: null keeps token markers forever
# - TRANSACTION_TTL_SECONDS: signatures are forgotten after this long
_dedup = _CONFIG.get("dedup", {})
MIN_MARKET_CAP_USD = float(_dedup.get("min_market_cap_usd", 100_000))
TOKEN_TTL_SECONDS = _optional_int(_dedup.get("token_ttl_seconds"))
TRANSACTION_TTL_SECONDS = _optional_int(_dedup.get("transaction_ttl_seconds", 3600))
DEDUP_CLEANUP_ON_START = bool(_dedup.get("cleanup_on_start", True))

# Retry budget for every upstream call.
_retry = _CONFIG.get("retry", {})
RETRY_MAX_ATTEMPTS = int(_retry.get("max_attempts", 3))
RETRY_DELAY_SECONDS = float(_retry.get("delay_seconds", 1.0))
RETRY_TIMEOUT_SECONDS = float(_retry.get("timeout_seconds", 10))

# Freshness window for command lookups.
_cache = _CONFIG.get("cache", {})
CACHE_FRESHNESS_SECONDS = float(_cache.get("freshness_seconds", 300))

# Notification method switches adapters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "bot")
SEND_INTERVAL_SECONDS = float(_notifications.get("send_interval_seconds", 0.5))
NOTIFY_RETRY_ATTEMPTS = int(_notifications.get("retry_attempts", 2))
# Target chat for the Telethon notifier; "me" is Saved Messages.
SAVED_MESSAGES_TARGET = _notifications.get("saved_messages_target", "me")

# HTTP server for webhooks and manual triggers.
_server = _CONFIG.get("server", {})
SERVER_HOST = _server.get("host", "0.0.0.0")
SERVER_PORT = int(_server.get("port", 8787))
PUBLIC_URL = _server.get("public_url") or None

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
