"""
Service configuration read from the environment (and an optional .env file).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/tidepool.db")
DB_TIMEOUT_SEC = float(os.getenv("DB_TIMEOUT_SEC", "5"))

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Telegram admin channel
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_ADMIN_CHAT = os.getenv("TELEGRAM_ADMIN_CHAT", "")
TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")

# Outbound notifications
NOTIFY_TIMEOUT_SEC = float(os.getenv("NOTIFY_TIMEOUT_SEC", "10"))
NOTIFY_RETRIES = int(os.getenv("NOTIFY_RETRIES", "2"))
NOTIFY_RETRY_BACKOFF_SEC = float(os.getenv("NOTIFY_RETRY_BACKOFF_SEC", "1"))

# Public click endpoint
TRUST_PROXY = os.getenv("TRUST_PROXY", "true").lower() == "true"
CLICK_WINDOW_SEC = int(os.getenv("CLICK_WINDOW_SEC", "86400"))
CLICK_ATTEMPT_LIMIT = int(os.getenv("CLICK_ATTEMPT_LIMIT", "1"))
PUBLIC_DIR = os.getenv("PUBLIC_DIR", "./public")

# Admin confirmations
CONFIRM_TIMEOUT_SEC = int(os.getenv("CONFIRM_TIMEOUT_SEC", "60"))
CONFIRMATION_BACKEND = os.getenv("CONFIRMATION_BACKEND", "memory")  # memory|store

# Heartbeat / idle-stall detection
HEARTBEAT_ENABLED = os.getenv("HEARTBEAT_ENABLED", "true").lower() == "true"
STALL_CHECK_INTERVAL_SEC = int(os.getenv("STALL_CHECK_INTERVAL_SEC", str(3 * 60 * 60)))
STALL_WINDOW_SEC = int(os.getenv("STALL_WINDOW_SEC", str(3 * 60 * 60)))

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def notifications_enabled():
    """Telegram delivery needs both a bot token and an admin chat."""
    return bool(TELEGRAM_BOT_TOKEN and TELEGRAM_ADMIN_CHAT)


def is_heartbeat_enabled():
    """Check if the heartbeat loop should run."""
    return HEARTBEAT_ENABLED


def get_confirmation_backend():
    """Get pending confirmation backend (memory|store)."""
    return CONFIRMATION_BACKEND


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if not TELEGRAM_ADMIN_CHAT:
        issues.append("TELEGRAM_ADMIN_CHAT is not set; admin commands will be dropped")

    if not TELEGRAM_BOT_TOKEN:
        issues.append("TELEGRAM_BOT_TOKEN is not set; notifications are only logged")

    if CONFIRMATION_BACKEND not in ["memory", "store"]:
        issues.append(f"Invalid CONFIRMATION_BACKEND: {CONFIRMATION_BACKEND}")

    if STALL_CHECK_INTERVAL_SEC < 1:
        issues.append("STALL_CHECK_INTERVAL_SEC must be >= 1")

    if CONFIRM_TIMEOUT_SEC < 1:
        issues.append("CONFIRM_TIMEOUT_SEC must be >= 1")

    if CLICK_ATTEMPT_LIMIT < 1:
        issues.append("CLICK_ATTEMPT_LIMIT must be >= 1")

    return issues
