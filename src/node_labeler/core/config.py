"""
config.py
- Defines global configuration values derived from environment variables.
- Configures loguru (and optional Sentry) for every entrypoint.
"""

import os
import sys

from loguru import logger

# --- Runtime Behavior Flags ---
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"
IN_CLUSTER = os.getenv("IN_CLUSTER", "true").lower() == "true"
LOG_LEVEL = "DEBUG" if DEBUG else "INFO"

# --- Nautobot ---
PLACEHOLDER_URL = "http://nautobot.local"
PLACEHOLDER_TOKEN = "placeholder-token"
NAUTOBOT_URL = os.getenv("NAUTOBOT_URL") or PLACEHOLDER_URL
NAUTOBOT_TOKEN = os.getenv("NAUTOBOT_TOKEN") or PLACEHOLDER_TOKEN
NAUTOBOT_TIMEOUT = float(os.getenv("NAUTOBOT_TIMEOUT", "10"))

# --- Controller ---
WORKERS = int(os.getenv("WORKERS", "2"))
NODE_LABEL_SELECTOR = os.getenv("NODE_LABEL_SELECTOR", "")
WATCH_TIMEOUT_SECONDS = int(os.getenv("WATCH_TIMEOUT_SECONDS", "300"))
# 0 leaves a reconcile bounded only by the HTTP timeout
RECONCILE_TIMEOUT = float(os.getenv("RECONCILE_TIMEOUT", "0")) or None
MAX_ERROR_BACKOFF = int(os.getenv("MAX_ERROR_BACKOFF", "3600"))

# --- API ---
API_ENABLED = os.getenv("API_ENABLED", "true").lower() == "true"
API_PORT = int(os.getenv("API_PORT", "6060"))

# --- Config Paths ---
LABELER_CONFIG = os.getenv("LABELER_CONFIG", "/etc/node-labeler/labeler.yml")

SENTRY_DSN = os.getenv("SENTRY_DSN")

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level=LOG_LEVEL):
    """Replace loguru's default sink with the project-wide stderr format."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=True)


def setup_sentry(dsn=SENTRY_DSN):
    """Initialise Sentry only when a DSN is configured."""
    if not dsn:
        return False
    import sentry_sdk

    sentry_sdk.init(dsn=dsn, traces_sample_rate=1.0)
    return True


def warn_on_placeholders(url=NAUTOBOT_URL, token=NAUTOBOT_TOKEN):
    """
    Log a warning for each Nautobot setting still holding its placeholder.

    Returns:
        list[str]: Names of the settings that are placeholders.
    """
    missing = []
    if url == PLACEHOLDER_URL:
        missing.append("NAUTOBOT_URL")
    if token == PLACEHOLDER_TOKEN:
        missing.append("NAUTOBOT_TOKEN")
    for name in missing:
        logger.warning(f"[config] {name} is not set; using placeholder value (not valid for production).")
    return missing
