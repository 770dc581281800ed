"""Configuration — environment variables and constants."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env lives at the project root
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_PROJECT_ROOT / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


# --- Site ---
SEARCH_HOME_URL = os.environ.get("SEARCH_HOME_URL", "https://www.costco.com")

# --- Browser ---
BROWSER = os.environ.get("BROWSER", "chromium").lower()
HEADLESS = _env_bool("HEADLESS", "true")
USER_AGENT = os.environ.get(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
)

# --- Timeouts ---
NAVIGATION_TIMEOUT_MS = int(os.environ.get("NAVIGATION_TIMEOUT_MS", "90000"))
DETECTOR_TIMEOUT_MS = int(os.environ.get("DETECTOR_TIMEOUT_MS", "30000"))
INVOCATION_TIMEOUT_SECONDS = int(os.environ.get("INVOCATION_TIMEOUT_SECONDS", "300"))

# --- Batch ---
MAX_BATCH_SIZE = int(os.environ.get("MAX_BATCH_SIZE", "3"))
JITTER_MIN_SECONDS = float(os.environ.get("JITTER_MIN_SECONDS", "2.8"))
JITTER_MAX_SECONDS = float(os.environ.get("JITTER_MAX_SECONDS", "3.5"))

# --- Schedule (crontab syntax, process local time) ---
BUILD_PLAN_CRON = os.environ.get("BUILD_PLAN_CRON", "0 5 * * *")
SCRAPE_BATCH_CRON = os.environ.get("SCRAPE_BATCH_CRON", "*/8 6-17 * * *")

# --- Logging ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
