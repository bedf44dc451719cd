"""Configuration constants for the place harvester."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("HARVEST_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
STATE_DIR: Path = DATA_DIR / "state"
RECORDS_LOG: Path = DATA_DIR / "records.jsonl"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
RUNS_DIR: Path = DATA_DIR / "runs"
EXPORTS_DIR: Path = DATA_DIR / "exports"
DB_PATH: Path = DATA_DIR / "harvest.db"

DEFAULT_SEED_URL: str = os.getenv(
    "HARVEST_SEED_URL", "https://www.google.com/maps/search/restaurants+in+lisbon"
)
PROGRESS_KEY: str = os.getenv("HARVEST_PROGRESS_KEY", "STATE")

# "json" keeps one document per key under STATE_DIR, "sqlite" uses DB_PATH.
PROGRESS_BACKEND: str = os.getenv("HARVEST_PROGRESS_BACKEND", "json").strip().lower() or "json"
# "jsonl" appends to RECORDS_LOG, "sqlite" inserts into the records table.
SINK_BACKEND: str = os.getenv("HARVEST_SINK_BACKEND", "jsonl").strip().lower() or "jsonl"

PROGRESS_BACKENDS = ("json", "sqlite")
SINK_BACKENDS = ("jsonl", "sqlite")

RUN_QUOTA: int = int(os.getenv("HARVEST_RUN_QUOTA", "25"))

# Lazy list growth
STABLE_ROUNDS: int = int(os.getenv("HARVEST_STABLE_ROUNDS", "3"))
GROW_SETTLE_SECONDS: float = float(os.getenv("HARVEST_GROW_SETTLE_SECONDS", "1.5"))
INITIAL_RENDER_SECONDS: float = float(os.getenv("HARVEST_INITIAL_RENDER_SECONDS", "2.0"))
SCROLL_PIXELS: int = int(os.getenv("HARVEST_SCROLL_PIXELS", "8000"))
MAX_CANDIDATES: int = int(os.getenv("HARVEST_MAX_CANDIDATES", "500"))
MAX_GROW_ROUNDS: int = int(os.getenv("HARVEST_MAX_GROW_ROUNDS", "60"))
LISTING_RETRY_BUDGET: int = int(os.getenv("HARVEST_LISTING_RETRY_BUDGET", "3"))


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


# Playwright timeouts (seconds)
PLAYWRIGHT_NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "HARVEST_NAV_TIMEOUT_SECONDS", 60
)
PLAYWRIGHT_SELECTOR_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "HARVEST_SELECTOR_TIMEOUT_SECONDS", 20
)
# Detail panel wait stays in milliseconds to match Playwright API expectations.
PANEL_TIMEOUT_MS: int = int(os.getenv("HARVEST_PANEL_TIMEOUT_MS", "10000"))
CLICK_TIMEOUT_MS: int = int(os.getenv("HARVEST_CLICK_TIMEOUT_MS", "5000"))

# Short sleeps (seconds) for click pacing
POST_OPEN_SETTLE_SECONDS: float = float(os.getenv("HARVEST_POST_OPEN_SETTLE_SECONDS", "0.8"))
POST_CLOSE_SETTLE_SECONDS: float = float(os.getenv("HARVEST_POST_CLOSE_SETTLE_SECONDS", "0.7"))

HEADLESS: bool = os.getenv("HARVEST_HEADLESS", "1").strip().lower() not in {"0", "false"}
BROWSER_LOCALE: str = os.getenv("HARVEST_BROWSER_LOCALE", "en-US")
BLOCKED_RESOURCE_TYPES = ("image", "media", "font")

# Outreach text generation
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
GENERATION_MODEL: str = os.getenv("HARVEST_GENERATION_MODEL", "gpt-4o-mini")
GENERATION_BASE_URL: str = os.getenv(
    "HARVEST_GENERATION_BASE_URL", "https://api.openai.com/v1"
).rstrip("/")
GENERATION_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "HARVEST_GENERATION_TIMEOUT_SECONDS", 30
)
SERVICE_NAMES: tuple[str, ...] = tuple(
    part.strip()
    for part in os.getenv(
        "HARVEST_SERVICE_NAMES", "website design,WhatsApp booking automation"
    ).split(",")
    if part.strip()
)
SENDER_NAME: str = os.getenv("HARVEST_SENDER_NAME", "The team")

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "100"))
RECORDS_PAGE_MAX: int = int(os.getenv("HARVEST_RECORDS_PAGE_MAX", "500"))

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}
