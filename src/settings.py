"""Static configuration for jobscope.

All user-editable settings (window, model, schedule, reports, logging) live
in a single JSON file for quick edits without touching Python. Secrets stay
in .env and are read by the modules that need them.
"""

import json
import os

from core.config import ExtractionConfig, ScrapeConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.environ.get("JOBSCOPE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
DB_PATH = _resolve_path(_CONFIG.get("database", {}).get("path", "jobscope.db"))

# Message window per run. The history API is count-based, so fetch_limit has
# to cover a full window under typical posting volume.
_scrape = _CONFIG.get("scrape", {})
SCRAPE = ScrapeConfig(
    window_hours=int(_scrape.get("window_hours", 24)),
    fetch_limit=int(_scrape.get("fetch_limit", 100)),
    run_timeout_minutes=int(_scrape.get("run_timeout_minutes", 60)),
)

_extraction = _CONFIG.get("extraction", {})
EXTRACTION = ExtractionConfig(
    model=_extraction.get("model", "gpt-4o-mini"),
    temperature=float(_extraction.get("temperature", 0.3)),
    max_tokens=int(_extraction.get("max_tokens", 1500)),
)

# Daily schedule for the `schedule` command ("HH:MM" in SCHEDULE_TIMEZONE).
_schedule = _CONFIG.get("schedule", {})
SCHEDULE_TIME = _schedule.get("time", "09:00")
SCHEDULE_TIMEZONE = _schedule.get("timezone", "UTC")

# Report delivery methods switch adapters without changing core logic.
# - methods: any of "bot", "saved_messages", "email"
# - bot_chat_ids / email_recipients: fixed recipient lists
_report = _CONFIG.get("report", {})
REPORT_METHODS = list(_report.get("methods", ["saved_messages"]))
REPORT_BOT_CHAT_IDS = [str(chat_id) for chat_id in _report.get("bot_chat_ids", [])]
REPORT_EMAIL_RECIPIENTS = list(_report.get("email_recipients", []))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
