"""Application entry point for the jobscope scraper."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.email_notifier import EmailNotifier, SMTPSettings
from adapters.openai_model import OpenAIChatModel
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from adapters.telegram_source import TelethonChannelSource
from client import build_client
from core.coordinator import RunCoordinator
from core.errors import JobscopeError
from core.extraction import ExtractionEngine
from core.models import RunReport
from core.persister import JobPersister
from core.progress import ProgressPublisher, progress_as_dict
from get_session import login
from scheduler import serve_forever
from seed import apply_seed, load_seed_file

NAME = "JOBSCOPE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/jobscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


def _build_notifiers(source: TelethonChannelSource) -> list:
    """Select report adapters from configuration.

    Keeps the core publisher independent from delivery details.
    """

    notifiers = []
    for method in settings.REPORT_METHODS:
        if method == "bot":
            bot_token = os.getenv("BOT_API")
            if not bot_token:
                raise RuntimeError("BOT_API is required when report.methods contains 'bot'")
            notifiers.append(TelegramBotNotifier(bot_token, settings.REPORT_BOT_CHAT_IDS))
        elif method == "saved_messages":
            notifiers.append(TelegramSavedMessagesNotifier(source))
        elif method == "email":
            host = os.getenv("SMTP_HOST")
            if not host:
                raise RuntimeError("SMTP_HOST is required when report.methods contains 'email'")
            smtp = SMTPSettings(
                host=host,
                port=int(os.getenv("SMTP_PORT", "587")),
                username=os.getenv("SMTP_USER", ""),
                password=os.getenv("SMTP_PASSWORD", ""),
                sender=os.getenv("SMTP_SENDER") or os.getenv("SMTP_USER", ""),
            )
            notifiers.append(EmailNotifier(smtp, settings.REPORT_EMAIL_RECIPIENTS))
        else:
            raise RuntimeError(f"Unsupported report method: {method}")
    return notifiers


def build_coordinator(storage: SQLiteStorage) -> RunCoordinator:
    """Wire adapters into a coordinator; the Telegram session opens per run."""

    load_dotenv()
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("Missing OPENAI_API_KEY in environment")

    source = TelethonChannelSource(build_client)
    model = OpenAIChatModel(api_key, settings.EXTRACTION)
    publisher = ProgressPublisher(storage, _build_notifiers(source))
    return RunCoordinator(
        source=source,
        engine=ExtractionEngine(model, storage),
        persister=JobPersister(storage, storage),
        channels=storage,
        publisher=publisher,
        config=settings.SCRAPE,
    )


def _print_report(report: Optional[RunReport]) -> int:
    if report is None:
        print("No active channels found. Nothing to scrape.")
        return 0
    status = "completed" if report.success else "failed"
    print(
        f"Run {report.run_id} {status}: {report.total_jobs_extracted} jobs from "
        f"{report.total_messages_processed} messages across {report.processed_channels}/"
        f"{report.total_channels} channels in {report.duration}"
    )
    for error in report.errors:
        print(f"  - {error}")
    return 0 if report.success else 1


def _run() -> int:
    _print_banner()
    _configure_logging()
    logging.getLogger(__name__).info("Starting scheduled-style run")

    coordinator = build_coordinator(_open_storage())
    report = asyncio.run(coordinator.run_scheduled(timeout=settings.SCRAPE.run_timeout))
    return _print_report(report)


def _schedule() -> int:
    _print_banner()
    _configure_logging()

    coordinator = build_coordinator(_open_storage())

    async def job() -> None:
        await coordinator.run_scheduled(timeout=settings.SCRAPE.run_timeout)

    try:
        asyncio.run(serve_forever(job, settings.SCHEDULE_TIME, settings.SCHEDULE_TIMEZONE))
    except KeyboardInterrupt:
        pass
    return 0


def _trigger() -> int:
    _configure_logging()
    coordinator = build_coordinator(_open_storage())

    async def _run_trigger() -> int:
        try:
            run_id = await coordinator.trigger_now()
        except JobscopeError as exc:
            print(f"error[{exc.code}]: {exc.message}", file=sys.stderr)
            return 1
        print(f"Started run {run_id}")
        return _print_report(await coordinator.wait(run_id))

    return asyncio.run(_run_trigger())


def _progress(run_id: Optional[str]) -> int:
    storage = _open_storage()
    if run_id:
        progress = storage.get_progress(run_id)
    else:
        recent = storage.list_progress(limit=1)
        progress = recent[0] if recent else None
    if progress is None:
        print("No run progress found.", file=sys.stderr)
        return 1
    print(json.dumps(progress_as_dict(progress), indent=2, ensure_ascii=False))
    return 0


def _seed(path: str) -> int:
    _configure_logging()
    categories, channels = apply_seed(_open_storage(), load_seed_file(path))
    print(f"Seeded {categories} categories and {channels} channels")
    return 0


def _dashboard() -> int:
    _print_banner()
    from frontend.app import DashboardApp

    storage = _open_storage()
    DashboardApp(storage, lambda: build_coordinator(storage)).run()
    return 0


def _login(method: Optional[str]) -> int:
    _print_banner()
    _configure_logging()
    asyncio.run(login(method))
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="jobscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Scrape all active channels once and wait for the result")
    subparsers.add_parser("schedule", help="Scrape daily at the configured time")
    subparsers.add_parser("trigger", help="Start an on-demand run and follow it to completion")
    progress_parser = subparsers.add_parser("progress", help="Show the progress record of a run")
    progress_parser.add_argument("run_id", nargs="?", help="Run id (defaults to the latest run)")
    seed_parser = subparsers.add_parser("seed", help="Load channels and categories from a JSON file")
    seed_parser.add_argument("path", help="Seed file, e.g. seed.example.json")
    subparsers.add_parser("dashboard", help="Launch the run dashboard TUI")
    login_parser = subparsers.add_parser("login", help="Authorize the Telegram account and print a session string")
    login_parser.add_argument("--method", choices=["qr", "phone"], help="Skip the interactive method prompt")

    args = parser.parse_args(argv)
    if args.command == "schedule":
        code = _schedule()
    elif args.command == "trigger":
        code = _trigger()
    elif args.command == "progress":
        code = _progress(args.run_id)
    elif args.command == "seed":
        code = _seed(args.path)
    elif args.command == "dashboard":
        code = _dashboard()
    elif args.command == "login":
        code = _login(args.method)
    else:
        code = _run()
    sys.exit(code)


if __name__ == "__main__":
    main()
