"""Telegram notification adapter for Saved Messages.

Formats a human-readable Markdown report and sends it to Saved Messages of
the scraping account, reusing the run's Telethon session.
"""

from __future__ import annotations

from adapters.report_formatting import format_report
from adapters.telegram_source import TelethonChannelSource
from core.models import RunReport


class TelegramSavedMessagesNotifier:
    """Notifier adapter that sends run reports to the user's Saved Messages."""

    def __init__(self, source: TelethonChannelSource) -> None:
        self._source = source

    async def send_report(self, report: RunReport) -> None:
        client = self._source.client
        if client is None:
            raise RuntimeError("Telegram client is not connected; cannot send report")
        message = format_report(report, mode="markdown")
        await client.send_message("me", message, parse_mode="md")
