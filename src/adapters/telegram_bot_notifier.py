"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so run reports can be routed to one or more
bot chats.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request

from adapters.report_formatting import format_report
from core.models import RunReport

LOGGER = logging.getLogger(__name__)


class TelegramBotNotifier:
    """Notifier adapter that sends run reports via the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_ids: list[str]) -> None:
        self._bot_token = bot_token
        self._chat_ids = chat_ids

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def _post(self, chat_id: str, text: str) -> None:
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=10):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Bot API error {e.code}: {body}") from e

    async def send_report(self, report: RunReport) -> None:
        """Send the formatted report to every configured chat."""

        if not self._chat_ids:
            LOGGER.warning("No bot chat ids configured, report not sent")
            return
        message = format_report(report, mode="html")
        # A blocking HTTP call is fine here: reports go out once per run.
        for chat_id in self._chat_ids:
            self._post(chat_id, message)
        LOGGER.info("Run report sent to %s bot chat(s)", len(self._chat_ids))
