"""SMTP email notification adapter.

Sends the run report to a fixed recipient list, the way the scraper has
always mailed its administrators.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

from adapters.report_formatting import format_report, report_subject
from core.models import RunReport

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SMTPSettings:
    host: str
    port: int
    username: str
    password: str
    sender: str
    use_tls: bool = True


class EmailNotifier:
    """Notifier adapter that emails run reports."""

    def __init__(self, smtp: SMTPSettings, recipients: list[str]) -> None:
        self._smtp = smtp
        self._recipients = recipients

    def build_message(self, report: RunReport) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = report_subject(report)
        message["From"] = f"jobscope <{self._smtp.sender}>"
        message["To"] = ", ".join(self._recipients)
        message.set_content(format_report(report, mode="plain"))
        body = format_report(report, mode="html").replace("\n", "<br>\n")
        message.add_alternative(f"<html><body>{body}</body></html>", subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._smtp.host, self._smtp.port, timeout=30) as server:
            if self._smtp.use_tls:
                server.starttls()
            if self._smtp.username:
                server.login(self._smtp.username, self._smtp.password)
            server.send_message(message)

    async def send_report(self, report: RunReport) -> None:
        if not self._recipients:
            LOGGER.warning("No email recipients configured, report not sent")
            return
        message = self.build_message(report)
        await asyncio.to_thread(self._deliver, message)
        LOGGER.info("Run report emailed to %s recipient(s)", len(self._recipients))
