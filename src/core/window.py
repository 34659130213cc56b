"""Time-window filtering for fetched channel messages.

The Telegram history API only offers a count-based cursor, so readers fetch
a generous number of recent messages and narrow them down here.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from core.models import RawMessage


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def filter_recent(
    messages: Iterable[RawMessage],
    window: timedelta,
    now: Optional[datetime] = None,
) -> list[RawMessage]:
    """Keep messages with non-empty text dated within ``window`` of ``now``.

    Order is preserved; callers rely on the source's native ordering.
    """

    cutoff = _as_utc(now or datetime.now(timezone.utc)) - window
    return [
        message
        for message in messages
        if message.text.strip() and _as_utc(message.date) >= cutoff
    ]
