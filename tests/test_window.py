from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.models import RawMessage
from core.window import filter_recent

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(message_id: int, text: str, age: timedelta) -> RawMessage:
    return RawMessage(
        message_id=message_id,
        text=text,
        date=NOW - age,
        chat_id=1,
        url=None,
    )


def test_filter_recent_keeps_messages_inside_window_in_order() -> None:
    messages = [
        _message(3, "newest", timedelta(minutes=5)),
        _message(2, "older", timedelta(hours=23)),
        _message(1, "too old", timedelta(hours=25)),
    ]
    kept = filter_recent(messages, timedelta(hours=24), now=NOW)
    assert [message.message_id for message in kept] == [3, 2]


def test_filter_recent_drops_empty_text() -> None:
    messages = [
        _message(2, "   ", timedelta(minutes=1)),
        _message(1, "", timedelta(minutes=2)),
    ]
    assert filter_recent(messages, timedelta(hours=24), now=NOW) == []


def test_filter_recent_treats_naive_dates_as_utc() -> None:
    message = RawMessage(
        message_id=1,
        text="hello",
        date=datetime(2024, 5, 1, 11, 0),
        chat_id=1,
        url=None,
    )
    assert filter_recent([message], timedelta(hours=2), now=NOW) == [message]
    assert filter_recent([message], timedelta(minutes=30), now=NOW) == []
