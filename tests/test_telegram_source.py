from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from telethon.tl.types import PeerChannel

from adapters.telegram_source import TelethonChannelSource
from core.errors import ChannelUnavailableError, SourceConnectionError


class DummyMessage:
    def __init__(self, message_id: int, text: str, age: timedelta) -> None:
        self.id = message_id
        self.raw_text = text
        self.chat_id = -100123
        self.chat = None
        self.peer_id = PeerChannel(channel_id=123)
        self.date = datetime.now(timezone.utc) - age


class FakeClient:
    def __init__(self, authorized: bool = True, messages=None) -> None:
        self.authorized = authorized
        self.messages = messages or []
        self.connected = False
        self.limits: list[int] = []

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def is_user_authorized(self) -> bool:
        return self.authorized

    async def get_entity(self, username: str):
        if username == "ghost":
            raise ValueError(f'No user has "{username}" as username')
        return username

    async def iter_messages(self, entity, limit: int):
        self.limits.append(limit)
        for message in self.messages[:limit]:
            yield message


def test_fetch_recent_messages_filters_window() -> None:
    client = FakeClient(
        messages=[
            DummyMessage(3, "Hiring a designer", timedelta(hours=1)),
            DummyMessage(2, "", timedelta(hours=2)),
            DummyMessage(1, "Old post", timedelta(days=3)),
        ]
    )
    source = TelethonChannelSource(lambda: client)

    async def scenario():
        await source.connect()
        try:
            return await source.fetch_recent_messages("@JobsFeed", timedelta(hours=24), 50)
        finally:
            await source.disconnect()

    messages = asyncio.run(scenario())

    assert [message.message_id for message in messages] == [3]
    assert messages[0].url == "https://t.me/jobsfeed/3"
    assert client.limits == [50]
    assert client.connected is False


def test_unknown_channel_is_unavailable() -> None:
    source = TelethonChannelSource(FakeClient)

    async def scenario():
        await source.connect()
        await source.fetch_recent_messages("ghost", timedelta(hours=24), 10)

    with pytest.raises(ChannelUnavailableError):
        asyncio.run(scenario())


def test_invalid_handle_is_unavailable() -> None:
    source = TelethonChannelSource(FakeClient)

    async def scenario():
        await source.connect()
        await source.fetch_recent_messages("not a handle", timedelta(hours=24), 10)

    with pytest.raises(ChannelUnavailableError):
        asyncio.run(scenario())


def test_unauthorized_session_fails_to_connect() -> None:
    source = TelethonChannelSource(lambda: FakeClient(authorized=False))
    with pytest.raises(SourceConnectionError):
        asyncio.run(source.connect())
    assert source.client is None


def test_fetch_before_connect_raises() -> None:
    source = TelethonChannelSource(FakeClient)
    with pytest.raises(SourceConnectionError):
        asyncio.run(source.fetch_recent_messages("jobsfeed", timedelta(hours=1), 10))
