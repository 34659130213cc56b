"""Telethon channel source adapter.

Implements the core MessageSourcePort. The adapter owns exactly one client
per connect/disconnect cycle so a run reuses a single session for every
channel it reads.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from telethon import TelegramClient, errors

from adapters.telegram_mapper import build_raw_message
from core.errors import ChannelUnavailableError, SourceConnectionError
from core.handles import display_handle, normalize_handle
from core.models import RawMessage
from core.window import filter_recent

LOGGER = logging.getLogger(__name__)


class TelethonChannelSource:
    """Fetch recent channel history through a pre-authorized user session."""

    def __init__(self, client_factory: Callable[[], TelegramClient]) -> None:
        self._client_factory = client_factory
        self._client: Optional[TelegramClient] = None

    @property
    def client(self) -> Optional[TelegramClient]:
        return self._client

    async def connect(self) -> None:
        """Connect once; later calls reuse the open session."""

        if self._client is not None and self._client.is_connected():
            return

        client = self._client_factory()
        try:
            await client.connect()
            authorized = await client.is_user_authorized()
        except Exception as exc:
            raise SourceConnectionError(f"Failed to connect to Telegram: {exc}") from exc

        if not authorized:
            await client.disconnect()
            raise SourceConnectionError("Telegram session is not authorized; run the login command first")

        self._client = client
        LOGGER.info("Telegram client connected")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.disconnect()
        LOGGER.info("Telegram client disconnected")

    async def fetch_recent_messages(
        self, handle: str, window: timedelta, fetch_limit: int
    ) -> list[RawMessage]:
        """Fetch up to fetch_limit newest messages and keep the in-window ones."""

        if self._client is None:
            raise SourceConnectionError("Telegram client not connected")

        username = normalize_handle(handle)
        label = display_handle(handle)
        if username is None:
            raise ChannelUnavailableError(f"Invalid channel handle: {handle!r}")

        LOGGER.info("Fetching %s messages from %s", fetch_limit, label)
        try:
            entity = await self._client.get_entity(username)
        except (ValueError, TypeError, errors.RPCError) as exc:
            raise ChannelUnavailableError(f"Failed to resolve {label}: {exc}") from exc

        messages = []
        # iter_messages yields newest first; that order is kept downstream.
        async for message in self._client.iter_messages(entity, limit=fetch_limit):
            messages.append(build_raw_message(message, username))

        recent = filter_recent(messages, window)
        LOGGER.info("Retrieved %s of %s messages from %s within window", len(recent), len(messages), label)
        return recent
