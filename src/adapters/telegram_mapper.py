"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from telethon.tl.custom import Message
from telethon.tl.types import PeerChannel, PeerChat

from core.handles import normalize_handle, private_permalink, public_permalink
from core.models import RawMessage


def _permalink(message: Message, username: Optional[str]) -> Optional[str]:
    # Prefer public usernames for permalinks when available.
    if username:
        return public_permalink(username, message.id)

    peer_id = message.peer_id
    if isinstance(peer_id, PeerChannel):
        return private_permalink(peer_id.channel_id, message.id)
    if isinstance(peer_id, PeerChat):
        return private_permalink(peer_id.chat_id, message.id)
    # PeerUser has no chat/channel id; no permalink is possible.
    return None


def build_raw_message(message: Message, channel_username: Optional[str] = None) -> RawMessage:
    """Build a core RawMessage from a Telethon Message.

    channel_username is the handle the channel was fetched by; it wins over
    the username on the attached chat entity, which may not be loaded.
    """

    chat = getattr(message, "chat", None)
    username = normalize_handle(channel_username) if channel_username else None
    if not username:
        chat_username = getattr(chat, "username", None)
        if isinstance(chat_username, str) and chat_username:
            username = chat_username

    date = message.date or datetime.now(timezone.utc)
    return RawMessage(
        message_id=message.id,
        text=message.raw_text or "",
        date=date,
        chat_id=message.chat_id or 0,
        url=_permalink(message, username),
    )
