"""Helpers for working with Telegram channel handles."""

from __future__ import annotations

from typing import Optional

_URL_PREFIXES = ("https://t.me/", "http://t.me/", "t.me/")


def normalize_handle(raw_handle: str) -> Optional[str]:
    """Return a bare, lower-cased username or None when the value is unusable.

    Accepts "@name", "name" and t.me links, the forms channels are entered
    with by the admin surface.
    """

    value = raw_handle.strip()
    for prefix in _URL_PREFIXES:
        if value.lower().startswith(prefix):
            value = value[len(prefix) :]
            break
    value = value.lstrip("@").split("/", 1)[0].strip()
    if not value or not value.replace("_", "a").isalnum():
        return None
    return value.lower()


def display_handle(raw_handle: str) -> str:
    """Return the "@name" label used in logs, errors and job sources."""

    normalized = normalize_handle(raw_handle)
    return f"@{normalized}" if normalized else raw_handle


def public_permalink(username: str, message_id: int) -> str:
    return f"https://t.me/{username}/{message_id}"


def private_permalink(peer_id: int, message_id: int) -> str:
    # Private channels/supergroups only have the /c/<id>/<msg> form.
    return f"https://t.me/c/{peer_id}/{message_id}"
