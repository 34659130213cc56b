"""Seed channels and categories from a JSON file.

Reference data normally comes from the admin surface; this loader lets a
fresh database be populated from a file such as seed.example.json.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from core.handles import normalize_handle
from core.models import Category, Channel

LOGGER = logging.getLogger(__name__)


def _slug(value: str) -> str:
    return "-".join(value.lower().replace("&", " ").replace("/", " ").split())


def build_categories(raw_categories: Iterable[dict[str, Any]]) -> list[Category]:
    """Flatten main categories and their nested subcategories."""

    categories: list[Category] = []
    for entry in raw_categories:
        main_id = entry.get("id") or _slug(entry["name"])
        categories.append(
            Category(
                id=main_id,
                name=entry["name"],
                path=main_id,
                full_path=main_id,
                level=0,
                tags=tuple(entry.get("tags", [])),
                keywords=tuple(entry.get("keywords", [])),
            )
        )
        for sub in entry.get("subcategories", []):
            sub_id = sub.get("id") or _slug(sub["name"])
            path = f"{main_id}/{sub_id}"
            categories.append(
                Category(
                    id=sub_id,
                    name=sub["name"],
                    path=path,
                    full_path=path,
                    parent_path=main_id,
                    level=1,
                    tags=tuple(sub.get("tags", [])),
                    keywords=tuple(sub.get("keywords", [])),
                )
            )
    return categories


def build_channels(raw_channels: Iterable[dict[str, Any]]) -> list[Channel]:
    channels: list[Channel] = []
    for entry in raw_channels:
        username = normalize_handle(str(entry.get("username", "")))
        if username is None:
            LOGGER.warning("Skipping channel with invalid username: %r", entry.get("username"))
            continue
        channels.append(
            Channel(
                id=entry.get("id") or username,
                username=username,
                name=entry.get("name") or username,
                image_url=entry.get("image_url"),
                category=entry.get("category", "general"),
                is_active=bool(entry.get("is_active", True)),
                scraping_enabled=bool(entry.get("scraping_enabled", True)),
            )
        )
    return channels


def apply_seed(storage, data: dict[str, Any]) -> tuple[int, int]:
    """Upsert categories and channels; returns (categories, channels) written."""

    categories = build_categories(data.get("categories", []))
    channels = build_channels(data.get("channels", []))
    for category in categories:
        storage.upsert_category(category)
    for channel in channels:
        storage.upsert_channel(channel)
    LOGGER.info("Seeded %s categories and %s channels", len(categories), len(channels))
    return len(categories), len(channels)


def load_seed_file(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("seed file root must be an object")
    return data
