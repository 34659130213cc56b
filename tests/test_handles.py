from __future__ import annotations

from core.handles import display_handle, normalize_handle, private_permalink, public_permalink


def test_normalize_handle_accepts_common_forms() -> None:
    assert normalize_handle("@JobsFeed") == "jobsfeed"
    assert normalize_handle("jobsfeed") == "jobsfeed"
    assert normalize_handle("https://t.me/jobs_feed") == "jobs_feed"
    assert normalize_handle("t.me/jobsfeed/123") == "jobsfeed"


def test_normalize_handle_rejects_invalid_values() -> None:
    assert normalize_handle("") is None
    assert normalize_handle("@") is None
    assert normalize_handle("jobs feed") is None


def test_display_handle_adds_at_sign() -> None:
    assert display_handle("jobsfeed") == "@jobsfeed"
    assert display_handle("@JobsFeed") == "@jobsfeed"


def test_permalinks() -> None:
    assert public_permalink("jobsfeed", 42) == "https://t.me/jobsfeed/42"
    assert private_permalink(123, 42) == "https://t.me/c/123/42"
