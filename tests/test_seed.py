from __future__ import annotations

import json

from adapters.sqlite_storage import SQLiteStorage
from seed import apply_seed, build_categories, build_channels, load_seed_file

SEED = {
    "categories": [
        {
            "id": "technology",
            "name": "Technology",
            "subcategories": [{"name": "Software Development", "tags": ["python"]}],
        },
        {"id": "other", "name": "Other"},
    ],
    "channels": [
        {"username": "@JobsFeed", "name": "Jobs Feed", "category": "technology"},
        {"username": "not a handle"},
    ],
}


def test_build_categories_flattens_tree() -> None:
    categories = build_categories(SEED["categories"])
    by_id = {category.id: category for category in categories}
    assert set(by_id) == {"technology", "software-development", "other"}
    sub = by_id["software-development"]
    assert sub.level == 1
    assert sub.path == "technology/software-development"
    assert sub.parent_path == "technology"
    assert sub.tags == ("python",)
    assert by_id["technology"].level == 0


def test_build_channels_normalizes_and_skips_invalid() -> None:
    channels = build_channels(SEED["channels"])
    assert len(channels) == 1
    assert channels[0].id == "jobsfeed"
    assert channels[0].username == "jobsfeed"
    assert channels[0].is_active and channels[0].scraping_enabled


def test_apply_seed_round_trips_through_storage(tmp_path) -> None:
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(SEED), encoding="utf-8")
    storage = SQLiteStorage(str(tmp_path / "jobscope.db"))
    storage.init_db()

    assert apply_seed(storage, load_seed_file(str(path))) == (3, 1)
    # Re-seeding keeps counters and does not duplicate rows.
    storage.increment_category_job_count("technology")
    assert apply_seed(storage, SEED) == (3, 1)

    assert storage.get_category("technology").job_count == 1
    assert [channel.username for channel in storage.list_channels()] == ["jobsfeed"]
