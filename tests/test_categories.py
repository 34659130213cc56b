from __future__ import annotations

from typing import Optional

from core.categories import CategoryResolver
from core.models import OTHER_PLACEMENT, Category

TECHNOLOGY = Category(id="technology", name="Technology", path="technology", level=0)
SOFTWARE = Category(
    id="software-development",
    name="Software Development",
    path="technology/software-development",
    level=1,
    parent_path="technology",
)
ORPHAN = Category(
    id="orphan",
    name="Orphan",
    path="missing/orphan",
    level=1,
    parent_path="missing",
)


class FakeCategories:
    def __init__(self, categories: list[Category], broken: bool = False) -> None:
        self._categories = categories
        self._broken = broken

    def find_category_by_name(self, name: str) -> Optional[Category]:
        if self._broken:
            raise RuntimeError("store offline")
        return next((c for c in self._categories if c.name == name), None)

    def find_category_by_path(self, path: str) -> Optional[Category]:
        return next((c for c in self._categories if c.path == path), None)


def test_resolve_main_category() -> None:
    placement = CategoryResolver(FakeCategories([TECHNOLOGY])).resolve("Technology")
    assert placement.category_id == "technology"
    assert placement.main_category_id == "technology"
    assert placement.category_hierarchy == ("Technology",)


def test_resolve_subcategory_uses_parent() -> None:
    placement = CategoryResolver(FakeCategories([TECHNOLOGY, SOFTWARE])).resolve("Software Development")
    assert placement.category_id == "software-development"
    assert placement.category_path == "technology/software-development"
    assert placement.main_category == "Technology"
    assert placement.main_category_id == "technology"
    assert placement.category_hierarchy == ("Technology", "Software Development")


def test_resolve_unknown_name_falls_back_to_other() -> None:
    resolver = CategoryResolver(FakeCategories([TECHNOLOGY]))
    assert resolver.resolve("Underwater Basket Weaving") == OTHER_PLACEMENT


def test_resolve_missing_parent_falls_back_to_other() -> None:
    resolver = CategoryResolver(FakeCategories([ORPHAN]))
    assert resolver.resolve("Orphan") == OTHER_PLACEMENT


def test_resolve_store_error_falls_back_to_other() -> None:
    resolver = CategoryResolver(FakeCategories([TECHNOLOGY], broken=True))
    assert resolver.resolve("Technology") == OTHER_PLACEMENT
