"""Category hierarchy resolution (core domain)."""

from __future__ import annotations

import logging

from core.models import OTHER_PLACEMENT, CategoryPlacement
from core.ports import CategoryStorePort

LOGGER = logging.getLogger(__name__)


class CategoryResolver:
    """Map an extracted category name onto its (main, sub) hierarchy.

    Anything that cannot be placed lands in OTHER_PLACEMENT so the job is
    still saved.
    """

    def __init__(self, categories: CategoryStorePort) -> None:
        self._categories = categories

    def resolve(self, category_name: str) -> CategoryPlacement:
        try:
            category = self._categories.find_category_by_name(category_name)
            if category is None:
                return OTHER_PLACEMENT

            if category.level == 0:
                return CategoryPlacement(
                    category_id=category.id,
                    category_path=category.path,
                    main_category=category.name,
                    main_category_id=category.id,
                    category_hierarchy=(category.name,),
                )

            parent = None
            if category.parent_path:
                parent = self._categories.find_category_by_path(category.parent_path)
            if parent is None:
                LOGGER.warning("Parent %r not found for category %r", category.parent_path, category.name)
                return OTHER_PLACEMENT

            return CategoryPlacement(
                category_id=category.id,
                category_path=category.path,
                main_category=parent.name,
                main_category_id=parent.id,
                category_hierarchy=(parent.name, category.name),
            )
        except Exception:
            LOGGER.warning("Category lookup failed for %r", category_name, exc_info=True)
            return OTHER_PLACEMENT
