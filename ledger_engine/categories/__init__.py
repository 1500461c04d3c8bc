"""Category tree package."""

from ledger_engine.categories.tree import (
    DEFAULT_CATEGORIES,
    CategoryIndex,
    CategoryTree,
)

__all__ = ["CategoryIndex", "CategoryTree", "DEFAULT_CATEGORIES"]
