"""In-memory recipe index and search."""

from __future__ import annotations

import json
import logging
from typing import Iterable, Iterator

from .models import Recipe

logger = logging.getLogger(__name__)


def searchable_text(recipe: Recipe) -> str:
    """Lower-cased text that ``search`` matches against."""
    return " ".join(
        [
            recipe.name,
            recipe.description,
            recipe.category,
            json.dumps(recipe.tech_stack, ensure_ascii=False),
            json.dumps(recipe.tags, ensure_ascii=False),
        ]
    ).lower()


class RecipeIndex:
    """Read-only view of a resolved recipe set, keyed by recipe key."""

    def __init__(self, recipes: dict[str, Recipe]):
        self._recipes = recipes

    @classmethod
    def build(cls, recipes: Iterable[Recipe]) -> "RecipeIndex":
        """Index recipes in order; the first recipe with a given key wins."""
        by_key: dict[str, Recipe] = {}
        for recipe in recipes:
            if recipe.key in by_key:
                logger.warning("Duplicate recipe key %s ignored", recipe.key)
                continue
            by_key[recipe.key] = recipe
        return cls(by_key)

    def __len__(self) -> int:
        return len(self._recipes)

    def __contains__(self, key: object) -> bool:
        return key in self._recipes

    def __iter__(self) -> Iterator[Recipe]:
        return iter(self._recipes.values())

    def get(self, key: str) -> Recipe | None:
        return self._recipes.get(key)

    def keys(self) -> list[str]:
        return list(self._recipes)

    def list(self) -> list[Recipe]:
        return list(self._recipes.values())

    def search(self, query: str) -> list[Recipe]:
        """
        Case-insensitive substring search.

        Matches name, description, category, tech stack and tags. Results
        keep index order; an empty query returns everything.
        """
        term = query.strip().lower()
        if not term:
            return self.list()
        matches = [recipe for recipe in self._recipes.values() if term in searchable_text(recipe)]
        logger.debug("Search %r matched %d/%d recipes", query, len(matches), len(self._recipes))
        return matches

    def categories(self) -> list[str]:
        """Distinct categories in index order."""
        return list(dict.fromkeys(recipe.category for recipe in self._recipes.values()))

    def by_category(self, category: str) -> list[Recipe]:
        wanted = category.lower()
        return [recipe for recipe in self._recipes.values() if recipe.category.lower() == wanted]

    def summaries(self) -> list[dict]:
        """Short listing rows for menus."""
        return [
            {
                "key": recipe.key,
                "name": recipe.name,
                "description": recipe.description,
                "category": recipe.category,
                "tags": list(recipe.tags),
            }
            for recipe in self._recipes.values()
        ]
