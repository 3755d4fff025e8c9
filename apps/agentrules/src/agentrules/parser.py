"""Recipe file parser (YAML / JSON)."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import ParseError
from .models import Recipe, RecipeSource

logger = logging.getLogger(__name__)

RECIPE_EXTENSIONS = (".yaml", ".yml", ".json")
REQUIRED_FIELDS = ("name", "description", "category", "techStack")
# First match wins
RULES_FIELDS = ("rules", "rulesText", "agentRules", "windsurfRules")


def is_recipe_file(name: str) -> bool:
    """Check whether a filename has a recipe extension."""
    return name.lower().endswith(RECIPE_EXTENSIONS)


class RecipeParser:
    """Turns raw recipe bodies into validated Recipe records."""

    def parse(self, filename: str, text: str, source: RecipeSource) -> Recipe:
        """
        Parse one recipe file.

        Args:
            filename: Source filename; its stem becomes the recipe key
            text: Raw YAML or JSON body
            source: Provenance to attach

        Returns:
            Validated Recipe

        Raises:
            ParseError: syntax error, non-mapping document, missing fields
        """
        data = self._load(filename, text)

        missing = [field for field in REQUIRED_FIELDS if not self._field(data, field)]
        if missing:
            raise ParseError(filename, f"missing required field(s): {', '.join(missing)}")

        try:
            recipe = Recipe(
                key=Path(filename).stem,
                name=data["name"],
                description=data["description"],
                category=data["category"],
                tags=data.get("tags"),
                tech_stack=self._field(data, "techStack"),
                rules_text=self._rules_text(data),
                version=data.get("version"),
                author=data.get("author"),
                source=source,
            )
        except ValidationError as e:
            raise ParseError(filename, f"invalid recipe: {e.errors()[0]['msg']}") from e

        if not recipe.has_known_category:
            logger.info("Recipe %s uses non-standard category %r", recipe.key, recipe.category)
        logger.debug("Parsed recipe %s (%d stack entries)", recipe.key, len(recipe.tech_stack))
        return recipe

    def _load(self, filename: str, text: str) -> dict[str, Any]:
        """Decode the body according to the file extension."""
        try:
            if filename.lower().endswith(".json"):
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ParseError(filename, f"syntax error: {e}") from e

        if not isinstance(data, dict):
            raise ParseError(filename, f"expected a mapping, got {type(data).__name__}")
        return data

    @staticmethod
    def _field(data: dict[str, Any], name: str) -> Any:
        if name == "techStack":
            return data.get("techStack") or data.get("tech_stack")
        return data.get(name)

    @staticmethod
    def _rules_text(data: dict[str, Any]) -> str | None:
        for field in RULES_FIELDS:
            value = data.get(field)
            if isinstance(value, str) and value.strip():
                return value
        return None
