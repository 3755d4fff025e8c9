"""Recipes shipped with the package."""

import logging
from pathlib import Path

from .errors import ParseError
from .models import Recipe, RecipeSource, SourceType
from .parser import RecipeParser, is_recipe_file

logger = logging.getLogger(__name__)

BUNDLED_DIR = Path(__file__).parent / "bundled"


def load_bundled_recipes(directory: Path = BUNDLED_DIR) -> list[Recipe]:
    """
    Load the fixed recipe set installed with the tool.

    Files are read in sorted order, so the result is deterministic.
    Unparseable files are skipped.
    """
    if not directory.is_dir():
        logger.warning("Bundled recipe directory missing: %s", directory)
        return []

    parser = RecipeParser()
    recipes: dict[str, Recipe] = {}
    for path in sorted(directory.iterdir()):
        if not path.is_file() or not is_recipe_file(path.name):
            continue
        try:
            text = path.read_text(encoding="utf-8")
            recipe = parser.parse(path.name, text, RecipeSource(origin=SourceType.BUNDLED))
        except (OSError, UnicodeDecodeError, ParseError) as e:
            logger.warning("Skipping bundled recipe %s: %s", path.name, e)
            continue
        recipes[recipe.key] = recipe

    logger.debug("Loaded %d bundled recipes", len(recipes))
    return list(recipes.values())
