"""Tiered recipe resolution: cache, remote, stale cache, bundled."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .bundled import load_bundled_recipes
from .cache import LocalCacheStore, utcnow
from .config import EndpointConfig
from .errors import CacheWriteFailed, ParseError, RemoteError
from .index import RecipeIndex
from .models import Recipe, RecipeSource, SourceType
from .parser import RecipeParser
from .remote import RemoteClient

logger = logging.getLogger(__name__)


class ResolutionTier(str, Enum):
    """Which strategy produced a resolution."""

    CACHED = "cached"
    REMOTE = "remote"
    STALE_CACHE = "stale_cache"
    BUNDLED = "bundled"


@dataclass
class Resolution:
    """Resolved recipes and the tier that supplied them.

    ``tier`` is None when every strategy came up empty.
    """

    recipes: list[Recipe]
    tier: ResolutionTier | None
    skipped: dict[str, str] = field(default_factory=dict)  # remote entry -> reason

    @property
    def is_empty(self) -> bool:
        return not self.recipes

    def index(self) -> RecipeIndex:
        return RecipeIndex.build(self.recipes)


class FallbackResolver:
    """Resolves the available recipe set, degrading tier by tier."""

    def __init__(
        self,
        config: EndpointConfig,
        remote: RemoteClient | None = None,
        cache: LocalCacheStore | None = None,
        bundled: Callable[[], list[Recipe]] = load_bundled_recipes,
    ):
        """
        Initialize resolver.

        Args:
            config: Shared endpoint configuration
            remote: Remote client (built from config if omitted)
            cache: Cache store (built from config if omitted)
            bundled: Loader for the recipes shipped with the tool
        """
        self.config = config
        self.remote = remote or RemoteClient(config)
        self.cache = cache or LocalCacheStore(config)
        self.bundled = bundled
        self.parser = RecipeParser()

    def _fetch_remote(self) -> tuple[list[Recipe], dict[str, str]]:
        """List, download and parse remote recipes. Bad entries are skipped."""
        entries = self.remote.list_remote_entries()
        contents, errors = self.remote.fetch_all(entries)
        skipped = {name: str(error) for name, error in errors.items()}

        urls = {entry.name: entry.content_url for entry in entries}
        fetched_at = utcnow()
        recipes: dict[str, Recipe] = {}
        for name, text in contents.items():
            source = RecipeSource(origin=SourceType.REMOTE, url=urls[name], fetched_at=fetched_at)
            try:
                recipe = self.parser.parse(name, text, source)
            except ParseError as e:
                logger.warning("Skipping remote recipe %s: %s", name, e.reason)
                skipped[name] = str(e)
                continue
            recipes[recipe.key] = recipe

        logger.info(
            "Remote: %d recipes parsed, %d entries skipped", len(recipes), len(skipped)
        )
        return list(recipes.values()), skipped

    def resolve(self, force_refresh: bool = False) -> Resolution:
        """
        Resolve recipes. Never raises for remote or cache failures.

        Args:
            force_refresh: Skip the valid-cache tier and go to the remote first

        Returns:
            Resolution; empty with ``tier=None`` when nothing is available
        """
        if force_refresh:
            logger.info("Forced refresh, skipping cache")
        elif self.cache.is_valid():
            recipes = self.cache.read_all()
            if recipes:
                logger.info("Loaded %d recipes from cache", len(recipes))
                return Resolution(recipes, ResolutionTier.CACHED)
            logger.info("Cache is valid but empty, trying remote")

        skipped: dict[str, str] = {}
        try:
            recipes, skipped = self._fetch_remote()
        except RemoteError as e:
            logger.warning("Could not fetch remote recipes: %s", e)
        else:
            if recipes:
                try:
                    self.cache.write_all(recipes)
                except CacheWriteFailed as e:
                    logger.warning("Recipes not cached: %s", e)
                return Resolution(recipes, ResolutionTier.REMOTE, skipped)
            logger.warning("Remote repository yielded no usable recipes")

        recipes = self.cache.read_all()
        if recipes:
            logger.info("Falling back to %d cached recipes", len(recipes))
            return Resolution(recipes, ResolutionTier.STALE_CACHE, skipped)

        if self.config.allow_bundled_fallback:
            recipes = self.bundled()
            if recipes:
                logger.info("Falling back to %d bundled recipes", len(recipes))
                return Resolution(recipes, ResolutionTier.BUNDLED, skipped)

        logger.warning("No recipes could be loaded from any source")
        return Resolution([], None, skipped)

    def refresh(self) -> Resolution:
        return self.resolve(force_refresh=True)

    def load_index(self, force_refresh: bool = False) -> RecipeIndex:
        return self.resolve(force_refresh=force_refresh).index()
