"""On-disk recipe cache."""

import json
import logging
import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from .config import EndpointConfig
from .errors import CacheCorrupt, CacheError, CacheWriteFailed, ParseError
from .models import CacheInfo, CacheMetadata, Recipe, RecipeSource, SourceType
from .parser import RecipeParser, is_recipe_file

logger = logging.getLogger(__name__)

# Not a recipe extension, so no recipe key can map onto it
METADATA_FILE = "cache-metadata.meta"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _write_json(path: Path, data: Any) -> None:
    """Write JSON through a temp file so readers never see half a file."""
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


class LocalCacheStore:
    """Recipe files plus a metadata file under ``config.cache_dir``.

    Assumes a single process owns the directory for one resolution cycle.
    """

    def __init__(
        self,
        config: EndpointConfig,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config
        self.clock = clock or utcnow
        self.parser = RecipeParser()

    @property
    def cache_dir(self) -> Path:
        return self.config.cache_dir

    @property
    def metadata_path(self) -> Path:
        return self.cache_dir / METADATA_FILE

    def _recipe_files(self) -> list[Path]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.cache_dir.iterdir()
            if path.is_file() and is_recipe_file(path.name)
        )

    def describe(self) -> CacheMetadata | None:
        """Load cache metadata, or None if missing or unreadable."""
        path = self.metadata_path
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return CacheMetadata(**json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Unreadable cache metadata %s: %s", path, e)
            return None

    def check_integrity(self, metadata: CacheMetadata) -> None:
        """
        Compare metadata with the recipe files on disk.

        Raises:
            CacheCorrupt: recipe file count differs from ``recipe_count``
        """
        count = len(self._recipe_files())
        if count != metadata.recipe_count:
            raise CacheCorrupt(
                f"metadata lists {metadata.recipe_count} recipes, found {count} files in {self.cache_dir}"
            )

    def age(self, metadata: CacheMetadata) -> timedelta:
        return self.clock() - _aware(metadata.last_update)

    def is_valid(self) -> bool:
        """True if metadata parses, matches the files and is younger than the TTL."""
        metadata = self.describe()
        if metadata is None:
            return False
        try:
            self.check_integrity(metadata)
        except CacheCorrupt as e:
            logger.warning("Cache corrupt, refresh required: %s", e)
            return False
        if metadata.source_fingerprint and metadata.source_fingerprint != self.config.fingerprint:
            logger.info("Cache was built from a different repository, refresh required")
            return False
        age = self.age(metadata)
        valid = age < self.config.ttl
        logger.debug("Cache age %s, ttl %s, valid=%s", age, self.config.ttl, valid)
        return valid

    def _read_recipe(self, path: Path) -> Recipe:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise ParseError(path.name, f"syntax error: {e}") from e
            # Normalized record written by write_all
            if isinstance(data, dict) and "source" in data:
                try:
                    return Recipe.model_validate({**data, "key": path.stem})
                except ValidationError as e:
                    raise ParseError(path.name, f"invalid cached record: {e.errors()[0]['msg']}") from e

        # Raw recipe file left by an older cache layout
        fetched_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        source = RecipeSource(origin=SourceType.LOCAL, url=None, fetched_at=fetched_at)
        return self.parser.parse(path.name, text, source)

    def read_all(self) -> list[Recipe]:
        """
        Read every cached recipe, ignoring validity.

        Malformed files are skipped with a warning. On duplicate keys the
        file read last wins.
        """
        recipes: dict[str, Recipe] = {}
        for path in self._recipe_files():
            try:
                recipe = self._read_recipe(path)
            except (OSError, UnicodeDecodeError, ParseError) as e:
                logger.warning("Skipping cache file %s: %s", path.name, e)
                continue
            if recipe.key in recipes:
                logger.debug("Cache file %s redefines recipe %s", path.name, recipe.key)
            recipes[recipe.key] = recipe
        logger.debug("Read %d recipes from %s", len(recipes), self.cache_dir)
        return list(recipes.values())

    def write_all(self, recipes: list[Recipe]) -> CacheMetadata:
        """
        Replace the cache contents. Metadata is written last.

        Raises:
            CacheWriteFailed: directory, recipe or metadata write failed
        """
        by_key = {recipe.key: recipe for recipe in recipes}
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.metadata_path.unlink(missing_ok=True)
            keep = {f"{key}.json" for key in by_key}
            for path in self._recipe_files():
                if path.name not in keep:
                    path.unlink()
            for key, recipe in by_key.items():
                _write_json(self.cache_dir / f"{key}.json", recipe.model_dump(mode="json"))
        except OSError as e:
            raise CacheWriteFailed(f"could not write recipes to {self.cache_dir}: {e}") from e

        metadata = CacheMetadata(
            last_update=self.clock(),
            recipe_count=len(by_key),
            source_fingerprint=self.config.fingerprint,
            recipe_keys=sorted(by_key),
        )
        try:
            _write_json(self.metadata_path, metadata.model_dump(mode="json"))
        except OSError as e:
            raise CacheWriteFailed(f"could not write {self.metadata_path}: {e}") from e

        logger.info("Cached %d recipes in %s", metadata.recipe_count, self.cache_dir)
        return metadata

    def clear(self) -> bool:
        """
        Remove the cache directory. A missing directory is not an error.

        Returns:
            True if something was removed
        """
        if not self.cache_dir.exists():
            logger.debug("No cache to clear at %s", self.cache_dir)
            return False
        try:
            shutil.rmtree(self.cache_dir)
        except OSError as e:
            raise CacheError(f"could not clear {self.cache_dir}: {e}") from e
        logger.info("Cleared recipe cache %s", self.cache_dir)
        return True

    def info(self) -> CacheInfo:
        """Cache status for display."""
        metadata = self.describe()
        return CacheInfo(
            cache_dir=self.cache_dir,
            exists=self.cache_dir.exists(),
            metadata=metadata,
            age=self.age(metadata) if metadata else None,
            is_valid=self.is_valid(),
        )
