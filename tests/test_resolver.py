"""Tests for tiered recipe resolution."""

from datetime import timedelta

import pytest

from agentrules.bundled import load_bundled_recipes
from agentrules.cache import METADATA_FILE, LocalCacheStore
from agentrules.errors import CacheWriteFailed, RemoteTimeout, RemoteUnavailable
from agentrules.models import SourceType
from agentrules.remote import RemoteClient
from agentrules.resolver import FallbackResolver, ResolutionTier
from conftest import LIST_URL, MALFORMED_YAML, RAW_BASE, make_recipe, recipe_yaml


class UnreachableRemote:
    """Remote that always fails and counts how often it was asked."""

    def __init__(self, error=None):
        self.calls = 0
        self.error = error or RemoteUnavailable(LIST_URL, 503, "Service Unavailable")

    def list_remote_entries(self):
        self.calls += 1
        raise self.error


@pytest.fixture
def cache(config, clock):
    return LocalCacheStore(config, clock=clock)


@pytest.fixture
def remote(config, repo):
    return RemoteClient(config, transport=repo.transport)


def test_valid_cache_never_calls_remote(config, cache):
    cache.write_all([make_recipe("cached")])
    remote = UnreachableRemote()
    resolver = FallbackResolver(config, remote=remote, cache=cache)

    resolution = resolver.resolve()

    assert resolution.tier is ResolutionTier.CACHED
    assert [recipe.key for recipe in resolution.recipes] == ["cached"]
    assert remote.calls == 0


def test_force_refresh_goes_remote_first(config, cache, repo, remote):
    cache.write_all([make_recipe("cached")])
    resolver = FallbackResolver(config, remote=remote, cache=cache)

    resolution = resolver.resolve(force_refresh=True)

    assert resolution.tier is ResolutionTier.REMOTE
    assert [recipe.key for recipe in resolution.recipes] == ["react-app"]
    assert repo.count(LIST_URL) == 1
    # cache was rewritten
    assert [recipe.key for recipe in cache.read_all()] == ["react-app"]


def test_force_refresh_with_unreachable_remote_uses_cache(config, cache):
    cache.write_all([make_recipe("cached")])
    remote = UnreachableRemote()
    resolver = FallbackResolver(config, remote=remote, cache=cache)

    resolution = resolver.refresh()

    assert remote.calls == 1
    assert resolution.tier is ResolutionTier.STALE_CACHE


def test_expired_cache_refreshes_from_remote(config, cache, clock, repo, remote):
    cache.write_all([make_recipe("cached")])
    clock.advance(config.ttl + timedelta(minutes=1))
    resolver = FallbackResolver(config, remote=remote, cache=cache)

    resolution = resolver.resolve()

    assert resolution.tier is ResolutionTier.REMOTE
    assert cache.is_valid()


@pytest.mark.parametrize(
    "error",
    [RemoteUnavailable(LIST_URL, 403, "API rate limit exceeded"), RemoteTimeout(LIST_URL, 10.0)],
)
def test_remote_failure_returns_stale_cache(config, cache, clock, error):
    stale = [make_recipe("one"), make_recipe("two")]
    cache.write_all(stale)
    clock.advance(config.ttl * 2)
    resolver = FallbackResolver(config, remote=UnreachableRemote(error), cache=cache)

    resolution = resolver.resolve()

    assert resolution.tier is ResolutionTier.STALE_CACHE
    assert [recipe.model_dump() for recipe in resolution.recipes] == [
        recipe.model_dump() for recipe in stale
    ]


def test_bundled_fallback(config, cache):
    resolver = FallbackResolver(config, remote=UnreachableRemote(), cache=cache)

    first = resolver.resolve()
    second = resolver.resolve()

    assert first.tier is ResolutionTier.BUNDLED
    assert first.recipes
    assert [r.key for r in first.recipes] == [r.key for r in second.recipes]
    assert [r.key for r in first.recipes] == [r.key for r in load_bundled_recipes()]
    assert all(recipe.source.origin is SourceType.BUNDLED for recipe in first.recipes)
    # bundled recipes are not written to the cache
    assert cache.read_all() == []


def test_bundled_fallback_disabled(config, cache):
    config.update(allow_bundled_fallback=False)
    resolver = FallbackResolver(config, remote=UnreachableRemote(), cache=cache)

    resolution = resolver.resolve()

    assert resolution.tier is None
    assert resolution.is_empty
    assert len(resolution.index()) == 0


def test_one_valid_one_malformed_remote_file(config, cache, cache_dir, repo, remote):
    repo.files = {"a.yaml": recipe_yaml("Alpha"), "b.yaml": MALFORMED_YAML}
    resolver = FallbackResolver(config, remote=remote, cache=cache)

    resolution = resolver.resolve()

    assert resolution.tier is ResolutionTier.REMOTE
    assert [recipe.key for recipe in resolution.recipes] == ["a"]
    assert set(resolution.skipped) == {"b.yaml"}
    assert sorted(path.name for path in cache_dir.iterdir()) == sorted(["a.json", METADATA_FILE])
    assert cache.describe().recipe_count == 1


def test_remote_recipes_carry_provenance(config, cache, remote):
    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    [recipe] = resolution.recipes
    assert recipe.source.origin is SourceType.REMOTE
    assert recipe.source.url == f"{RAW_BASE}/react-app.yaml"
    assert recipe.source.fetched_at is not None


def test_failed_downloads_are_skipped(config, cache, repo, remote):
    repo.files["b.yaml"] = recipe_yaml("Beta")
    repo.content_status["react-app.yaml"] = 404
    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    assert [recipe.key for recipe in resolution.recipes] == ["b"]
    assert "react-app.yaml" in resolution.skipped


def test_empty_listing_falls_through(config, cache, repo, remote):
    repo.files = {}
    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()
    assert resolution.tier is ResolutionTier.BUNDLED


def test_all_entries_malformed_falls_back_to_stale_cache(config, cache, clock, repo, remote):
    cache.write_all([make_recipe("old")])
    clock.advance(config.ttl)
    repo.files = {"b.yaml": MALFORMED_YAML}

    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    assert resolution.tier is ResolutionTier.STALE_CACHE
    assert [recipe.key for recipe in resolution.recipes] == ["old"]


def test_valid_but_empty_cache_goes_remote(config, cache, remote):
    cache.write_all([])
    assert cache.is_valid()

    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    assert resolution.tier is ResolutionTier.REMOTE


def test_cache_write_failure_still_returns_remote_recipes(config, cache, remote, monkeypatch):
    def failing_write(recipes):
        raise CacheWriteFailed("disk full")

    monkeypatch.setattr(cache, "write_all", failing_write)

    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    assert resolution.tier is ResolutionTier.REMOTE
    assert [recipe.key for recipe in resolution.recipes] == ["react-app"]


def test_load_index(config, cache, remote):
    index = FallbackResolver(config, remote=remote, cache=cache).load_index()
    assert index.get("react-app").name == "React App"


def test_redirect_loop_falls_back_to_stale_cache(config, cache, clock, repo, remote):
    cache.write_all([make_recipe("old")])
    clock.advance(config.ttl)
    repo.files = {"a.yaml": recipe_yaml("Alpha")}
    repo.redirect_loops.add(f"{RAW_BASE}/a.yaml")

    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    assert resolution.tier is ResolutionTier.STALE_CACHE
    assert [recipe.key for recipe in resolution.recipes] == ["old"]
    assert set(resolution.skipped) == {"a.yaml"}


def test_recipe_named_like_metadata_stays_cached(config, cache, repo, remote):
    repo.files = {"cache-metadata.yaml": recipe_yaml("Meta"), "b.yaml": recipe_yaml("Beta")}

    resolution = FallbackResolver(config, remote=remote, cache=cache).resolve()

    assert len(resolution.recipes) == 2
    assert cache.is_valid()
    assert sorted(recipe.key for recipe in cache.read_all()) == ["b", "cache-metadata"]
