"""Recipe resolution and caching for agent rules generation."""

from .cache import LocalCacheStore
from .config import EndpointConfig
from .diagnostics import DiagnosticReport, ProbeResult, test_connection
from .errors import (
    CacheCorrupt,
    CacheError,
    CacheWriteFailed,
    ParseError,
    RecipeError,
    RemoteError,
    RemoteTimeout,
    RemoteUnavailable,
)
from .index import RecipeIndex
from .models import CacheInfo, CacheMetadata, Recipe, RecipeSource, RemoteEntry, SourceType
from .parser import RecipeParser
from .remote import RemoteClient
from .resolver import FallbackResolver, Resolution, ResolutionTier

__version__ = "0.1.0"

__all__ = [
    "CacheCorrupt",
    "CacheError",
    "CacheInfo",
    "CacheMetadata",
    "CacheWriteFailed",
    "DiagnosticReport",
    "EndpointConfig",
    "FallbackResolver",
    "LocalCacheStore",
    "ParseError",
    "ProbeResult",
    "Recipe",
    "RecipeError",
    "RecipeIndex",
    "RecipeParser",
    "RecipeSource",
    "RemoteClient",
    "RemoteEntry",
    "RemoteError",
    "RemoteTimeout",
    "RemoteUnavailable",
    "Resolution",
    "ResolutionTier",
    "SourceType",
    "test_connection",
]
