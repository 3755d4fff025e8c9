"""Recipe subsystem errors."""


class RecipeError(Exception):
    """Base class for recipe resolution errors."""


class RemoteError(RecipeError):
    """Remote repository could not be used."""


class RemoteUnavailable(RemoteError):
    """Non-2xx response or connection failure."""

    def __init__(self, url: str, status_code: int | None = None, message: str | None = None):
        self.url = url
        self.status_code = status_code
        self.message = message
        if status_code is None:
            text = f"{url} unreachable"
        else:
            text = f"HTTP {status_code} for {url}"
        super().__init__(f"{text}: {message}" if message else text)


class RemoteTimeout(RemoteError):
    """Request exceeded the fixed timeout."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request to {url} timed out after {timeout:g}s")


class ParseError(RecipeError):
    """Malformed recipe body. Recoverable: the entry is skipped."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class CacheError(RecipeError):
    """Local cache problem."""


class CacheWriteFailed(CacheError):
    """Cache could not be written (disk or permission issue)."""


class CacheCorrupt(CacheError):
    """Metadata disagrees with the recipe files on disk."""
