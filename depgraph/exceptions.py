"""Custom exceptions for DepGraph."""


class DepGraphError(Exception):
    """Base exception for all DepGraph errors."""


class ConfigError(DepGraphError):
    """Raised when configuration is missing or invalid (e.g. no API token)."""


class InvalidInputError(DepGraphError):
    """Raised when a graph or analyser call receives an unusable argument."""


class RemoteError(DepGraphError):
    """Base class for failures talking to the remote code host."""


class TransportError(RemoteError):
    """Raised on network failures and non-recoverable HTTP errors."""


class RateLimitError(TransportError):
    """Raised when the host rate limit is exhausted and retries ran out."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


class NotFoundError(RemoteError):
    """Raised when the host reports a resource does not exist."""


class ManifestNotFoundError(NotFoundError):
    """Raised when the requested manifest does not exist in a repository."""

    def __init__(self, owner: str, repo: str, path: str) -> None:
        self.owner = owner
        self.repo = repo
        self.path = path
        super().__init__(f"{path} not found in {owner}/{repo}")


class AuthenticationError(RemoteError):
    """Raised when the host rejects our credentials."""


class ScanCancelledError(DepGraphError):
    """Raised when a scan context is cancelled or its deadline passes."""


class ScanError(DepGraphError):
    """Raised when a scan cannot produce any meaningful result."""


class CacheIOError(DepGraphError):
    """Raised when a cache entry cannot be written or the cache cleared."""
