"""GitHub remote host: API client and response cache."""

from depgraph.github.cache import FileCache
from depgraph.github.client import GitHubClient

__all__ = ["FileCache", "GitHubClient"]
