"""Async GitHub API client with pagination, rate-limit handling, and retries."""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
import time
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import structlog

from depgraph.core.config import RemoteConfig
from depgraph.exceptions import (
    AuthenticationError,
    CacheIOError,
    ManifestNotFoundError,
    NotFoundError,
    RateLimitError,
    RemoteError,
    TransportError,
)
from depgraph.github.cache import FileCache
from depgraph.scanner.context import ScanContext, background
from depgraph.scanner.host import RepoHandle

log = structlog.get_logger("depgraph.github")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds

_CACHE_HOST = "github.com"


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Implements the :class:`~depgraph.scanner.host.RemoteHost` capability.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        cache: FileCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._cache = cache

    @classmethod
    def from_config(cls, config: RemoteConfig, cache: FileCache | None = None) -> GitHubClient:
        """Build a client from config. Raises ConfigError when no token is set."""
        return cls(
            config.resolve_token(),
            base_url=config.base_url,
            timeout=config.timeout,
            cache=cache,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── remote host capability ─────────────────────────────────────────────

    async def list_repositories(
        self, org: str, ctx: ScanContext | None = None
    ) -> list[RepoHandle]:
        """List every repository of *org*, following all pages."""
        ctx = ctx or background()
        cache_key = f"{_CACHE_HOST}/orgs/{org}/repos"
        cached = await self._cache_get(cache_key)
        if isinstance(cached, list):
            return [RepoHandle(**item) for item in cached]

        repos: list[RepoHandle] = []
        try:
            async for item in self.get_paginated(
                f"/orgs/{org}/repos", {"type": "all"}, ctx=ctx, max_pages=None
            ):
                repos.append(
                    RepoHandle(
                        owner=(item.get("owner") or {}).get("login", org),
                        name=item["name"],
                        default_branch=item.get("default_branch"),
                        archived=bool(item.get("archived", False)),
                    )
                )
        except (KeyError, TypeError) as exc:
            raise TransportError(f"malformed repository listing for {org}: {exc}") from exc

        await self._cache_set(
            cache_key,
            [
                {
                    "owner": r.owner,
                    "name": r.name,
                    "default_branch": r.default_branch,
                    "archived": r.archived,
                }
                for r in repos
            ],
        )
        log.info("github.repos_listed", org=org, count=len(repos))
        return repos

    async def get_manifest(
        self, owner: str, repo: str, path: str, ctx: ScanContext | None = None
    ) -> str:
        """Fetch the text of *path* in *owner*/*repo* via the contents API."""
        ctx = ctx or background()
        cache_key = f"{_CACHE_HOST}/{owner}/{repo}/{path}"
        cached = await self._cache_get(cache_key)
        if isinstance(cached, str):
            return cached

        try:
            data = await self.get(f"/repos/{owner}/{repo}/contents/{path}", ctx=ctx)
        except NotFoundError as exc:
            raise ManifestNotFoundError(owner, repo, path) from exc

        text = self._decode_contents(data, f"{owner}/{repo}/{path}")
        await self._cache_set(cache_key, text)
        return text

    # ── public ─────────────────────────────────────────────────────────────

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        ctx: ScanContext | None = None,
        max_pages: int | None = 10,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield JSON items from a paginated GitHub API endpoint.

        Automatically follows ``Link: <...>; rel="next"`` headers and
        respects rate-limit headers. Stops after *max_pages* pages
        (``None`` means all of them).
        """
        ctx = ctx or background()
        url: str | None = path
        params = dict(params or {})
        params.setdefault("per_page", 100)
        page = 0

        while url and (max_pages is None or page < max_pages):
            response, data = await self._fetch(ctx, url, params if page == 0 else None)

            if isinstance(data, list):
                for item in data:
                    yield item
            else:
                yield data

            url = self._parse_next_link(response.headers.get("Link", ""))
            page += 1

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        ctx: ScanContext | None = None,
    ) -> Any:
        """Single-resource GET, returns parsed JSON."""
        _, data = await self._fetch(ctx or background(), path, params)
        return data

    # ── internal ───────────────────────────────────────────────────────────

    async def _fetch(
        self,
        ctx: ScanContext,
        url: str,
        params: dict[str, Any] | None,
    ) -> tuple[httpx.Response, Any]:
        """Run one request under *ctx* and decode its JSON body.

        httpx errors and undecodable bodies are raised as RemoteError.
        """

        async def _once() -> tuple[httpx.Response, Any]:
            response = await self._request_with_retry(url, params)
            await self._check_rate_limit(response)
            try:
                return response, response.json()
            except ValueError as exc:
                raise TransportError(f"invalid JSON from {url}: {exc}") from exc

        try:
            return await ctx.run(_once())
        except httpx.HTTPStatusError as exc:
            raise self._translate_status(exc) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"request to {url} failed: {exc}") from exc

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx, 403 rate-limit, and timeout errors."""
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url, params=params)

                # 403 with rate-limit headers → sleep and retry
                if resp.status_code == 403 and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "github.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=_MAX_RETRIES,
                    )
                    await asyncio.sleep(wait)
                    last_exc = RateLimitError(wait)
                    continue

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                # 5xx, retry
                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "github.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until rate-limit resets if remaining == 0."""
        remaining = self._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None and remaining == 0:
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    async def _cache_get(self, key: str) -> Any:
        if self._cache is None:
            return None
        return await asyncio.to_thread(self._cache.get, key)

    async def _cache_set(self, key: str, value: Any) -> None:
        if self._cache is None:
            return
        try:
            await asyncio.to_thread(self._cache.set, key, value)
        except CacheIOError:
            log.warning("github.cache_write_failed", key=key, exc_info=True)

    @staticmethod
    def _translate_status(exc: httpx.HTTPStatusError) -> RemoteError:
        status = exc.response.status_code
        url = str(exc.request.url)
        if status == 404:
            return NotFoundError(f"GitHub resource not found: {url}")
        if status in (401, 403):
            return AuthenticationError(f"GitHub rejected credentials ({status}) for {url}")
        return TransportError(f"GitHub returned HTTP {status} for {url}")

    @staticmethod
    def _decode_contents(data: Any, where: str) -> str:
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise TransportError(f"{where} is not a file")
        content = data.get("content")
        if content is None:
            raise TransportError(f"{where} has no inline content")
        if data.get("encoding", "base64") != "base64":
            return str(content)
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as exc:
            raise TransportError(f"cannot decode contents of {where}: {exc}") from exc

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for abuse rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
