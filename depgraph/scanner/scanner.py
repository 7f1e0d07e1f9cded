"""Scan an organisation's repositories and parse their manifests."""

from __future__ import annotations

import asyncio

import structlog

from depgraph.exceptions import (
    AuthenticationError,
    InvalidInputError,
    ManifestNotFoundError,
    RemoteError,
    ScanCancelledError,
    ScanError,
)
from depgraph.parser.modfile import parse_go_mod
from depgraph.scanner.context import ScanContext, background
from depgraph.scanner.host import RemoteHost, RepoHandle
from depgraph.scanner.models import ScanErrorKind, ScannedDependency, ScanResult

log = structlog.get_logger("depgraph.scanner")

DEFAULT_MAX_IN_FLIGHT = 10


class RepositoryScanner:
    """Fan out manifest fetches across an organisation's repositories.

    At most *max_in_flight* manifest requests are outstanding at once.
    Results come back in the order the host listed the repositories.
    """

    def __init__(
        self,
        host: RemoteHost,
        *,
        manifest_path: str = "go.mod",
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
    ) -> None:
        if max_in_flight < 1:
            raise InvalidInputError("max_in_flight must be a positive integer")
        self._host = host
        self._manifest_path = manifest_path
        self._max_in_flight = max_in_flight

    async def scan_organization(
        self, org: str, ctx: ScanContext | None = None
    ) -> list[ScanResult]:
        """Scan every repository of *org*.

        Raises :class:`ScanError` if the repositories cannot be listed.
        Per-repository failures, cancellation included, are recorded on
        that repository's :class:`ScanResult` instead.
        """
        if not org or not org.strip():
            raise ScanError("organisation name cannot be empty")
        ctx = ctx or background()

        try:
            repos = await self._host.list_repositories(org, ctx)
        except (RemoteError, ScanCancelledError) as exc:
            log.error("scanner.list_failed", org=org, error=str(exc))
            raise ScanError(f"failed to list repositories for {org}: {exc}") from exc

        log.info("scanner.started", org=org, repositories=len(repos))
        semaphore = asyncio.Semaphore(self._max_in_flight)
        results: list[ScanResult | None] = [None] * len(repos)

        async def _worker(idx: int, repo: RepoHandle) -> None:
            async with semaphore:
                results[idx] = await self.scan_repository(repo, ctx)

        await asyncio.gather(*(_worker(i, repo) for i, repo in enumerate(repos)))

        final = [r for r in results if r is not None]
        failed = sum(1 for r in final if not r.ok)
        log.info(
            "scanner.finished",
            org=org,
            repositories=len(final),
            succeeded=len(final) - failed,
            failed=failed,
        )
        return final

    async def scan_repository(
        self, repo: RepoHandle, ctx: ScanContext | None = None
    ) -> ScanResult:
        """Fetch and parse one repository's manifest. Never raises RemoteError."""
        ctx = ctx or background()
        label = repo.full_name
        try:
            ctx.check()
            text = await self._host.get_manifest(repo.owner, repo.name, self._manifest_path, ctx)
        except ManifestNotFoundError:
            log.debug("scanner.manifest_missing", repo=label, path=self._manifest_path)
            return ScanResult.failed(label, ScanErrorKind.NOT_FOUND, ScanErrorKind.NOT_FOUND.value)
        except AuthenticationError as exc:
            log.warning("scanner.repo_failed", repo=label, kind="auth", error=str(exc))
            return ScanResult.failed(label, ScanErrorKind.AUTH, str(exc))
        except RemoteError as exc:
            log.warning("scanner.repo_failed", repo=label, kind="transport", error=str(exc))
            return ScanResult.failed(label, ScanErrorKind.TRANSPORT, str(exc))
        except ScanCancelledError as exc:
            log.info("scanner.repo_cancelled", repo=label)
            return ScanResult.failed(label, ScanErrorKind.CANCELLED, str(exc))

        manifest = parse_go_mod(text)
        return ScanResult(
            repo_label=label,
            manifest_text=text,
            manifest=manifest,
            dependencies=[
                ScannedDependency(module=d.path, version=d.version, indirect=d.indirect)
                for d in manifest.dependencies
            ],
        )
