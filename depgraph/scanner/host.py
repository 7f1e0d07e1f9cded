"""Remote host capability consumed by the scanner."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from depgraph.exceptions import ManifestNotFoundError, NotFoundError, TransportError
from depgraph.scanner.context import ScanContext


@dataclass(frozen=True)
class RepoHandle:
    """A repository as listed by the host."""

    owner: str
    name: str
    default_branch: str | None = None
    archived: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@runtime_checkable
class RemoteHost(Protocol):
    """Interface every remote code host must satisfy.

    ``list_repositories`` is exhaustive (all pages). ``get_manifest`` raises
    :class:`~depgraph.exceptions.ManifestNotFoundError`,
    :class:`~depgraph.exceptions.TransportError` or
    :class:`~depgraph.exceptions.AuthenticationError`.
    """

    async def list_repositories(
        self, org: str, ctx: ScanContext | None = None
    ) -> list[RepoHandle]: ...

    async def get_manifest(
        self, owner: str, repo: str, path: str, ctx: ScanContext | None = None
    ) -> str: ...


class LocalDirectoryHost:
    """Treats each subdirectory of *root* as a repository of one owner.

    Lets an organisation checked out on disk be scanned without network
    access or credentials.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    async def list_repositories(
        self, org: str, ctx: ScanContext | None = None
    ) -> list[RepoHandle]:
        if not self._root.is_dir():
            raise NotFoundError(f"directory {self._root} does not exist")
        return [
            RepoHandle(owner=org, name=entry.name)
            for entry in sorted(self._root.iterdir())
            if entry.is_dir() and not entry.name.startswith(".")
        ]

    async def get_manifest(
        self, owner: str, repo: str, path: str, ctx: ScanContext | None = None
    ) -> str:
        manifest = self._root / repo / path
        try:
            return manifest.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError as exc:
            raise ManifestNotFoundError(owner, repo, path) from exc
        except OSError as exc:
            raise TransportError(f"cannot read {manifest}: {exc}") from exc
