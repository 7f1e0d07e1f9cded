"""Data models for the repository scanner."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from depgraph.parser.models import ManifestRecord


class ScanErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    AUTH = "auth"
    CANCELLED = "cancelled"


@dataclass
class ScannedDependency:
    """A single dependency declared by a repository's manifest."""

    module: str
    version: str
    indirect: bool = False


@dataclass
class ScanResult:
    """Outcome of scanning one repository.

    Either ``error`` is set, or ``manifest_text`` and ``dependencies`` are.
    """

    repo_label: str
    manifest_text: str | None = None
    dependencies: list[ScannedDependency] = field(default_factory=list)
    manifest: ManifestRecord | None = None
    error: str | None = None
    error_kind: ScanErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, repo_label: str, kind: ScanErrorKind, message: str) -> ScanResult:
        return cls(repo_label=repo_label, error=message, error_kind=kind)
