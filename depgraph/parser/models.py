"""Data models for parsed manifests."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Requirement:
    """A single ``require`` entry."""

    path: str
    version: str
    indirect: bool = False


@dataclass
class ModuleVersion:
    path: str
    version: str = ""


@dataclass
class Replacement:
    """A ``replace`` directive. Recorded, never applied to the requirements."""

    old: ModuleVersion
    new: ModuleVersion


@dataclass
class ManifestRecord:
    """Everything the parser extracts from one go.mod file."""

    module_path: str = ""
    go_version: str = ""
    dependencies: list[Requirement] = field(default_factory=list)
    replacements: list[Replacement] = field(default_factory=list)

    @property
    def direct_dependencies(self) -> list[Requirement]:
        return [d for d in self.dependencies if not d.indirect]

    @property
    def indirect_dependencies(self) -> list[Requirement]:
        return [d for d in self.dependencies if d.indirect]
