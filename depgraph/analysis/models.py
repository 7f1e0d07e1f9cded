"""Result records produced by the dependency analyser."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

HEURISTIC_DISCLAIMER = (
    "Risk levels are inferred from version strings only; "
    "no vulnerability database was consulted."
)


class RiskLevel(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass
class VersionConflict:
    """A module that repositories depend on at more than one version.

    ``versions`` maps each version label to the repositories declaring it,
    in the order the edges were added. ``latest`` and ``recommended`` are
    the lexicographically greatest label, not a semver maximum.
    """

    module: str
    label: str
    versions: dict[str, list[str]]
    latest: str
    recommended: str


@dataclass
class DependencyStats:
    total_repositories: int = 0
    total_modules: int = 0
    shared_modules: int = 0
    version_conflicts: int = 0
    average_dependencies: float = 0.0
    top_shared: list[str] = field(default_factory=list)


@dataclass
class DependencyChain:
    path: list[str]
    length: int
    circular: bool = False


@dataclass
class ImpactAnalysis:
    module: str
    label: str
    affected_repos: list[str]
    direct_dependents: int
    transitive_dependents: int
    impact_score: float
    breaking_changes: bool


@dataclass
class RiskFinding:
    """A heuristic, version-pattern-based risk flag. Not a CVE lookup."""

    module: str
    label: str
    version: str
    risk_level: RiskLevel
    recommended_fix: str
    affected_repos: list[str] = field(default_factory=list)
    heuristic: bool = True
