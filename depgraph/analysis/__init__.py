"""Dependency analyser: conflicts, chains, impact and heuristic risk."""

from depgraph.analysis.analyzer import DependencyAnalyzer
from depgraph.analysis.models import (
    HEURISTIC_DISCLAIMER,
    DependencyChain,
    DependencyStats,
    ImpactAnalysis,
    RiskFinding,
    RiskLevel,
    VersionConflict,
)

__all__ = [
    "HEURISTIC_DISCLAIMER",
    "DependencyAnalyzer",
    "DependencyChain",
    "DependencyStats",
    "ImpactAnalysis",
    "RiskFinding",
    "RiskLevel",
    "VersionConflict",
]
