"""DependencyAnalyzer: read-only queries over a populated graph.

The analyser keeps no state beyond its graph reference, so a single
instance can serve any number of concurrent readers once population
has finished.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import structlog

from depgraph.analysis.models import (
    DependencyChain,
    DependencyStats,
    ImpactAnalysis,
    RiskFinding,
    RiskLevel,
    VersionConflict,
)
from depgraph.exceptions import InvalidInputError
from depgraph.graph import traversal
from depgraph.graph.graph import DependencyGraph
from depgraph.graph.models import Node, NodeType

log = structlog.get_logger("depgraph.analysis")

CRITICAL_THRESHOLD = 0.5
DIRECT_WEIGHT = 0.6
TRANSITIVE_WEIGHT = 0.4
BREAKING_SCORE = 0.7
TOP_SHARED_LIMIT = 5


@dataclass(frozen=True)
class _RiskRule:
    level: RiskLevel
    fix: str

    @staticmethod
    def match(version: str) -> _RiskRule | None:
        if version.startswith("v0."):
            return _RiskRule(RiskLevel.HIGH, "upgrade to stable")
        if "alpha" in version or "beta" in version:
            return _RiskRule(RiskLevel.MEDIUM, "consider upgrading to stable")
        if version.startswith("v1.0."):
            return _RiskRule(RiskLevel.LOW, "no action required")
        return None


@dataclass(frozen=True)
class _Tail:
    """Best chain continuation starting at a node.

    ``head`` holds the nodes this segment contributes; the chain then
    continues with the tail stored for ``rest``, if any.
    """

    length: int
    head: tuple[str, ...]
    rest: str | None = None
    circular: bool = False

    def beats(self, other: _Tail) -> bool:
        # Ties go to the circular chain so cycles surface.
        return self.length > other.length or (self.length == other.length and self.circular)


def _unwind(root: str, tails: dict[str, _Tail]) -> DependencyChain:
    tail = tails[root]
    chain = DependencyChain(path=[], length=tail.length, circular=tail.circular)
    while True:
        chain.path.extend(tail.head)
        if tail.rest is None:
            return chain
        tail = tails[tail.rest]


class DependencyAnalyzer:
    """Statistics, conflicts, chains, impact and heuristic risk over one graph."""

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    # ── conflicts ──────────────────────────────────────────────────────────

    def find_version_conflicts(self) -> list[VersionConflict]:
        """Modules declared at two or more distinct versions by repositories."""
        buckets: dict[str, dict[str, list[str]]] = {}
        for edge in self._graph.edges:
            source = self._graph.node(edge.source)
            target = self._graph.node(edge.target)
            if source is None or target is None:
                continue
            if not source.is_repository or not target.is_module:
                continue
            by_version = buckets.setdefault(edge.target, {})
            by_version.setdefault(edge.version, []).append(source.label)

        conflicts: list[VersionConflict] = []
        for module_id, versions in buckets.items():
            if len(versions) < 2:
                continue
            # Lexicographic: v1.10.0 sorts below v1.2.0.
            latest = max(versions)
            conflicts.append(
                VersionConflict(
                    module=module_id,
                    label=self._graph.nodes[module_id].label,
                    versions=versions,
                    latest=latest,
                    recommended=latest,
                )
            )
        return conflicts

    def find_update_candidates(self) -> dict[str, list[str]]:
        """For each conflicted module, the repositories not on the recommended version."""
        candidates: dict[str, list[str]] = {}
        for conflict in self.find_version_conflicts():
            outdated = [
                repo
                for version, repos in conflict.versions.items()
                if version != conflict.recommended
                for repo in repos
            ]
            if outdated:
                candidates[conflict.module] = outdated
        return candidates

    # ── statistics ─────────────────────────────────────────────────────────

    def analyze_dependencies(self) -> DependencyStats:
        repos = self._graph.nodes_of_kind(NodeType.REPOSITORY)
        modules = self._graph.nodes_of_kind(NodeType.MODULE)
        shared = self._graph.shared_dependencies(2)

        ranked = sorted(shared, key=lambda n: (-len(self._graph.dependents(n.id)), n.label))
        total_out = sum(len(self._graph.out_edges(r.id)) for r in repos)

        stats = DependencyStats(
            total_repositories=len(repos),
            total_modules=len(modules),
            shared_modules=len(shared),
            version_conflicts=len(self.find_version_conflicts()),
            average_dependencies=total_out / len(repos) if repos else 0.0,
            top_shared=[n.label for n in ranked[:TOP_SHARED_LIMIT]],
        )
        log.debug(
            "analysis.stats",
            repositories=stats.total_repositories,
            modules=stats.total_modules,
            conflicts=stats.version_conflicts,
        )
        return stats

    def find_critical_dependencies(self) -> list[Node]:
        """Modules depended on by at least half of all repositories."""
        threshold = len(self._graph.nodes_of_kind(NodeType.REPOSITORY)) * CRITICAL_THRESHOLD
        return [
            node
            for node in self._graph.nodes_of_kind(NodeType.MODULE)
            if len(self._graph.dependents(node.id)) >= threshold
        ]

    # ── chains ─────────────────────────────────────────────────────────────

    def find_longest_dependency_chains(self, limit: int) -> list[DependencyChain]:
        """The *limit* longest chains rooted at repository nodes, longest first."""
        if limit <= 0:
            return []

        tails = self._longest_tails()
        chains: list[DependencyChain] = []
        rooted: set[str] = set()
        for repo in self._graph.nodes_of_kind(NodeType.REPOSITORY):
            if repo.id in rooted:
                continue
            rooted.add(repo.id)
            chains.append(_unwind(repo.id, tails))

        chains.sort(key=lambda c: c.length, reverse=True)
        return chains[:limit]

    def _longest_tails(self) -> dict[str, _Tail]:
        """Best chain continuation from every node, computed sinks first.

        A node outside any cycle can never meet its own ancestors again, so
        its best continuation does not depend on how it was reached and is
        stored once. Only inside a cyclic component does the walk track the
        current path, marking a re-entered node as a circular chain.
        """
        tails: dict[str, _Tail] = {}
        for component in traversal.components_sinks_first(self._graph):
            if traversal.is_cyclic(self._graph, component):
                members = set(component)
                for node_id in component:
                    tails[node_id] = self._walk_component(node_id, members, tails)
                continue

            node_id = component[0]
            best = _Tail(length=1, head=(node_id,))
            for dep in self._graph.dependencies(node_id):
                below = tails[dep.id]
                candidate = _Tail(1 + below.length, (node_id,), dep.id, below.circular)
                if candidate.beats(best):
                    best = candidate
            tails[node_id] = best
        return tails

    def _walk_component(self, start: str, members: set[str], tails: dict[str, _Tail]) -> _Tail:
        best = _Tail(length=1, head=(start,))
        path = [start]
        on_path = {start}
        iters: list[Iterator[Node]] = [iter(self._graph.dependencies(start))]

        while iters:
            dep = next(iters[-1], None)
            if dep is None:
                iters.pop()
                on_path.discard(path.pop())
                continue

            if dep.id not in members:
                below = tails[dep.id]
                candidate = _Tail(len(path) + below.length, tuple(path), dep.id, below.circular)
            elif dep.id in on_path:
                candidate = _Tail(len(path), (*path, dep.id), circular=True)
            else:
                path.append(dep.id)
                on_path.add(dep.id)
                iters.append(iter(self._graph.dependencies(dep.id)))
                candidate = _Tail(len(path), tuple(path))

            if candidate.beats(best):
                best = candidate
        return best

    # ── impact ─────────────────────────────────────────────────────────────

    def analyze_module_impact(self, module_id: str) -> ImpactAnalysis:
        """Score the blast radius of changing *module_id*.

        Raises :class:`InvalidInputError` if the ID is unknown or not a module.
        """
        node = self._graph.node(module_id)
        if node is None or not node.is_module:
            raise InvalidInputError(f"invalid module ID: {module_id}")

        dependents = self._graph.dependents(module_id)
        transitive = len(self._graph.reachable(module_id, direction="in"))
        score = DIRECT_WEIGHT * len(dependents) + TRANSITIVE_WEIGHT * transitive

        return ImpactAnalysis(
            module=module_id,
            label=node.label,
            affected_repos=[n.label for n in dependents if n.is_repository],
            direct_dependents=len(dependents),
            transitive_dependents=transitive,
            impact_score=score,
            breaking_changes=score > BREAKING_SCORE,
        )

    # ── heuristic risk ─────────────────────────────────────────────────────

    def simulate_security_scan(self, *, include_low: bool = True) -> list[RiskFinding]:
        """Flag modules by version pattern. Heuristic only, never a CVE lookup."""
        findings: list[RiskFinding] = []
        for node in self._graph.nodes_of_kind(NodeType.MODULE):
            rule = _RiskRule.match(node.version)
            if rule is None or (rule.level is RiskLevel.LOW and not include_low):
                continue
            findings.append(
                RiskFinding(
                    module=node.id,
                    label=node.label,
                    version=node.version,
                    risk_level=rule.level,
                    recommended_fix=rule.fix,
                    affected_repos=[
                        n.label for n in self._graph.dependents(node.id) if n.is_repository
                    ],
                )
            )
        return findings
