"""Tests for the dependency analyser."""

from __future__ import annotations

import sys
import time

import pytest

from depgraph.analysis import DependencyAnalyzer, RiskLevel
from depgraph.exceptions import InvalidInputError
from depgraph.graph import DependencyGraph, Edge, Node, NodeType


class TestVersionConflicts:
    def test_conflict_detection(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2"), ("r3", "r3")],
            modules=[("m", "ex/m", "v1.0.0")],
            edges=[("r1", "m", "v1.0.0"), ("r2", "m", "v2.0.0"), ("r3", "m", "v1.0.0")],
        )
        conflicts = DependencyAnalyzer(g).find_version_conflicts()
        assert len(conflicts) == 1
        c = conflicts[0]
        assert c.module == "m"
        assert c.label == "ex/m"
        assert c.versions == {"v1.0.0": ["r1", "r3"], "v2.0.0": ["r2"]}
        assert c.latest == "v2.0.0"
        assert c.recommended == "v2.0.0"

    def test_fleet_graph(self, fleet_graph):
        conflicts = DependencyAnalyzer(fleet_graph).find_version_conflicts()
        assert [c.module for c in conflicts] == ["mod2"]

    def test_single_version_is_not_a_conflict(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2")],
            modules=[("m", "m", "v1")],
            edges=[("r1", "m", "v1"), ("r2", "m", "v1")],
        )
        assert DependencyAnalyzer(g).find_version_conflicts() == []

    def test_module_to_module_edges_ignored(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1")],
            modules=[("a", "a", ""), ("m", "m", "")],
            edges=[("r1", "m", "v1.0.0"), ("a", "m", "v2.0.0")],
        )
        assert DependencyAnalyzer(g).find_version_conflicts() == []

    def test_lexicographic_ordering(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2")],
            modules=[("m", "m", "")],
            edges=[("r1", "m", "v1.10.0"), ("r2", "m", "v1.2.0")],
        )
        (conflict,) = DependencyAnalyzer(g).find_version_conflicts()
        assert conflict.recommended == "v1.2.0"

    def test_conflict_iff_multiple_versions(self, fleet_graph):
        analyzer = DependencyAnalyzer(fleet_graph)
        conflicted = {c.module for c in analyzer.find_version_conflicts()}
        for node in fleet_graph.nodes_of_kind(NodeType.MODULE):
            versions = {
                e.version
                for e in fleet_graph.in_edges(node.id)
                if fleet_graph.node(e.source).is_repository
            }
            assert (len(versions) > 1) == (node.id in conflicted)


class TestUpdateCandidates:
    def test_lists_repos_off_recommended(self, fleet_graph):
        candidates = DependencyAnalyzer(fleet_graph).find_update_candidates()
        assert candidates == {"mod2": ["test-repo-1", "test-repo-3"]}

    def test_no_conflicts_no_candidates(self):
        assert DependencyAnalyzer(DependencyGraph()).find_update_candidates() == {}


class TestStatistics:
    def test_stats(self, fleet_graph):
        stats = DependencyAnalyzer(fleet_graph).analyze_dependencies()
        assert stats.total_repositories == 3
        assert stats.total_modules == 2
        assert stats.shared_modules == 2
        assert stats.version_conflicts == 1
        assert stats.average_dependencies == pytest.approx(5 / 3)
        assert stats.top_shared == ["github.com/test/mod2", "github.com/test/mod1"]

    def test_top_shared_ties_broken_by_label(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2")],
            modules=[("z", "zeta", ""), ("a", "alpha", "")],
            edges=[("r1", "z", ""), ("r2", "z", ""), ("r1", "a", ""), ("r2", "a", "")],
        )
        assert DependencyAnalyzer(g).analyze_dependencies().top_shared == ["alpha", "zeta"]

    def test_top_shared_capped_at_five(self, make_graph):
        modules = [(f"m{i}", f"m{i}", "") for i in range(7)]
        edges = [(r, m[0], "") for r in ("r1", "r2") for m in modules]
        g = make_graph(repos=[("r1", "r1"), ("r2", "r2")], modules=modules, edges=edges)
        assert len(DependencyAnalyzer(g).analyze_dependencies().top_shared) == 5

    def test_empty_graph(self):
        stats = DependencyAnalyzer(DependencyGraph()).analyze_dependencies()
        assert stats.total_repositories == 0
        assert stats.average_dependencies == 0.0
        assert stats.top_shared == []


class TestCriticalDependencies:
    def test_critical_dependency(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2"), ("r3", "r3")],
            modules=[("m1", "m1", "v1"), ("m2", "m2", "v1")],
            edges=[("r1", "m1", "v1"), ("r2", "m1", "v1"), ("r1", "m2", "v1")],
        )
        critical = {n.id for n in DependencyAnalyzer(g).find_critical_dependencies()}
        assert "m1" in critical
        assert "m2" not in critical

    def test_threshold_is_inclusive(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2")],
            modules=[("m", "m", "")],
            edges=[("r1", "m", "")],
        )
        assert [n.id for n in DependencyAnalyzer(g).find_critical_dependencies()] == ["m"]


class TestLongestChains:
    def test_longest_chain(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1")],
            modules=[("m1", "m1", ""), ("m2", "m2", ""), ("m3", "m3", "")],
            edges=[("r1", "m1", ""), ("m1", "m2", ""), ("m2", "m3", "")],
        )
        chains = DependencyAnalyzer(g).find_longest_dependency_chains(1)
        assert len(chains) == 1
        assert chains[0].length == 4
        assert chains[0].path[0] == "r1"
        assert "m3" in chains[0].path
        assert chains[0].circular is False

    def test_sorted_and_limited(self, make_graph):
        g = make_graph(
            repos=[("short", "short"), ("long", "long"), ("mid", "mid")],
            modules=[("a", "a", ""), ("b", "b", ""), ("c", "c", "")],
            edges=[
                ("short", "c", ""),
                ("long", "a", ""),
                ("a", "b", ""),
                ("b", "c", ""),
                ("mid", "b", ""),
            ],
        )
        chains = DependencyAnalyzer(g).find_longest_dependency_chains(2)
        assert [c.path[0] for c in chains] == ["long", "mid"]
        assert [c.length for c in chains] == [4, 3]

    def test_picks_longest_branch(self, make_graph):
        g = make_graph(
            repos=[("r", "r")],
            modules=[("a", "a", ""), ("b", "b", ""), ("c", "c", "")],
            edges=[("r", "a", ""), ("r", "b", ""), ("b", "c", "")],
        )
        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(5)
        assert chain.path == ["r", "b", "c"]

    def test_circular_chain(self):
        g = DependencyGraph()
        g.add_node(Node(id="r", kind=NodeType.REPOSITORY))
        g.add_node(Node(id="a"))
        g.add_node(Node(id="b"))
        g.add_edge(Edge(source="r", target="a"))
        g.add_edge(Edge(source="a", target="b"))
        g.add_edge(Edge(source="b", target="a"))
        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(1)
        assert chain.circular is True
        assert chain.path == ["r", "a", "b", "a"]
        assert chain.length == 3

    def test_repository_without_dependencies(self):
        g = DependencyGraph()
        g.add_node(Node(id="r", kind=NodeType.REPOSITORY))
        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(3)
        assert chain.path == ["r"]
        assert chain.length == 1

    def test_non_positive_limit(self, fleet_graph):
        assert DependencyAnalyzer(fleet_graph).find_longest_dependency_chains(0) == []


class TestImpact:
    def test_impact(self, fleet_graph):
        impact = DependencyAnalyzer(fleet_graph).analyze_module_impact("mod2")
        assert impact.label == "github.com/test/mod2"
        assert impact.affected_repos == ["test-repo-1", "test-repo-2", "test-repo-3"]
        assert impact.direct_dependents == 3
        assert impact.transitive_dependents == 3
        assert impact.impact_score == pytest.approx(0.6 * 3 + 0.4 * 3)
        assert impact.breaking_changes is True

    def test_transitive_walk(self, make_graph):
        g = make_graph(
            repos=[("r1", "r1"), ("r2", "r2")],
            modules=[("lib", "lib", ""), ("core", "core", "")],
            edges=[("lib", "core", ""), ("r1", "lib", ""), ("r2", "lib", "")],
        )
        impact = DependencyAnalyzer(g).analyze_module_impact("core")
        assert impact.direct_dependents == 1
        assert impact.affected_repos == []
        assert impact.transitive_dependents == 3
        assert impact.impact_score == pytest.approx(0.6 * 1 + 0.4 * 3)

    def test_unused_module_not_breaking(self, make_graph):
        g = make_graph(repos=[], modules=[("m", "m", "")], edges=[])
        impact = DependencyAnalyzer(g).analyze_module_impact("m")
        assert impact.impact_score == 0
        assert impact.breaking_changes is False

    def test_score_formula(self, fleet_graph):
        analyzer = DependencyAnalyzer(fleet_graph)
        for node in fleet_graph.nodes_of_kind(NodeType.MODULE):
            r = analyzer.analyze_module_impact(node.id)
            assert r.impact_score == pytest.approx(
                0.6 * len(r.affected_repos) + 0.4 * r.transitive_dependents
            )
            assert r.breaking_changes == (r.impact_score > 0.7)

    def test_unknown_module(self, fleet_graph):
        with pytest.raises(InvalidInputError):
            DependencyAnalyzer(fleet_graph).analyze_module_impact("nope")

    def test_repository_is_not_a_module(self, fleet_graph):
        with pytest.raises(InvalidInputError):
            DependencyAnalyzer(fleet_graph).analyze_module_impact("repo1")


class TestRiskScan:
    @pytest.fixture
    def risky_graph(self, make_graph):
        return make_graph(
            repos=[("r1", "r1"), ("r2", "r2")],
            modules=[
                ("old", "ex/old", "v0.1.0"),
                ("pre", "ex/pre", "v1.0.0-beta"),
                ("one", "ex/one", "v1.0.0"),
                ("new", "ex/new", "v2.3.1"),
            ],
            edges=[("r1", "old", "v0.1.0"), ("r2", "old", "v0.1.0"), ("r2", "pre", "")],
        )

    def test_without_low(self, risky_graph):
        findings = DependencyAnalyzer(risky_graph).simulate_security_scan(include_low=False)
        assert [(f.label, f.risk_level) for f in findings] == [
            ("ex/old", RiskLevel.HIGH),
            ("ex/pre", RiskLevel.MEDIUM),
        ]

    def test_with_low(self, risky_graph):
        findings = DependencyAnalyzer(risky_graph).simulate_security_scan()
        assert [f.risk_level for f in findings] == [
            RiskLevel.HIGH,
            RiskLevel.MEDIUM,
            RiskLevel.LOW,
        ]
        assert findings[2].recommended_fix == "no action required"

    def test_fix_text_and_affected_repos(self, risky_graph):
        high, medium = DependencyAnalyzer(risky_graph).simulate_security_scan(include_low=False)
        assert high.recommended_fix == "upgrade to stable"
        assert high.affected_repos == ["r1", "r2"]
        assert medium.recommended_fix == "consider upgrading to stable"
        assert medium.affected_repos == ["r2"]
        assert high.heuristic is True

    def test_alpha_counts_as_medium(self, make_graph):
        g = make_graph(repos=[], modules=[("m", "m", "v2.0.0-alpha.1")], edges=[])
        (finding,) = DependencyAnalyzer(g).simulate_security_scan()
        assert finding.risk_level is RiskLevel.MEDIUM
    def test_chain_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 600
        g = DependencyGraph()
        g.add_node(Node(id="r", kind=NodeType.REPOSITORY))
        previous = "r"
        for i in range(depth):
            g.add_node(Node(id=f"m{i}"))
            g.add_edge(Edge(source=previous, target=f"m{i}"))
            previous = f"m{i}"

        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(1)
        assert chain.length == depth + 1
        assert chain.path[-1] == f"m{depth - 1}"
        assert chain.circular is False

    def test_layered_dag_is_not_exponential(self):
        # 2**30 distinct root-to-leaf paths; each node must be solved once.
        layers, width = 30, 2
        g = DependencyGraph()
        g.add_node(Node(id="r", kind=NodeType.REPOSITORY))
        for layer in range(layers):
            for j in range(width):
                g.add_node(Node(id=f"l{layer}n{j}"))
        for j in range(width):
            g.add_edge(Edge(source="r", target=f"l0n{j}"))
        for layer in range(layers - 1):
            for j in range(width):
                for k in range(width):
                    g.add_edge(Edge(source=f"l{layer}n{j}", target=f"l{layer + 1}n{k}"))

        started = time.monotonic()
        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(1)
        assert time.monotonic() - started < 5
        assert chain.length == layers + 1
        assert chain.path[-1].startswith(f"l{layers - 1}n")
        assert chain.circular is False

    def test_cycle_below_acyclic_prefix(self):
        g = DependencyGraph()
        g.add_node(Node(id="r", kind=NodeType.REPOSITORY))
        for node_id in ("a", "b", "c", "d"):
            g.add_node(Node(id=node_id))
        for source, target in (("r", "a"), ("a", "b"), ("b", "c"), ("c", "d"), ("d", "b")):
            g.add_edge(Edge(source=source, target=target))

        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(1)
        assert chain.circular is True
        assert chain.path == ["r", "a", "b", "c", "d", "b"]
        assert chain.length == 5

    def test_exit_from_cycle_outruns_closing_it(self):
        g = DependencyGraph()
        g.add_node(Node(id="r", kind=NodeType.REPOSITORY))
        for node_id in ("a", "b", "c", "d"):
            g.add_node(Node(id=node_id))
        for source, target in (("r", "a"), ("a", "b"), ("b", "a"), ("b", "c"), ("c", "d")):
            g.add_edge(Edge(source=source, target=target))

        (chain,) = DependencyAnalyzer(g).find_longest_dependency_chains(1)
        assert chain.circular is False
        assert chain.path == ["r", "a", "b", "c", "d"]
        assert chain.length == 5
