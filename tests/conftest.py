"""Shared pytest fixtures for DepGraph tests."""

import pytest

from depgraph.graph.graph import DependencyGraph
from depgraph.graph.models import Edge, Node, NodeType


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def _build_graph(repos, modules, edges) -> DependencyGraph:
    """Build a graph from ``(id, label)`` repos, ``(id, label, version)`` modules
    and ``(source, target, version)`` edges."""
    g = DependencyGraph()
    for repo_id, label in repos:
        g.add_node(Node(id=repo_id, label=label, kind=NodeType.REPOSITORY))
    for mod_id, label, version in modules:
        g.add_node(Node(id=mod_id, label=label, kind=NodeType.MODULE, version=version))
    for source, target, version in edges:
        g.add_edge(Edge(source=source, target=target, version=version))
    return g


@pytest.fixture
def make_graph():
    return _build_graph


@pytest.fixture
def fleet_graph() -> DependencyGraph:
    """Three repos sharing mod1 at one version and mod2 at two versions."""
    return _build_graph(
        repos=[("repo1", "test-repo-1"), ("repo2", "test-repo-2"), ("repo3", "test-repo-3")],
        modules=[
            ("mod1", "github.com/test/mod1", "v1.0.0"),
            ("mod2", "github.com/test/mod2", "v1.0.0"),
        ],
        edges=[
            ("repo1", "mod1", "v1.0.0"),
            ("repo2", "mod1", "v1.0.0"),
            ("repo1", "mod2", "v1.0.0"),
            ("repo2", "mod2", "v2.0.0"),
            ("repo3", "mod2", "v1.0.0"),
        ],
    )
