"""DependencyGraph, the arena that owns every node and edge.

Nodes are keyed by string ID and edges refer to nodes only by ID. Edge
insertion order is preserved and drives the ordering of every neighbour
query. The graph is single-writer: populate it fully before handing it
to readers, after which concurrent reads are safe.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any, Literal

import networkx as nx

from depgraph.exceptions import InvalidInputError
from depgraph.graph import traversal
from depgraph.graph.models import Edge, Node, NodeType

Direction = Literal["out", "in"]


class DependencyGraph:
    """Labelled directed multigraph of repositories and modules."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._edges: list[Edge] = []
        self._out: dict[str, list[Edge]] = {}
        self._in: dict[str, list[Edge]] = {}
        self._nx = nx.MultiDiGraph()

    # ── construction ───────────────────────────────────────────────────────

    def add_node(self, node: Node) -> bool:
        """Insert *node* unless its ID is already present (first write wins).

        Returns True if the node was inserted. Raises
        :class:`InvalidInputError` for an empty ID.
        """
        if not node.id:
            raise InvalidInputError("node ID cannot be empty")
        if node.id in self._nodes:
            return False
        self._nodes[node.id] = node
        self._out[node.id] = []
        self._in[node.id] = []
        self._nx.add_node(node.id)
        return True

    def add_edge(self, edge: Edge) -> None:
        """Append *edge*. Both endpoints must already exist."""
        if not edge.source or not edge.target:
            raise InvalidInputError("edge source and target cannot be empty")
        if edge.source not in self._nodes:
            raise InvalidInputError(f"source node {edge.source} does not exist")
        if edge.target not in self._nodes:
            raise InvalidInputError(f"target node {edge.target} does not exist")
        self._edges.append(edge)
        self._out[edge.source].append(edge)
        self._in[edge.target].append(edge)
        self._nx.add_edge(edge.source, edge.target, version=edge.version, kind=edge.kind.value)

    def annotate(self, node_id: str, **metadata: Any) -> None:
        """Merge *metadata* into an existing node's metadata mapping."""
        node = self._nodes.get(node_id)
        if node is None:
            raise InvalidInputError(f"node {node_id} does not exist")
        node.metadata.update(metadata)

    # ── access ─────────────────────────────────────────────────────────────

    @property
    def nodes(self) -> Mapping[str, Node]:
        return MappingProxyType(self._nodes)

    @property
    def edges(self) -> tuple[Edge, ...]:
        return tuple(self._edges)

    def as_networkx(self) -> nx.MultiDiGraph:
        """Read-only networkx view of the topology, in insertion order."""
        return self._nx.copy(as_view=True)

    def node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def nodes_of_kind(self, kind: NodeType) -> list[Node]:
        return [n for n in self._nodes.values() if n.kind is kind]

    def out_edges(self, node_id: str) -> list[Edge]:
        return list(self._out.get(node_id, ()))

    def in_edges(self, node_id: str) -> list[Edge]:
        return list(self._in.get(node_id, ()))

    # ── neighbour queries ──────────────────────────────────────────────────

    def dependencies(self, node_id: str) -> list[Node]:
        """Distinct targets of *node_id*'s outgoing edges, in edge order."""
        return self._distinct(e.target for e in self._out.get(node_id, ()))

    def dependents(self, node_id: str) -> list[Node]:
        """Distinct sources of *node_id*'s incoming edges, in edge order."""
        return self._distinct(e.source for e in self._in.get(node_id, ()))

    def shared_dependencies(self, min_shared: int) -> list[Node]:
        """Nodes targeted by at least *min_shared* distinct repository nodes."""
        shared: list[Node] = []
        for node_id, node in self._nodes.items():
            repo_sources = {
                e.source for e in self._in[node_id] if self._nodes[e.source].is_repository
            }
            if repo_sources and len(repo_sources) >= min_shared:
                shared.append(node)
        return shared

    def reachable(self, start: str, direction: Direction = "out") -> list[str]:
        """IDs reachable from *start* (excluding it), breadth-first."""
        return traversal.reachable(self, start, direction)

    # ── algorithms ─────────────────────────────────────────────────────────

    def find_cycles(self) -> list[list[str]]:
        return traversal.find_cycles(self)

    def shortest_paths(self, start: str) -> dict[str, list[str]]:
        return traversal.shortest_paths(self, start)

    def strongly_connected_components(self) -> list[list[str]]:
        return traversal.strongly_connected_components(self)

    # ── serialisation ──────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        from depgraph.graph.serialize import to_dict

        return to_dict(self)

    def _distinct(self, ids: Iterator[str]) -> list[Node]:
        seen: set[str] = set()
        result: list[Node] = []
        for node_id in ids:
            if node_id not in seen:
                seen.add(node_id)
                result.append(self._nodes[node_id])
        return result
