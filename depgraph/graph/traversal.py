"""Graph algorithms over :class:`~depgraph.graph.graph.DependencyGraph`.

Shortest paths, strongly connected components and reachability run on the
graph's networkx view. Cycle witnesses need the exact DFS stack at each
back-edge, which networkx does not expose, so that walk is done here with
an explicit stack. Neighbours are visited in edge insertion order and roots
in node insertion order, which keeps results stable within a run.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

import networkx as nx

from depgraph.graph.models import Edge

if TYPE_CHECKING:
    from depgraph.graph.graph import DependencyGraph, Direction


def find_cycles(graph: DependencyGraph) -> list[list[str]]:
    """Return one witness cycle per back-edge found by DFS.

    Each cycle is the slice of the DFS stack starting at the re-entered
    node, closed by repeating that node. Nodes are never revisited across
    DFS roots, so this is not an enumeration of every simple cycle.
    """
    cycles: list[list[str]] = []
    visited: set[str] = set()

    for root in list(graph.nodes):
        if root in visited:
            continue
        visited.add(root)
        stack = [root]
        on_path = {root}
        iters: list[Iterator[Edge]] = [iter(graph.out_edges(root))]

        while iters:
            edge = next(iters[-1], None)
            if edge is None:
                iters.pop()
                on_path.discard(stack.pop())
                continue

            target = edge.target
            if target in on_path:
                start = stack.index(target)
                cycles.append(stack[start:] + [target])
            elif target not in visited:
                visited.add(target)
                on_path.add(target)
                stack.append(target)
                iters.append(iter(graph.out_edges(target)))

    return cycles


def shortest_paths(graph: DependencyGraph, start: str) -> dict[str, list[str]]:
    """Dijkstra with unit edge weights.

    Maps every node reachable from *start* (including *start*) to the
    node-ID path leading to it. Unknown *start* yields an empty mapping.
    """
    if start not in graph:
        return {}
    # No edge carries a "weight" attribute, so every hop costs 1.
    return nx.single_source_dijkstra_path(graph.as_networkx(), start)


def strongly_connected_components(graph: DependencyGraph) -> list[list[str]]:
    """Kosaraju components, each listed in node insertion order."""
    position = {node_id: i for i, node_id in enumerate(graph.nodes)}
    return [
        sorted(component, key=position.__getitem__)
        for component in nx.kosaraju_strongly_connected_components(graph.as_networkx())
    ]


def components_sinks_first(graph: DependencyGraph) -> list[list[str]]:
    """Strongly connected components ordered so every component precedes
    the components that depend on it."""
    components = strongly_connected_components(graph)
    dag = nx.condensation(graph.as_networkx(), scc=components)
    return [components[i] for i in reversed(list(nx.topological_sort(dag)))]


def is_cyclic(graph: DependencyGraph, component: list[str]) -> bool:
    """True if *component* contains a cycle (several nodes or a self-loop)."""
    if len(component) > 1:
        return True
    node_id = component[0]
    return any(e.target == node_id for e in graph.out_edges(node_id))


def reachable(graph: DependencyGraph, start: str, direction: Direction = "out") -> list[str]:
    """Breadth-first walk from *start* along out-edges or in-edges."""
    if start not in graph:
        return []
    edges = nx.bfs_edges(graph.as_networkx(), start, reverse=direction == "in")
    return [target for _, target in edges]
