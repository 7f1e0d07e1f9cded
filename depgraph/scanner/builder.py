"""Populate a DependencyGraph from scan results."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from depgraph.graph.graph import DependencyGraph
from depgraph.graph.models import Edge, EdgeType, Node, NodeType
from depgraph.scanner.models import ScanResult

log = structlog.get_logger("depgraph.scanner")


def build_graph(
    results: Iterable[ScanResult],
    graph: DependencyGraph | None = None,
) -> DependencyGraph:
    """Add one repository node per result and one module node + edge per dependency.

    Module nodes keep the first version seen; every edge carries the version
    its repository declared. Failed results become bare repository nodes
    with the error recorded in metadata. Must run after the scan is joined.
    """
    graph = graph if graph is not None else DependencyGraph()

    for result in results:
        graph.add_node(
            Node(id=result.repo_label, label=result.repo_label, kind=NodeType.REPOSITORY)
        )
        if not result.ok:
            graph.annotate(result.repo_label, error=result.error)
            continue

        if result.manifest is not None:
            graph.annotate(
                result.repo_label,
                module_path=result.manifest.module_path,
                go_version=result.manifest.go_version,
            )

        for dep in result.dependencies:
            graph.add_node(
                Node(id=dep.module, label=dep.module, kind=NodeType.MODULE, version=dep.version)
            )
            graph.add_edge(
                Edge(
                    source=result.repo_label,
                    target=dep.module,
                    version=dep.version,
                    kind=EdgeType.INDIRECT if dep.indirect else EdgeType.DIRECT,
                )
            )

    log.debug("graph.built", nodes=len(graph), edges=len(graph.edges))
    return graph
