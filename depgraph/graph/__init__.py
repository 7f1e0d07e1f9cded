"""Dependency graph: a labelled directed multigraph of repositories and modules."""

from depgraph.graph.graph import DependencyGraph
from depgraph.graph.models import Edge, EdgeType, Node, NodeType
from depgraph.graph.serialize import (
    from_dict,
    from_json,
    load_graph,
    save_graph,
    to_dict,
    to_json,
)

__all__ = [
    "DependencyGraph",
    "Edge",
    "EdgeType",
    "Node",
    "NodeType",
    "from_dict",
    "from_json",
    "load_graph",
    "save_graph",
    "to_dict",
    "to_json",
]
