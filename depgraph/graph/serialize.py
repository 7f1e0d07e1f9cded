"""Graph (de)serialisation as ``{"nodes": [...], "edges": [...]}``.

Nodes round-trip ``id``, ``label``, ``type``, ``version`` and ``metadata``.
Edges round-trip ``source``, ``target``, ``type`` and ``version``. The
derived ``repositories`` / ``dependencies`` lists are emitted for readers
and ignored on ingest, as is any other unknown field.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from depgraph.exceptions import InvalidInputError
from depgraph.graph.graph import DependencyGraph
from depgraph.graph.models import Edge, EdgeType, Node, NodeType


def to_dict(graph: DependencyGraph) -> dict[str, Any]:
    nodes: list[dict[str, Any]] = []
    for node in graph:
        item: dict[str, Any] = {
            "id": node.id,
            "label": node.label,
            "type": node.kind.value,
            "version": node.version,
        }
        if node.is_module:
            repos = [n.label for n in graph.dependents(node.id) if n.is_repository]
            if repos:
                item["repositories"] = repos
        deps = [n.id for n in graph.dependencies(node.id)]
        if deps:
            item["dependencies"] = deps
        if node.metadata:
            item["metadata"] = dict(node.metadata)
        nodes.append(item)

    edges = [
        {
            "source": e.source,
            "target": e.target,
            "type": e.kind.value,
            "version": e.version,
        }
        for e in graph.edges
    ]
    return {"nodes": nodes, "edges": edges}


def from_dict(data: Mapping[str, Any]) -> DependencyGraph:
    """Rebuild a graph. Raises :class:`InvalidInputError` on structural errors."""
    if not isinstance(data, Mapping):
        raise InvalidInputError("serialised graph must be an object")

    graph = DependencyGraph()
    for raw in data.get("nodes") or []:
        if not isinstance(raw, Mapping):
            raise InvalidInputError(f"node entry must be an object, got {raw!r}")
        metadata = raw.get("metadata") or {}
        graph.add_node(
            Node(
                id=str(raw.get("id") or ""),
                label=str(raw.get("label") or ""),
                kind=raw.get("type") or NodeType.MODULE,
                version=str(raw.get("version") or ""),
                metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
            )
        )

    for raw in data.get("edges") or []:
        if not isinstance(raw, Mapping):
            raise InvalidInputError(f"edge entry must be an object, got {raw!r}")
        graph.add_edge(
            Edge(
                source=str(raw.get("source") or ""),
                target=str(raw.get("target") or ""),
                version=str(raw.get("version") or ""),
                kind=raw.get("type") or EdgeType.DIRECT,
            )
        )
    return graph


def to_json(graph: DependencyGraph, *, indent: int | None = None) -> str:
    return json.dumps(to_dict(graph), indent=indent)


def from_json(text: str) -> DependencyGraph:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"serialised graph is not valid JSON: {exc}") from exc
    return from_dict(data)


def save_graph(graph: DependencyGraph, path: Path | str) -> None:
    Path(path).write_text(to_json(graph, indent=2), encoding="utf-8")


def load_graph(path: Path | str) -> DependencyGraph:
    return from_json(Path(path).read_text(encoding="utf-8"))
