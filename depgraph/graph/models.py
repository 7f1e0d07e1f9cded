"""Node and edge types of the dependency graph."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from depgraph.exceptions import InvalidInputError


class NodeType(str, enum.Enum):
    REPOSITORY = "repository"
    MODULE = "module"


class EdgeType(str, enum.Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


def _coerce(enum_cls: type[enum.Enum], value: Any, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInputError(f"invalid {what} {value!r} (expected one of: {allowed})") from None


@dataclass
class Node:
    """A repository or a module. Identity is ``id``; attributes are fixed once added."""

    id: str
    label: str = ""
    kind: NodeType = NodeType.MODULE
    version: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.kind = _coerce(NodeType, self.kind, "node type")
        if not self.label:
            self.label = self.id

    @property
    def is_repository(self) -> bool:
        return self.kind is NodeType.REPOSITORY

    @property
    def is_module(self) -> bool:
        return self.kind is NodeType.MODULE


@dataclass(frozen=True)
class Edge:
    """``source`` declares ``version`` of ``target``. Parallel edges are legal."""

    source: str
    target: str
    version: str = ""
    kind: EdgeType = EdgeType.DIRECT

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", _coerce(EdgeType, self.kind, "edge type"))
