"""Workflow graph: node id -> node, in the order the producer wrote them."""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator, Mapping
from typing import Any

from .model import Node
from .nodes import parse_node


class Graph:
    """
    API-format workflow graph.

    Iteration follows insertion order, which for parsed graphs is the order of
    the source JSON. Links are not validated locally; the server rejects
    dangling references at submit time.
    """

    def __init__(self, nodes: Mapping[str, Node] | None = None) -> None:
        self._nodes: dict[str, Node] = {str(k): v for k, v in (nodes or {}).items()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Graph:
        if not isinstance(payload, Mapping):
            raise ValueError("Workflow must be a JSON object of node id -> node")
        return cls({str(node_id): parse_node(str(node_id), raw) for node_id, raw in payload.items()})

    @classmethod
    def from_json(cls, text: str | bytes) -> Graph:
        return cls.from_dict(json.loads(text))

    def to_dict(self) -> dict[str, Any]:
        return {node_id: node.to_dict() for node_id, node in self._nodes.items()}

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    def copy(self) -> Graph:
        return Graph({node_id: copy.deepcopy(node) for node_id, node in self._nodes.items()})

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(str(node_id))

    def connections(self, node_id: str) -> list[str]:
        """Upstream dependencies of ``node_id``; empty when the id is unknown."""
        node = self.get_node(node_id)
        return node.connections() if node is not None else []

    def node_ids(self) -> list[str]:
        return list(self._nodes)

    def items(self) -> Iterator[tuple[str, Node]]:
        return iter(self._nodes.items())

    def __contains__(self, node_id: object) -> bool:
        return str(node_id) in self._nodes

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Graph({len(self._nodes)} nodes)"
