"""
Sink detection and shape search over a workflow graph.

The heuristics are split into independent pieces so callers (and tests) can
use them on their own:

- ``find_sinks`` / ``find_sink``: nodes nothing else depends on.
- ``walk_upstream``: breadth-first walk from an anchor over dependencies.
- ``find_upstream``: nearest node of a shape reachable from an anchor.
- ``scan_for``: first node of a shape anywhere in the graph.
- ``find_node``: anchor (or sink) walk, then global scan.

Ties are broken by connection order during the walk and by graph order
during scans; both are deterministic for a given payload.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Union

from ...shared import IMAGE_OUTPUT_CLASS_TYPES, get_logger
from .graph import Graph
from .model import Node

logger = get_logger(__name__)

Shape = Union[type[Node], tuple[type[Node], ...]]


def _matches(node: Node | None, shape: Shape) -> bool:
    return node is not None and isinstance(node, shape)


def _sink_priority(graph: Graph, node_id: str, position: int) -> tuple[int, int]:
    node = graph.get_node(node_id)
    group = 0 if node is not None and node.class_type in IMAGE_OUTPUT_CLASS_TYPES else 1
    return group, position


def find_sinks(graph: Graph) -> list[str]:
    """Every node id that no other node references, in graph order."""
    referenced: set[str] = set()
    for node_id, node in graph.items():
        for dep in node.connections():
            if dep != node_id:
                referenced.add(dep)
    return [node_id for node_id in graph if node_id not in referenced]


def find_sink(graph: Graph) -> str | None:
    """
    The implicit output node of the workflow.

    With several candidates, image-output shapes win, then graph order. Graphs
    with more than one output are ambiguous here; pass an explicit output node
    for those.
    """
    sinks = find_sinks(graph)
    if not sinks:
        return None
    if len(sinks) > 1:
        logger.warning("Workflow has %d sink nodes (%s); picking one heuristically", len(sinks), ", ".join(sinks))
        order = {node_id: i for i, node_id in enumerate(sinks)}
        sinks = sorted(sinks, key=lambda nid: _sink_priority(graph, nid, order[nid]))
    return sinks[0]


def walk_upstream(graph: Graph, anchor: str) -> Iterator[tuple[str, int]]:
    """
    Yield ``(node_id, hops)`` from ``anchor`` over its dependencies, each node once.

    Nodes come out in order of hop count, so the first match of a shape is
    the one topologically closest to the anchor. Ids referenced but missing
    from the graph are skipped.
    """
    if anchor not in graph:
        return
    seen: set[str] = {anchor}
    queue: deque[tuple[str, int]] = deque([(anchor, 0)])
    while queue:
        node_id, depth = queue.popleft()
        node = graph.get_node(node_id)
        if node is None:
            continue
        yield node_id, depth
        for dep in node.connections():
            if dep not in seen:
                seen.add(dep)
                queue.append((dep, depth + 1))


def find_upstream(graph: Graph, shape: Shape, anchor: str, include_anchor: bool = True) -> str | None:
    """Nearest node of ``shape`` on the dependency walk from ``anchor``."""
    for node_id, _ in walk_upstream(graph, anchor):
        if node_id == anchor and not include_anchor:
            continue
        if _matches(graph.get_node(node_id), shape):
            return node_id
    return None


def scan_for(graph: Graph, shape: Shape) -> str | None:
    """First node of ``shape`` in graph order, regardless of wiring."""
    for node_id, node in graph.items():
        if _matches(node, shape):
            return node_id
    return None


def find_node(graph: Graph, shape: Shape, anchor: str | None = None) -> str | None:
    """
    Walk from ``anchor`` (default: the sink) for ``shape``, then fall back to a scan.

    An anchor that is not in the graph yields no walk and goes straight to
    the scan; callers that need to reject unknown anchors check first.
    """
    start = anchor if anchor is not None else find_sink(graph)
    if start is not None:
        found = find_upstream(graph, shape, start)
        if found is not None:
            return found
        logger.debug("No %s upstream of %s; scanning the whole graph", _shape_name(shape), start)
    return scan_for(graph, shape)


def _shape_name(shape: Shape) -> str:
    if isinstance(shape, tuple):
        return "/".join(s.__name__ for s in shape)
    return shape.__name__
