"""Summary of the generation parameters behind one output node."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from ...shared import ErrorCode, Result
from .accessors import get_param
from .graph import Graph


@dataclass(frozen=True)
class ImageInfo:
    prompt: str = ""
    negative_prompt: str = ""
    width: int = 0
    height: int = 0
    model: str = ""
    seed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def image_info(graph: Graph, output_node: str) -> Result[ImageInfo]:
    """
    Read the ``ImageInfo`` fields reachable from ``output_node``.

    Fields that cannot be resolved keep their empty default; only an unknown
    ``output_node`` is an error.
    """
    if str(output_node) not in graph:
        return Result.Err(ErrorCode.NOT_FOUND, f"Output node {output_node} not in graph", node_id=str(output_node))

    defaults = ImageInfo()
    values: dict[str, Any] = {}
    for name in ("prompt", "negative_prompt", "width", "height", "model", "seed"):
        values[name] = get_param(graph, name, output_node).unwrap_or(getattr(defaults, name))
    return Result.Ok(ImageInfo(**values), node_id=str(output_node))
