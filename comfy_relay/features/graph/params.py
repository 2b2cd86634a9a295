"""Attribute-style access to the well-known parameters of a workflow."""

from __future__ import annotations

from typing import Any

from .accessors import PARAMETERS, get_param, set_param
from .graph import Graph


def _param_property(name: str) -> property:
    def getter(self: WorkflowParams) -> Any:
        return self.get(name)

    def setter(self: WorkflowParams, value: Any) -> None:
        self.set(name, value)

    return property(getter, setter, doc=f"The workflow's {name.replace('_', ' ')}, or None when it cannot be read.")


class WorkflowParams:
    """
    Thin view over a graph for callers that just want ``params.seed = 42``.

    Reads swallow resolution failures and return ``None``; writes raise the
    typed error (``LinkedInputError``, ``TypeMismatchError``...). The graph is
    mutated in place.
    """

    def __init__(self, graph: Graph, output_node: str | None = None) -> None:
        self.graph = graph
        self.output_node = output_node

    def get(self, name: str) -> Any:
        return get_param(self.graph, name, self.output_node).unwrap_or(None)

    def set(self, name: str, value: Any) -> None:
        set_param(self.graph, name, value, self.output_node).raise_for_error()

    def as_dict(self) -> dict[str, Any]:
        """Every parameter that resolves to a literal."""
        out: dict[str, Any] = {}
        for name in PARAMETERS:
            result = get_param(self.graph, name, self.output_node)
            if result.ok:
                out[name] = result.data
        return out

    prompt = _param_property("prompt")
    negative_prompt = _param_property("negative_prompt")
    model = _param_property("model")
    width = _param_property("width")
    height = _param_property("height")
    batch_size = _param_property("batch_size")
    seed = _param_property("seed")
    steps = _param_property("steps")
    cfg = _param_property("cfg")
    sampler_name = _param_property("sampler_name")
    denoise = _param_property("denoise")
    image = _param_property("image")
