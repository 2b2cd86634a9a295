"""
Parameter accessors over arbitrary workflow graphs.

Every user-facing parameter has an ordered list of ``(shape, slot)``
candidates. Resolution tries the shapes in order and moves to the next one
only when no node of the current shape can be found at all; a node that is
found but whose slot is wired to another node is reported as linked rather
than skipped.

Prompt text is special: it is anchored on the sampler, following its
``positive``/``negative`` connection (through Reroute nodes) to a
``CLIPTextEncode``. A global "first CLIPTextEncode" guess would confuse the
positive and negative prompts.

All public functions return ``Result`` and never raise for resolution
failures; a failed write leaves the graph untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from ...shared import ErrorCode, RelayError, Result, get_logger
from .graph import Graph
from .model import KnownNode, Node
from .nodes import (
    CheckpointLoaderSimple,
    CLIPTextEncode,
    EmptyLatentImage,
    ImageOnlyCheckpointLoader,
    KSampler,
    KSamplerSelect,
    LoadImage,
    SamplerCustom,
    SDTurboScheduler,
    first_connection,
    is_passthrough,
)
from .traversal import find_node

logger = get_logger(__name__)

MAX_PASSTHROUGH_HOPS = 50

SAMPLER_SHAPES: tuple[type[KnownNode], ...] = (KSampler, SamplerCustom)


@dataclass(frozen=True)
class Candidate:
    shape: type[KnownNode]
    slot: str


@dataclass(frozen=True)
class Parameter:
    """
    A named parameter and where it may live.

    ``conditioning`` is set for prompt text: the sampler input to follow
    (``positive`` or ``negative``) before reading ``CLIPTextEncode.text``.
    """

    name: str
    candidates: tuple[Candidate, ...]
    conditioning: str | None = None


@dataclass(frozen=True)
class ParamTarget:
    """The node and slot a parameter resolved to."""

    node_id: str
    node: KnownNode
    slot: str


PARAMETERS: dict[str, Parameter] = {
    p.name: p
    for p in (
        Parameter("prompt", (Candidate(CLIPTextEncode, "text"),), conditioning="positive"),
        Parameter("negative_prompt", (Candidate(CLIPTextEncode, "text"),), conditioning="negative"),
        Parameter(
            "model",
            (Candidate(CheckpointLoaderSimple, "ckpt_name"), Candidate(ImageOnlyCheckpointLoader, "ckpt_name")),
        ),
        Parameter("width", (Candidate(EmptyLatentImage, "width"),)),
        Parameter("height", (Candidate(EmptyLatentImage, "height"),)),
        Parameter("batch_size", (Candidate(EmptyLatentImage, "batch_size"),)),
        Parameter("seed", (Candidate(KSampler, "seed"), Candidate(SamplerCustom, "noise_seed"))),
        Parameter("steps", (Candidate(KSampler, "steps"), Candidate(SDTurboScheduler, "steps"))),
        Parameter("cfg", (Candidate(KSampler, "cfg"), Candidate(SamplerCustom, "cfg"))),
        Parameter("sampler_name", (Candidate(KSampler, "sampler_name"), Candidate(KSamplerSelect, "sampler_name"))),
        Parameter("denoise", (Candidate(KSampler, "denoise"),)),
        Parameter("image", (Candidate(LoadImage, "image"),)),
    )
}


def _err(exc: RelayError) -> Result[Any]:
    return Result.Err(exc.code, exc.message, **exc.meta)


def _lookup(name: str) -> Result[Parameter]:
    param = PARAMETERS.get(name)
    if param is None:
        return Result.Err(ErrorCode.UNKNOWN_PARAMETER, f"Unknown parameter {name!r}", parameter=name)
    return Result.Ok(param)


def _check_anchor(graph: Graph, output_node: str | None) -> Result[str | None]:
    if output_node is None:
        return Result.Ok(None)
    anchor = str(output_node)
    if anchor not in graph:
        return Result.Err(ErrorCode.NOT_FOUND, f"Output node {anchor} not in graph", node_id=anchor)
    return Result.Ok(anchor)


def _follow_passthrough(graph: Graph, node_id: str) -> str:
    hops = 0
    current = node_id
    while hops < MAX_PASSTHROUGH_HOPS:
        hops += 1
        node = graph.get_node(current)
        if not is_passthrough(node):
            return current
        link = first_connection(node)  # type: ignore[arg-type]
        if link is None:
            return current
        current = link.node_id
    return current


def _resolve_shapes(graph: Graph, param: Parameter, anchor: str | None) -> Result[ParamTarget]:
    for i, cand in enumerate(param.candidates):
        node_id = find_node(graph, cand.shape, anchor)
        if node_id is None:
            if i + 1 < len(param.candidates):
                logger.debug(
                    "%s: no %s node, trying %s",
                    param.name,
                    cand.shape.__name__,
                    param.candidates[i + 1].shape.__name__,
                )
            continue
        node = cast(KnownNode, graph.get_node(node_id))
        return Result.Ok(ParamTarget(node_id, node, cand.slot))
    shapes = ", ".join(c.shape.__name__ for c in param.candidates)
    return Result.Err(ErrorCode.NOT_FOUND, f"No node for {param.name} ({shapes})", parameter=param.name)


def _resolve_text(graph: Graph, param: Parameter, anchor: str | None) -> Result[ParamTarget]:
    sampler_id: str | None = None
    for shape in SAMPLER_SHAPES:
        sampler_id = find_node(graph, shape, anchor)
        if sampler_id is not None:
            break
    if sampler_id is None:
        return Result.Err(ErrorCode.NOT_FOUND, f"No sampler to anchor {param.name}", parameter=param.name)

    sampler = cast(KnownNode, graph.get_node(sampler_id))
    link = sampler.connection(param.conditioning or "")
    if link is None:
        return Result.Err(
            ErrorCode.NOT_FOUND,
            f"{sampler.class_type} {sampler_id} has no {param.conditioning} connection",
            parameter=param.name,
            node_id=sampler_id,
        )

    target_id = _follow_passthrough(graph, link.node_id)
    target = graph.get_node(target_id)
    slot = param.candidates[0].slot
    if not isinstance(target, CLIPTextEncode):
        kind = target.class_type if target is not None else "missing node"
        return Result.Err(
            ErrorCode.NOT_FOUND,
            f"{param.name} of sampler {sampler_id} comes from {kind} {target_id}, not CLIPTextEncode",
            parameter=param.name,
            node_id=target_id,
        )
    return Result.Ok(ParamTarget(target_id, target, slot))


def find_param_node(graph: Graph, name: str, output_node: str | None = None) -> Result[ParamTarget]:
    """
    Resolve the node holding parameter ``name``.

    With ``output_node`` the search walks upstream from that node; otherwise
    from the graph's sink. Either way it falls back to a whole-graph scan.
    """
    looked_up = _lookup(name)
    if not looked_up.ok:
        return looked_up  # type: ignore[return-value]
    param = looked_up.unwrap()
    anchored = _check_anchor(graph, output_node)
    if not anchored.ok:
        return anchored  # type: ignore[return-value]
    anchor = anchored.data
    if param.conditioning is not None:
        return _resolve_text(graph, param, anchor)
    return _resolve_shapes(graph, param, anchor)


def _read(target: ParamTarget) -> Result[Any]:
    try:
        return Result.Ok(target.node.get_value(target.slot), node_id=target.node_id)
    except RelayError as exc:
        return _err(exc)


def get_param(graph: Graph, name: str, output_node: str | None = None) -> Result[Any]:
    return find_param_node(graph, name, output_node).and_then(_read)


def set_param(
    graph: Graph,
    name: str,
    value: Any,
    output_node: str | None = None,
    in_place: bool = True,
) -> Result[Graph]:
    """
    Write ``value`` into the slot resolved for ``name``.

    Returns the mutated graph. With ``in_place=False`` the write goes to a
    deep copy and ``graph`` is left as it was.
    """
    target_graph = graph if in_place else graph.copy()
    found = find_param_node(target_graph, name, output_node)
    if not found.ok:
        return found  # type: ignore[return-value]
    target = found.unwrap()
    try:
        target.node.set_value(target.slot, value)
    except RelayError as exc:
        return _err(exc)
    logger.debug("Set %s on %s %s.%s", name, target.node.class_type, target.node_id, target.slot)
    return Result.Ok(target_graph, node_id=target.node_id)


def _target_on(graph: Graph, name: str, node_id: str) -> Result[ParamTarget]:
    looked_up = _lookup(name)
    if not looked_up.ok:
        return looked_up  # type: ignore[return-value]
    param = looked_up.unwrap()
    node: Node | None = graph.get_node(node_id)
    if node is None:
        return Result.Err(ErrorCode.NOT_FOUND, f"Node {node_id} not in graph", node_id=str(node_id))
    for cand in param.candidates:
        if isinstance(node, cand.shape):
            return Result.Ok(ParamTarget(str(node_id), node, cand.slot))
    expected = "/".join(c.shape.__name__ for c in param.candidates)
    return Result.Err(
        ErrorCode.TYPE_MISMATCH,
        f"Node {node_id} is {node.class_type or 'untyped'}, expected {expected} for {name}",
        node_id=str(node_id),
        parameter=name,
    )


def get_param_on(graph: Graph, name: str, node_id: str) -> Result[Any]:
    """Read ``name`` from a specific node, bypassing the search."""
    return _target_on(graph, name, node_id).and_then(_read)


def set_param_on(graph: Graph, name: str, node_id: str, value: Any) -> Result[Graph]:
    found = _target_on(graph, name, node_id)
    if not found.ok:
        return found  # type: ignore[return-value]
    target = found.unwrap()
    try:
        target.node.set_value(target.slot, value)
    except RelayError as exc:
        return _err(exc)
    return Result.Ok(graph, node_id=target.node_id)
