"""
Workflow graph feature: parsing, traversal and parameter access.
"""
from .accessors import (
    PARAMETERS,
    Candidate,
    Parameter,
    ParamTarget,
    find_param_node,
    get_param,
    get_param_on,
    set_param,
    set_param_on,
)
from .graph import Graph
from .image_info import ImageInfo, image_info
from .model import Connection, KnownNode, Node, UnknownNode
from .nodes import NODE_SHAPES, parse_node
from .params import WorkflowParams
from .traversal import find_node, find_sink, find_sinks, find_upstream, scan_for, walk_upstream

__all__ = [
    "Graph",
    "Connection",
    "Node",
    "KnownNode",
    "UnknownNode",
    "NODE_SHAPES",
    "parse_node",
    "find_sinks",
    "find_sink",
    "walk_upstream",
    "find_upstream",
    "scan_for",
    "find_node",
    "PARAMETERS",
    "Candidate",
    "Parameter",
    "ParamTarget",
    "find_param_node",
    "get_param",
    "set_param",
    "get_param_on",
    "set_param_on",
    "WorkflowParams",
    "ImageInfo",
    "image_info",
]
