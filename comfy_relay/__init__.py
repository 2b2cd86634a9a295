"""
ComfyRelay: run parameterized ComfyUI workflows and collect their images.

    from comfy_relay import ComfyRelay, Graph, WorkflowParams

    graph = Graph.from_json(open("workflow_api.json").read())
    params = WorkflowParams(graph)
    params.prompt = "a lighthouse at dusk"
    params.seed = 42

    async with ComfyRelay() as relay:
        for out in await relay.execute_prompt(graph):
            ...
"""
from .adapters.http import ComfyClient, UploadedImage
from .features.execution import ComfyRelay, ExecutionTracker, OutputImage, TrackerState
from .features.graph import Connection, Graph, ImageInfo, WorkflowParams, get_param, image_info, set_param
from .shared import Result

__version__ = "0.1.0"

__all__ = [
    "ComfyRelay",
    "ComfyClient",
    "UploadedImage",
    "ExecutionTracker",
    "OutputImage",
    "TrackerState",
    "Graph",
    "Connection",
    "WorkflowParams",
    "ImageInfo",
    "image_info",
    "get_param",
    "set_param",
    "Result",
]
