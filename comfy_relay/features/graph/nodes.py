"""Known node shapes and the class_type registry used to parse them."""

from __future__ import annotations

from typing import Any

from ...shared import get_logger
from .model import Connection, KnownNode, Node, UnknownNode

logger = get_logger(__name__)

_NUM = (float,)
_INT = (int,)
_STR = (str,)
_BOOL = (bool,)


class KSampler(KnownNode):
    CLASS_TYPE = "KSampler"
    VALUE_SLOTS = {
        "cfg": _NUM,
        "denoise": _NUM,
        "sampler_name": _STR,
        "scheduler": _STR,
        "seed": _INT,
        "steps": _INT,
    }
    LINK_SLOTS = ("model", "positive", "negative", "latent_image")


class CLIPTextEncode(KnownNode):
    CLASS_TYPE = "CLIPTextEncode"
    VALUE_SLOTS = {"text": _STR}
    LINK_SLOTS = ("clip",)


class EmptyLatentImage(KnownNode):
    CLASS_TYPE = "EmptyLatentImage"
    VALUE_SLOTS = {"batch_size": _INT, "width": _INT, "height": _INT}


class CheckpointLoaderSimple(KnownNode):
    CLASS_TYPE = "CheckpointLoaderSimple"
    VALUE_SLOTS = {"ckpt_name": _STR}


class VAELoader(KnownNode):
    CLASS_TYPE = "VAELoader"
    VALUE_SLOTS = {"vae_name": _STR}


class VAEDecode(KnownNode):
    CLASS_TYPE = "VAEDecode"
    LINK_SLOTS = ("samples", "vae")


class PreviewImage(KnownNode):
    CLASS_TYPE = "PreviewImage"
    LINK_SLOTS = ("images",)


class KSamplerSelect(KnownNode):
    CLASS_TYPE = "KSamplerSelect"
    VALUE_SLOTS = {"sampler_name": _STR}


class SamplerCustom(KnownNode):
    CLASS_TYPE = "SamplerCustom"
    VALUE_SLOTS = {"add_noise": _BOOL, "cfg": _NUM, "noise_seed": _INT}
    LINK_SLOTS = ("latent_image", "model", "positive", "negative", "sampler", "sigmas")


class SDTurboScheduler(KnownNode):
    CLASS_TYPE = "SDTurboScheduler"
    VALUE_SLOTS = {"steps": _INT}
    LINK_SLOTS = ("model",)


class ImageOnlyCheckpointLoader(KnownNode):
    CLASS_TYPE = "ImageOnlyCheckpointLoader"
    VALUE_SLOTS = {"ckpt_name": _STR}


class LoadImage(KnownNode):
    CLASS_TYPE = "LoadImage"
    # The UI upload button is serialized by some frontends and not by others
    VALUE_SLOTS = {"image": _STR, "upload": _STR, "choose file to upload": _STR}
    OPTIONAL_SLOTS = frozenset({"upload", "choose file to upload"})


class SVDImg2VidConditioning(KnownNode):
    CLASS_TYPE = "SVD_img2vid_Conditioning"
    VALUE_SLOTS = {
        "augmentation_level": _NUM,
        "fps": _INT,
        "width": _INT,
        "height": _INT,
        "motion_bucket_id": _INT,
        "video_frames": _INT,
    }
    LINK_SLOTS = ("clip_vision", "init_image", "vae")


class VideoLinearCFGGuidance(KnownNode):
    CLASS_TYPE = "VideoLinearCFGGuidance"
    VALUE_SLOTS = {"min_cfg": _NUM}
    LINK_SLOTS = ("model",)


class SaveAnimatedWEBP(KnownNode):
    CLASS_TYPE = "SaveAnimatedWEBP"
    VALUE_SLOTS = {
        "filename_prefix": _STR,
        "fps": _NUM,
        "lossless": _BOOL,
        "method": _STR,
        "quality": _INT,
    }
    LINK_SLOTS = ("images",)


class LoraLoader(KnownNode):
    CLASS_TYPE = "LoraLoader"
    VALUE_SLOTS = {"lora_name": _STR, "strength_model": _NUM, "strength_clip": _NUM}
    LINK_SLOTS = ("model", "clip")


class ModelSamplingDiscrete(KnownNode):
    CLASS_TYPE = "ModelSamplingDiscrete"
    VALUE_SLOTS = {"sampling": _STR, "zsnr": _BOOL}
    LINK_SLOTS = ("model",)


class SaveImage(KnownNode):
    CLASS_TYPE = "SaveImage"
    VALUE_SLOTS = {"filename_prefix": _STR}
    LINK_SLOTS = ("images",)


NODE_SHAPES: dict[str, type[KnownNode]] = {
    cls.CLASS_TYPE: cls
    for cls in (
        KSampler,
        CLIPTextEncode,
        EmptyLatentImage,
        CheckpointLoaderSimple,
        VAELoader,
        VAEDecode,
        PreviewImage,
        KSamplerSelect,
        SamplerCustom,
        SDTurboScheduler,
        ImageOnlyCheckpointLoader,
        LoadImage,
        SVDImg2VidConditioning,
        VideoLinearCFGGuidance,
        SaveAnimatedWEBP,
        LoraLoader,
        ModelSamplingDiscrete,
        SaveImage,
    )
}

# Pass-through nodes followed when resolving where a link really comes from
PASSTHROUGH_CLASS_TYPES: frozenset[str] = frozenset({"Reroute"})


def parse_node(node_id: str, payload: Any) -> Node:
    """
    Build a node from one API-format entry.

    A registered ``class_type`` whose inputs do not fit the declared slots
    (newer server version, extension override) degrades to ``UnknownNode``
    rather than failing the whole graph.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Node {node_id!r} is not an object")
    class_type = str(payload.get("class_type") or "")
    inputs = payload.get("inputs")
    if inputs is None:
        inputs = {}
    if not isinstance(inputs, dict):
        raise ValueError(f"Node {node_id!r} has non-object inputs")
    meta = {k: v for k, v in payload.items() if k not in ("class_type", "inputs")}

    shape = NODE_SHAPES.get(class_type)
    if shape is not None:
        if shape.accepts(inputs):
            return shape.from_inputs(inputs, meta)
        logger.debug("Node %s (%s) does not match its declared slots; keeping it as unknown", node_id, class_type)
    return UnknownNode(class_type, inputs, meta)


def is_passthrough(node: Node | None) -> bool:
    return node is not None and node.class_type in PASSTHROUGH_CLASS_TYPES


def first_connection(node: Node) -> Connection | None:
    """First upstream link of a pass-through node (``Reroute`` has one unnamed input)."""
    if isinstance(node, KnownNode):
        for value in node.inputs.values():
            if isinstance(value, Connection):
                return value
        return None
    ids = node.connections()
    return Connection(ids[0]) if ids else None
