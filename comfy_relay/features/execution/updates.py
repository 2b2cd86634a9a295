"""
Push notifications read off the ComfyUI websocket.

Text frames are JSON ``{"type": ..., "data": {...}}``; binary frames carry
preview images. ``parse_update`` turns a text frame into one of the update
dataclasses below. Unknown tags become ``UnknownUpdate``; a recognized tag
whose payload does not have the expected shape is a ``ProtocolError``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Union

from ...shared import ProtocolError


@dataclass(frozen=True)
class ImageRef:
    """Address of one stored image on the server (``/view`` query)."""

    filename: str
    subfolder: str = ""
    type: str = "output"

    @classmethod
    def from_dict(cls, raw: Any) -> ImageRef:
        if not isinstance(raw, dict) or not isinstance(raw.get("filename"), str):
            raise ProtocolError(f"Malformed image reference: {raw!r}")
        return cls(
            filename=raw["filename"],
            subfolder=str(raw.get("subfolder") or ""),
            type=str(raw.get("type") or "output"),
        )

    def to_params(self) -> dict[str, str]:
        return {"filename": self.filename, "subfolder": self.subfolder, "type": self.type}


def parse_images(raw: Any) -> list[ImageRef]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ProtocolError(f"Expected a list of images, got {type(raw).__name__}")
    return [ImageRef.from_dict(item) for item in raw]


class Update:
    """Base for every update; ``prompt_id`` is None for server-wide events."""

    TYPE: ClassVar[str] = ""
    prompt_id: str | None


@dataclass(frozen=True)
class Status(Update):
    TYPE: ClassVar[str] = "status"
    queue_remaining: int
    sid: str | None = None
    prompt_id: str | None = None


@dataclass(frozen=True)
class Progress(Update):
    TYPE: ClassVar[str] = "progress"
    value: int
    max: int
    prompt_id: str | None = None
    node: str | None = None


@dataclass(frozen=True)
class ExecutionStart(Update):
    TYPE: ClassVar[str] = "execution_start"
    prompt_id: str | None
    timestamp: int | None = None


@dataclass(frozen=True)
class Executing(Update):
    """``node`` is None once the whole prompt has finished executing."""

    TYPE: ClassVar[str] = "executing"
    node: str | None
    prompt_id: str | None = None


@dataclass(frozen=True)
class Executed(Update):
    TYPE: ClassVar[str] = "executed"
    node: str
    images: list[ImageRef]
    prompt_id: str | None = None
    output: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionCached(Update):
    TYPE: ClassVar[str] = "execution_cached"
    nodes: list[str]
    prompt_id: str | None = None


@dataclass(frozen=True)
class ExecutionSuccess(Update):
    TYPE: ClassVar[str] = "execution_success"
    prompt_id: str | None = None


@dataclass(frozen=True)
class ExecutionInterrupted(Update):
    TYPE: ClassVar[str] = "execution_interrupted"
    prompt_id: str | None
    node_id: str
    node_type: str
    executed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExecutionError(ExecutionInterrupted):
    TYPE: ClassVar[str] = "execution_error"
    exception_message: str = ""
    exception_type: str = ""
    traceback: list[str] = field(default_factory=list)
    current_inputs: Any = None
    current_outputs: Any = None


@dataclass(frozen=True)
class UnknownUpdate(Update):
    type: str
    data: Any = None
    prompt_id: str | None = None


@dataclass(frozen=True)
class Preview(Update):
    """Binary websocket frame: a latent preview image, passed through undecoded."""

    data: bytes
    prompt_id: str | None = None


AnyUpdate = Union[
    Status,
    Progress,
    ExecutionStart,
    Executing,
    Executed,
    ExecutionCached,
    ExecutionSuccess,
    ExecutionInterrupted,
    ExecutionError,
    UnknownUpdate,
    Preview,
]


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"{name} must be a number, got {value!r}")
    return int(value)


def _traceback_lines(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.splitlines()
    if isinstance(value, list):
        return [str(line) for line in value]
    raise ProtocolError(f"Malformed traceback: {value!r}")


def _parse_status(data: dict[str, Any]) -> Status:
    status = data.get("status") or {}
    exec_info = status.get("exec_info") if isinstance(status, dict) else None
    if not isinstance(exec_info, dict):
        raise ProtocolError("status update without exec_info")
    return Status(
        queue_remaining=_int(exec_info.get("queue_remaining"), "queue_remaining"),
        sid=_opt_str(data.get("sid")),
    )


def _parse_progress(data: dict[str, Any]) -> Progress:
    return Progress(
        value=_int(data.get("value"), "value"),
        max=_int(data.get("max"), "max"),
        prompt_id=_opt_str(data.get("prompt_id")),
        node=_opt_str(data.get("node")),
    )


def _parse_execution_start(data: dict[str, Any]) -> ExecutionStart:
    ts = data.get("timestamp")
    return ExecutionStart(prompt_id=_opt_str(data.get("prompt_id")), timestamp=ts if isinstance(ts, int) else None)


def _parse_executing(data: dict[str, Any]) -> Executing:
    if "node" not in data:
        raise ProtocolError("executing update without node")
    return Executing(node=_opt_str(data["node"]), prompt_id=_opt_str(data.get("prompt_id")))


def _parse_executed(data: dict[str, Any]) -> Executed:
    node = data.get("node")
    output = data.get("output")
    if node is None:
        raise ProtocolError("executed update without node")
    if output is None:
        output = {}
    if not isinstance(output, dict):
        raise ProtocolError(f"executed output must be an object, got {type(output).__name__}")
    return Executed(
        node=str(node),
        images=parse_images(output.get("images")),
        prompt_id=_opt_str(data.get("prompt_id")),
        output=output,
    )


def _parse_execution_cached(data: dict[str, Any]) -> ExecutionCached:
    nodes = data.get("nodes")
    if not isinstance(nodes, list):
        raise ProtocolError("execution_cached update without a node list")
    return ExecutionCached(nodes=[str(n) for n in nodes], prompt_id=_opt_str(data.get("prompt_id")))


def _parse_execution_success(data: dict[str, Any]) -> ExecutionSuccess:
    return ExecutionSuccess(prompt_id=_opt_str(data.get("prompt_id")))


def _interrupted_fields(data: dict[str, Any]) -> dict[str, Any]:
    executed = data.get("executed") or []
    if not isinstance(executed, list):
        raise ProtocolError("executed must be a list of node ids")
    return {
        "prompt_id": _opt_str(data.get("prompt_id")),
        "node_id": str(data.get("node_id") if data.get("node_id") is not None else ""),
        "node_type": str(data.get("node_type") or ""),
        "executed": [str(n) for n in executed],
    }


def _parse_execution_interrupted(data: dict[str, Any]) -> ExecutionInterrupted:
    return ExecutionInterrupted(**_interrupted_fields(data))


def _parse_execution_error(data: dict[str, Any]) -> ExecutionError:
    return ExecutionError(
        **_interrupted_fields(data),
        exception_message=str(data.get("exception_message") or ""),
        exception_type=str(data.get("exception_type") or ""),
        traceback=_traceback_lines(data.get("traceback")),
        current_inputs=data.get("current_inputs"),
        current_outputs=data.get("current_outputs"),
    )


_PARSERS: dict[str, Callable[[dict[str, Any]], Update]] = {
    Status.TYPE: _parse_status,
    Progress.TYPE: _parse_progress,
    ExecutionStart.TYPE: _parse_execution_start,
    Executing.TYPE: _parse_executing,
    Executed.TYPE: _parse_executed,
    ExecutionCached.TYPE: _parse_execution_cached,
    ExecutionSuccess.TYPE: _parse_execution_success,
    ExecutionInterrupted.TYPE: _parse_execution_interrupted,
    ExecutionError.TYPE: _parse_execution_error,
}


def parse_message(message: Any) -> Update:
    """Decode an already-loaded ``{"type", "data"}`` object."""
    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        raise ProtocolError(f"Update is not a tagged object: {message!r}")
    tag = message["type"]
    data = message.get("data")
    parser = _PARSERS.get(tag)
    if parser is None:
        return UnknownUpdate(type=tag, data=data)
    if not isinstance(data, dict):
        raise ProtocolError(f"{tag} update has no data object")
    return parser(data)


def parse_update(text: str | bytes) -> Update:
    """Decode one websocket text frame."""
    try:
        message = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Unparseable update frame: {exc}") from exc
    return parse_message(message)

