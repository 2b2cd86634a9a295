"""
``GET /history/<prompt_id>`` records.

The server answers ``{prompt_id: {"prompt": [...], "outputs": {...},
"status": {...}}}`` once the prompt has run, and ``{}`` before that. Only
node outputs carrying an ``images`` list are kept; other outputs (text,
latents, audio) are ignored. Output order is the server's JSON order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ...shared import ProtocolError, get_logger
from ..graph import Graph
from .updates import ImageRef, parse_images

logger = get_logger(__name__)


@dataclass(frozen=True)
class HistoryPrompt:
    """The prompt echo: ``[number, prompt_id, graph, extra_data, outputs_to_execute]``."""

    number: int
    graph: Graph | None
    client_id: str | None = None
    outputs_to_execute: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class HistoryRecord:
    prompt_id: str
    outputs: dict[str, list[ImageRef]]
    prompt: HistoryPrompt | None = None
    status: dict[str, Any] | None = None

    @property
    def completed(self) -> bool:
        return bool((self.status or {}).get("completed"))


def _parse_prompt_echo(raw: Any) -> HistoryPrompt | None:
    if not isinstance(raw, list) or len(raw) < 3:
        return None
    number = raw[0] if isinstance(raw[0], int) and not isinstance(raw[0], bool) else 0
    graph: Graph | None
    try:
        graph = Graph.from_dict(raw[2]) if isinstance(raw[2], dict) else None
    except ValueError as exc:
        logger.debug("History prompt echo is not a valid graph: %s", exc)
        graph = None
    extra = raw[3] if len(raw) > 3 and isinstance(raw[3], dict) else {}
    client_id = extra.get("client_id")
    to_execute = raw[4] if len(raw) > 4 and isinstance(raw[4], list) else []
    return HistoryPrompt(
        number=number,
        graph=graph,
        client_id=str(client_id) if client_id is not None else None,
        outputs_to_execute=[str(n) for n in to_execute],
    )


def parse_history_entry(prompt_id: str, entry: Any) -> HistoryRecord:
    if not isinstance(entry, dict):
        raise ProtocolError(f"History entry for {prompt_id} is not an object")
    raw_outputs = entry.get("outputs") or {}
    if not isinstance(raw_outputs, dict):
        raise ProtocolError(f"History outputs for {prompt_id} are not an object")

    outputs: dict[str, list[ImageRef]] = {}
    for node_id, output in raw_outputs.items():
        if isinstance(output, dict) and isinstance(output.get("images"), list):
            outputs[str(node_id)] = parse_images(output["images"])

    status = entry.get("status")
    return HistoryRecord(
        prompt_id=prompt_id,
        outputs=outputs,
        prompt=_parse_prompt_echo(entry.get("prompt")),
        status=status if isinstance(status, dict) else None,
    )


def parse_history(prompt_id: str, payload: Any) -> HistoryRecord:
    """Pick ``prompt_id`` out of a ``/history`` response."""
    if not isinstance(payload, dict):
        raise ProtocolError("History response is not an object")
    entry = payload.get(prompt_id)
    if entry is None:
        raise ProtocolError(f"No history for prompt {prompt_id}", prompt_id=prompt_id)
    return parse_history_entry(prompt_id, entry)
