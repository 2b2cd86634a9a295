"""
Execution tracking for one submitted prompt.

``ExecutionTracker`` consumes the websocket update stream, keeps only the
updates for its ``prompt_id`` and turns them into ``OutputImage`` values:

- ``executed`` with images: the images are fetched concurrently and yielded
  in the order the server listed them; the node is remembered.
- ``executing`` with ``node=None``: the prompt is done. The history record is
  fetched and every output node not yet seen is fetched and yielded (cached
  nodes never send ``executed``, and updates sent before the websocket was
  open are lost).
- ``execution_interrupted`` / ``execution_error``: terminal, raised as
  ``ExecutionInterruptedError`` / ``ExecutionFailedError``. Images already
  yielded stay delivered; no backfill.

Everything else is logged at debug level and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ...shared import ConnectionClosedError, ExecutionFailedError, ExecutionInterruptedError, get_logger, timer
from .history import HistoryRecord
from .updates import (
    Executed,
    ExecutionCached,
    ExecutionError,
    ExecutionInterrupted,
    Executing,
    ImageRef,
    Update,
)

logger = get_logger(__name__)

FetchImage = Callable[[ImageRef], Awaitable[bytes]]
FetchHistory = Callable[[str], Awaitable[HistoryRecord]]


class TrackerState(str, Enum):
    SUBMITTED = "submitted"
    LISTENING = "listening"
    STREAMING = "streaming"
    FINISHED = "finished"
    INTERRUPTED = "interrupted"
    ERRORED = "errored"


@dataclass(frozen=True)
class OutputImage:
    node_id: str
    image: ImageRef
    data: bytes


async def _close_source(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


class ExecutionTracker:
    """
    Single-pass async iterator over the output images of one prompt.

    Usage:
        tracker = ExecutionTracker(prompt_id, await client.updates(client_id), client.view, client.history)
        async for out in tracker:
            save(out.node_id, out.data)

    Iterating a second time raises ``RuntimeError``. ``aclose()`` stops the
    iteration and closes the update source.
    """

    def __init__(
        self,
        prompt_id: str,
        updates: AsyncIterator[Update],
        fetch_image: FetchImage,
        fetch_history: FetchHistory,
    ) -> None:
        self.prompt_id = str(prompt_id)
        self.state = TrackerState.SUBMITTED
        self.yielded_nodes: set[str] = set()
        self.cached_nodes: list[str] = []
        self._updates = updates
        self._fetch_image = fetch_image
        self._fetch_history = fetch_history
        self._iterator: AsyncIterator[OutputImage] | None = None
        self._log = logging.LoggerAdapter(logger, {"prompt_id": self.prompt_id})

    def __aiter__(self) -> AsyncIterator[OutputImage]:
        if self._iterator is not None:
            raise RuntimeError("ExecutionTracker can only be iterated once")
        self._iterator = self._run()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()  # type: ignore[attr-defined]
        await _close_source(self._updates)

    async def collect(self) -> list[OutputImage]:
        return [out async for out in self]

    @property
    def done(self) -> bool:
        return self.state in (TrackerState.FINISHED, TrackerState.INTERRUPTED, TrackerState.ERRORED)

    async def _fetch_all(self, node_id: str, images: list[ImageRef]) -> list[OutputImage]:
        if not images:
            return []
        with timer(f"fetch {len(images)} image(s) for node {node_id}", self._log.logger):
            blobs = await asyncio.gather(*(self._fetch_image(image) for image in images))
        return [OutputImage(node_id, image, data) for image, data in zip(images, blobs)]

    async def _run(self) -> AsyncIterator[OutputImage]:
        self.state = TrackerState.LISTENING
        try:
            async for update in self._updates:
                if update.prompt_id is None:
                    self._log.debug("Server update %s", type(update).__name__)
                    continue
                if update.prompt_id != self.prompt_id:
                    self._log.debug("Ignoring %s for prompt %s", type(update).__name__, update.prompt_id)
                    continue

                if isinstance(update, ExecutionError):
                    self.state = TrackerState.ERRORED
                    self._log.error(
                        "Node %s (%s) failed: %s: %s",
                        update.node_id,
                        update.node_type,
                        update.exception_type,
                        update.exception_message,
                    )
                    raise ExecutionFailedError(update)
                if isinstance(update, ExecutionInterrupted):
                    self.state = TrackerState.INTERRUPTED
                    self._log.warning("Interrupted at node %s (%s)", update.node_id, update.node_type)
                    raise ExecutionInterruptedError(update)

                if isinstance(update, Executed):
                    self.state = TrackerState.STREAMING
                    self.yielded_nodes.add(update.node)
                    for out in await self._fetch_all(update.node, update.images):
                        yield out
                elif isinstance(update, Executing) and update.node is None:
                    async for out in self._backfill():
                        yield out
                    self.state = TrackerState.FINISHED
                    self._log.debug("Prompt finished")
                    return
                elif isinstance(update, ExecutionCached):
                    self.cached_nodes.extend(update.nodes)
                    self._log.debug("Cached nodes: %s", ", ".join(update.nodes) or "-")
                else:
                    self._log.debug("%s", update)

            raise ConnectionClosedError(
                f"Update stream ended before prompt {self.prompt_id} finished",
                prompt_id=self.prompt_id,
            )
        finally:
            await _close_source(self._updates)

    async def _backfill(self) -> AsyncIterator[OutputImage]:
        record = await self._fetch_history(self.prompt_id)
        for node_id, images in record.outputs.items():
            if node_id in self.yielded_nodes:
                continue
            self._log.debug("Backfilling %d image(s) from node %s", len(images), node_id)
            self.yielded_nodes.add(node_id)
            for out in await self._fetch_all(node_id, images):
                yield out
