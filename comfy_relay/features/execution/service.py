"""
Run workflows on a ComfyUI server and collect their images.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from ...shared import get_logger, log_structured, log_success, ms, prompt_id_var
from ..graph import Graph, set_param
from .tracker import ExecutionTracker, OutputImage

logger = get_logger(__name__)


class ComfyRelay:
    """
    Submission facade over ``ComfyClient`` and ``ExecutionTracker``.

    Every submission uses a fresh client id, and the websocket is opened
    before the prompt is queued so no update for it can be missed.
    """

    def __init__(self, client: Any = None) -> None:
        if client is None:
            from ...adapters.http import ComfyClient

            client = ComfyClient()
            self._owns_client = True
        else:
            self._owns_client = False
        self.client = client

    async def close(self) -> None:
        if self._owns_client:
            await self.client.close()

    async def __aenter__(self) -> ComfyRelay:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def stream_prompt(self, graph: Graph) -> ExecutionTracker:
        """
        Queue ``graph`` and return a tracker yielding its images as they land.

        The caller iterates the tracker once; ``aclose()`` on it closes the
        websocket.
        """
        client_id = str(uuid.uuid4())
        updates = await self.client.updates(client_id)
        try:
            submitted = await self.client.submit(graph, client_id)
        except BaseException:
            await updates.aclose()
            raise
        logger.info("Queued prompt %s (%d nodes)", submitted.prompt_id, len(graph))
        return ExecutionTracker(submitted.prompt_id, updates, self.client.view, self.client.history)

    async def execute_prompt(self, graph: Graph) -> list[OutputImage]:
        """Queue ``graph`` and wait for all of its images."""
        started = ms()
        tracker = await self.stream_prompt(graph)
        token = prompt_id_var.set(tracker.prompt_id)
        try:
            images = await tracker.collect()
            elapsed = ms() - started
            log_success(logger, f"Prompt finished with {len(images)} image(s) in {elapsed} ms")
            log_structured(
                logger,
                logging.INFO,
                "prompt_finished",
                images=len(images),
                nodes=sorted(tracker.yielded_nodes),
                cached=len(tracker.cached_nodes),
                elapsed_ms=elapsed,
            )
            return images
        finally:
            await tracker.aclose()
            prompt_id_var.reset(token)

    async def txt2img(self, graph: Graph) -> list[OutputImage]:
        return await self.execute_prompt(graph)

    async def img2img(
        self,
        graph: Graph,
        image: bytes,
        output_node: str | None = None,
        filename: str | None = None,
    ) -> list[OutputImage]:
        """
        Upload ``image`` and run ``graph`` on it.

        The upload name goes into the ``image`` parameter of a copy of
        ``graph``; the caller's graph is not modified.
        """
        uploaded = await self.client.upload_image(image, filename=filename)
        prepared = set_param(graph, "image", uploaded.image_name, output_node, in_place=False).unwrap()
        return await self.execute_prompt(prepared)
