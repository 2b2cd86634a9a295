"""
aiohttp client for the ComfyUI HTTP and websocket endpoints.

One ``ClientSession`` is shared by every call and created on first use. Each
HTTP request carries its own ``ClientTimeout``; there is no deadline over a
whole prompt and nothing is retried.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import aiohttp
from PIL import Image, UnidentifiedImageError

from ... import config
from ...features.execution.history import HistoryRecord, parse_history
from ...features.execution.updates import ImageRef, Preview, Update, parse_update
from ...features.graph import Graph
from ...shared import (
    UPLOAD_CONTENT_TYPES,
    FolderType,
    HttpStatusError,
    ProtocolError,
    SubmitError,
    TransportError,
    get_logger,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubmitResponse:
    prompt_id: str
    number: int = 0
    node_errors: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UploadedImage:
    name: str
    subfolder: str = ""
    type: str = "input"

    @property
    def image_name(self) -> str:
        """Value to put in ``LoadImage.image``."""
        return f"{self.subfolder}/{self.name}" if self.subfolder else self.name


def sniff_image(data: bytes) -> tuple[str, str]:
    """Return ``(content_type, extension)`` for an image payload."""
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = str(img.format or "").upper()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Not a recognizable image: {exc}") from exc
    found = UPLOAD_CONTENT_TYPES.get(fmt)
    if found is None:
        raise ValueError(f"Unsupported image format for upload: {fmt or 'unknown'}")
    return found


class UpdateStream:
    """
    Decoded updates from an open ``/ws`` connection.

    Binary preview frames are skipped unless ``previews`` is set. The
    iteration ends when the server closes the socket.
    """

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, previews: bool = False) -> None:
        self._ws = ws
        self._previews = previews

    @property
    def closed(self) -> bool:
        return self._ws.closed

    def __aiter__(self) -> UpdateStream:
        return self

    async def __anext__(self) -> Update:
        while True:
            try:
                msg = await self._ws.receive()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise TransportError(f"Websocket receive failed: {exc}") from exc

            if msg.type == aiohttp.WSMsgType.TEXT:
                return parse_update(msg.data)
            if msg.type == aiohttp.WSMsgType.BINARY:
                if self._previews:
                    return Preview(msg.data)
                logger.debug("Skipping %d-byte binary frame", len(msg.data))
                continue
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                raise StopAsyncIteration
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"Websocket error: {self._ws.exception()}")
            logger.debug("Skipping websocket frame of type %s", msg.type)

    async def aclose(self) -> None:
        if not self._ws.closed:
            await self._ws.close()


class ComfyClient:
    """
    Async client for one ComfyUI server.

    Usage:
        async with ComfyClient("http://127.0.0.1:8188") as client:
            stream = await client.updates(client_id)
            submitted = await client.submit(graph, client_id)
            ...
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = self._validate_url(base_url or config.COMFY_URL)
        self._session = session
        self._owns_session = session is None
        self._timeout = float(timeout) if timeout is not None else config.HTTP_TIMEOUT

    @staticmethod
    def _validate_url(raw: str) -> str:
        url = config._normalize_base_url(raw)
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise TransportError(f"Invalid ComfyUI URL: {raw!r}", url=raw)
        return url

    # -- session management --------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> ComfyClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -- plumbing ------------------------------------------------------------

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def ws_url(self, client_id: str) -> str:
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        path = f"{parts.path.rstrip('/')}/ws"
        return urlunsplit((scheme, parts.netloc, path, f"clientId={client_id}", ""))

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: float | None = None,
        expect: str = "json",
        **kwargs: Any,
    ) -> Any:
        session = await self._get_session()
        url = self.url(path)
        client_timeout = aiohttp.ClientTimeout(total=timeout if timeout is not None else self._timeout)
        try:
            async with session.request(method, url, timeout=client_timeout, **kwargs) as resp:
                if resp.status < 200 or resp.status >= 300:
                    body = await resp.text()
                    raise HttpStatusError(resp.status, body, url=url)
                if expect == "bytes":
                    return await resp.read()
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"{method} {url} failed: {exc!r}", url=url) from exc
        try:
            return json.loads(text) if text else {}
        except ValueError as exc:
            raise ProtocolError(f"{method} {url} returned invalid JSON", url=url) from exc

    # -- endpoints -----------------------------------------------------------

    async def submit(self, graph: Graph, client_id: str) -> SubmitResponse:
        """
        ``POST /prompt``.

        A response (200 or 400) carrying a non-empty ``node_errors`` map is
        raised as ``SubmitError`` with the map attached.
        """
        payload = {"prompt": graph.to_dict(), "client_id": str(client_id)}
        try:
            data = await self._request("POST", "/prompt", json=payload)
        except HttpStatusError as exc:
            node_errors = _node_errors_from_body(exc.body)
            if node_errors:
                raise SubmitError(f"Prompt rejected: {_summarize_node_errors(node_errors)}", node_errors) from exc
            raise

        if not isinstance(data, dict):
            raise ProtocolError("POST /prompt returned a non-object body")
        node_errors = data.get("node_errors") or {}
        if node_errors:
            raise SubmitError(f"Prompt rejected: {_summarize_node_errors(node_errors)}", node_errors)
        prompt_id = data.get("prompt_id")
        if not prompt_id:
            raise ProtocolError(f"ComfyUI did not return prompt_id: {data}")
        number = data.get("number")
        logger.debug("Queued prompt %s (#%s)", prompt_id, number)
        return SubmitResponse(
            prompt_id=str(prompt_id),
            number=number if isinstance(number, int) else 0,
        )

    async def history(self, prompt_id: str) -> HistoryRecord:
        data = await self._request("GET", f"/history/{prompt_id}")
        return parse_history(str(prompt_id), data)

    async def view(self, image: ImageRef) -> bytes:
        return await self._request("GET", "/view", params=image.to_params(), expect="bytes")

    async def upload_image(
        self,
        data: bytes,
        filename: str | None = None,
        subfolder: str = "",
        folder_type: FolderType = "input",
        overwrite: bool | None = None,
    ) -> UploadedImage:
        """``POST /upload/image``; the format is sniffed with Pillow."""
        content_type, ext = sniff_image(data)
        name = filename or f"comfy_relay_{uuid.uuid4().hex}{ext}"
        if overwrite is None:
            overwrite = config.UPLOAD_OVERWRITE

        form = aiohttp.FormData()
        form.add_field("image", data, filename=name, content_type=content_type)
        form.add_field("type", folder_type)
        form.add_field("subfolder", subfolder)
        form.add_field("overwrite", "true" if overwrite else "false")

        body = await self._request("POST", "/upload/image", data=form, timeout=config.UPLOAD_TIMEOUT)
        if not isinstance(body, dict):
            raise ProtocolError("POST /upload/image returned a non-object body")
        uploaded = UploadedImage(
            name=str(body.get("name") or name),
            subfolder=str(body.get("subfolder") or ""),
            type=str(body.get("type") or folder_type),
        )
        logger.debug("Uploaded %s (%d bytes, %s)", uploaded.image_name, len(data), content_type)
        return uploaded

    async def updates(self, client_id: str, previews: bool = False) -> UpdateStream:
        """Open ``/ws`` for ``client_id``; events sent before this returns are lost."""
        session = await self._get_session()
        url = self.ws_url(client_id)
        heartbeat = float(config.WS_HEARTBEAT) if config.WS_HEARTBEAT > 0 else None
        try:
            ws = await session.ws_connect(url, heartbeat=heartbeat)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Websocket connect to {url} failed: {exc!r}", url=url) from exc
        return UpdateStream(ws, previews=previews)


def _node_errors_from_body(body: str) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except ValueError:
        return {}
    if not isinstance(data, dict):
        return {}
    node_errors = data.get("node_errors")
    return node_errors if isinstance(node_errors, dict) else {}


def _summarize_node_errors(node_errors: dict[str, Any]) -> str:
    parts = []
    for node_id, err in node_errors.items():
        class_type = err.get("class_type", "?") if isinstance(err, dict) else "?"
        parts.append(f"{node_id} ({class_type})")
    return ", ".join(parts)
