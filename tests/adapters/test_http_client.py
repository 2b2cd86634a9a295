from io import BytesIO

import pytest
from PIL import Image

from comfy_relay.adapters.http import ComfyClient, UploadedImage, sniff_image
from comfy_relay.features.execution.updates import Executing, ImageRef, Preview, Status, UnknownUpdate
from comfy_relay.features.graph import Graph
from comfy_relay.shared import HttpStatusError, ProtocolError, SubmitError, TransportError


def _png(size=(4, 4)):
    buf = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def _jpeg():
    buf = BytesIO()
    Image.new("RGB", (4, 4)).save(buf, format="JPEG")
    return buf.getvalue()


def test_ws_url_follows_http_scheme():
    assert ComfyClient("http://127.0.0.1:8188").ws_url("abc") == "ws://127.0.0.1:8188/ws?clientId=abc"
    assert ComfyClient("https://comfy.example.com/").ws_url("abc") == "wss://comfy.example.com/ws?clientId=abc"
    assert ComfyClient("https://example.com/comfy").ws_url("c") == "wss://example.com/comfy/ws?clientId=c"


def test_bare_host_gets_http_scheme():
    client = ComfyClient("localhost:8188")
    assert client.base_url == "http://localhost:8188"
    assert client.url("/prompt") == "http://localhost:8188/prompt"


def test_invalid_url_is_a_transport_error():
    with pytest.raises(TransportError):
        ComfyClient("ftp://example.com")


def test_sniff_image_formats():
    assert sniff_image(_png()) == ("image/png", ".png")
    assert sniff_image(_jpeg()) == ("image/jpeg", ".jpg")
    with pytest.raises(ValueError):
        sniff_image(b"definitely not an image")


@pytest.mark.asyncio
async def test_submit(fake_comfy, comfy_client, txt2img_payload):
    res = await comfy_client.submit(Graph.from_dict(txt2img_payload), "client-1")
    assert res.prompt_id == "prompt-1"
    assert res.number == 3
    assert fake_comfy.prompts == [{"prompt": txt2img_payload, "client_id": "client-1"}]


@pytest.mark.asyncio
async def test_submit_rejected_with_node_errors(fake_comfy, comfy_client, txt2img_payload):
    node_errors = {
        "4": {
            "errors": [{"type": "value_not_in_list", "message": "Value not in list"}],
            "dependent_outputs": ["9"],
            "class_type": "CheckpointLoaderSimple",
        }
    }
    fake_comfy.prompt_reply = (400, {"error": {"type": "prompt_outputs_failed_validation"}, "node_errors": node_errors})
    with pytest.raises(SubmitError) as exc:
        await comfy_client.submit(Graph.from_dict(txt2img_payload), "client-1")
    assert exc.value.node_errors == node_errors
    assert "CheckpointLoaderSimple" in str(exc.value)


@pytest.mark.asyncio
async def test_submit_node_errors_on_success_status(fake_comfy, comfy_client, txt2img_payload):
    fake_comfy.prompt_reply = (200, {"prompt_id": "x", "number": 1, "node_errors": {"3": {"class_type": "KSampler"}}})
    with pytest.raises(SubmitError):
        await comfy_client.submit(Graph.from_dict(txt2img_payload), "client-1")


@pytest.mark.asyncio
async def test_non_2xx_keeps_status_and_body(fake_comfy, comfy_client, txt2img_payload):
    fake_comfy.prompt_reply = (500, {"error": "server exploded"})
    with pytest.raises(HttpStatusError) as exc:
        await comfy_client.submit(Graph.from_dict(txt2img_payload), "client-1")
    assert exc.value.status == 500
    assert "server exploded" in exc.value.body


@pytest.mark.asyncio
async def test_history(fake_comfy, comfy_client):
    fake_comfy.history["prompt-1"] = {"outputs": {"9": {"images": [{"filename": "a.png", "subfolder": "", "type": "output"}]}}}
    record = await comfy_client.history("prompt-1")
    assert record.outputs == {"9": [ImageRef("a.png")]}

    with pytest.raises(ProtocolError):
        await comfy_client.history("prompt-404")


@pytest.mark.asyncio
async def test_view(fake_comfy, comfy_client):
    data = _png()
    fake_comfy.add_image("ComfyUI_00001_.png", data, subfolder="batch", folder_type="temp")
    got = await comfy_client.view(ImageRef("ComfyUI_00001_.png", "batch", "temp"))
    assert got == data
    assert fake_comfy.view_requests == [("ComfyUI_00001_.png", "batch", "temp")]

    with pytest.raises(HttpStatusError) as exc:
        await comfy_client.view(ImageRef("missing.png"))
    assert exc.value.status == 404
    assert exc.value.body == "image not found"


@pytest.mark.asyncio
async def test_upload_image(fake_comfy, comfy_client):
    data = _png()
    uploaded = await comfy_client.upload_image(data, subfolder="relay")
    assert isinstance(uploaded, UploadedImage)
    assert uploaded.subfolder == "relay"
    assert uploaded.type == "input"
    assert uploaded.image_name == f"relay/{uploaded.name}"

    sent = fake_comfy.uploads[0]
    assert sent["filename"].endswith(".png")
    assert sent["content_type"] == "image/png"
    assert sent["data"] == data
    assert sent["type"] == "input"
    assert sent["overwrite"] == "true"


@pytest.mark.asyncio
async def test_upload_keeps_given_filename(fake_comfy, comfy_client):
    uploaded = await comfy_client.upload_image(_jpeg(), filename="photo.jpg", overwrite=False)
    assert uploaded.image_name == "photo.jpg"
    assert fake_comfy.uploads[0]["content_type"] == "image/jpeg"
    assert fake_comfy.uploads[0]["overwrite"] == "false"


@pytest.mark.asyncio
async def test_upload_rejects_non_images(fake_comfy, comfy_client):
    with pytest.raises(ValueError):
        await comfy_client.upload_image(b"%PDF-1.4")
    assert fake_comfy.uploads == []


@pytest.mark.asyncio
async def test_updates_skip_binary_frames(fake_comfy, comfy_client):
    fake_comfy.wait_for_submit = False
    fake_comfy.frames = [
        {"type": "status", "data": {"status": {"exec_info": {"queue_remaining": 0}}, "sid": "client-1"}},
        b"\x00\x00\x00\x01\x00\x00\x00\x02fakepng",
        {"type": "crystools.monitor", "data": {"cpu_utilization": 3}},
        {"type": "executing", "data": {"node": None, "prompt_id": "prompt-1"}},
    ]
    stream = await comfy_client.updates("client-1")
    got = [u async for u in stream]
    await stream.aclose()

    assert fake_comfy.ws_client_ids == ["client-1"]
    assert got == [
        Status(queue_remaining=0, sid="client-1"),
        UnknownUpdate(type="crystools.monitor", data={"cpu_utilization": 3}),
        Executing(node=None, prompt_id="prompt-1"),
    ]


@pytest.mark.asyncio
async def test_updates_can_surface_previews(fake_comfy, comfy_client):
    fake_comfy.wait_for_submit = False
    fake_comfy.frames = [b"\x00\x00\x00\x01\x00\x00\x00\x02fakepng"]
    stream = await comfy_client.updates("client-1", previews=True)
    got = [u async for u in stream]
    assert got == [Preview(b"\x00\x00\x00\x01\x00\x00\x00\x02fakepng")]


@pytest.mark.asyncio
async def test_updates_fail_on_malformed_known_tag(fake_comfy, comfy_client):
    fake_comfy.wait_for_submit = False
    fake_comfy.frames = [{"type": "executed", "data": {"node": "9", "output": ["a.png"]}}]
    stream = await comfy_client.updates("client-1")
    try:
        with pytest.raises(ProtocolError):
            await stream.__anext__()
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_connection_refused_is_a_transport_error(unused_tcp_port):
    async with ComfyClient(f"http://127.0.0.1:{unused_tcp_port}", timeout=2) as client:
        with pytest.raises(TransportError):
            await client.view(ImageRef("a.png"))
        with pytest.raises(TransportError):
            await client.updates("client-1")
