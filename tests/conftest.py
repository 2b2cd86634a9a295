import asyncio
import copy
import json
import sys

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from repo_root import REPO_ROOT

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# Default ComfyUI text-to-image workflow, API format
TXT2IMG = {
    "3": {
        "class_type": "KSampler",
        "inputs": {
            "cfg": 8,
            "denoise": 1,
            "latent_image": ["5", 0],
            "model": ["4", 0],
            "negative": ["7", 0],
            "positive": ["6", 0],
            "sampler_name": "euler",
            "scheduler": "normal",
            "seed": 156680208700286,
            "steps": 20,
        },
        "_meta": {"title": "KSampler"},
    },
    "4": {
        "class_type": "CheckpointLoaderSimple",
        "inputs": {"ckpt_name": "v1-5-pruned-emaonly.safetensors"},
        "_meta": {"title": "Load Checkpoint"},
    },
    "5": {
        "class_type": "EmptyLatentImage",
        "inputs": {"batch_size": 1, "height": 512, "width": 512},
        "_meta": {"title": "Empty Latent Image"},
    },
    "6": {
        "class_type": "CLIPTextEncode",
        "inputs": {"clip": ["4", 1], "text": "beautiful scenery nature glass bottle landscape"},
        "_meta": {"title": "CLIP Text Encode (Prompt)"},
    },
    "7": {
        "class_type": "CLIPTextEncode",
        "inputs": {"clip": ["4", 1], "text": "text, watermark"},
        "_meta": {"title": "CLIP Text Encode (Prompt)"},
    },
    "8": {
        "class_type": "VAEDecode",
        "inputs": {"samples": ["3", 0], "vae": ["4", 2]},
        "_meta": {"title": "VAE Decode"},
    },
    "9": {
        "class_type": "SaveImage",
        "inputs": {"filename_prefix": "ComfyUI", "images": ["8", 0]},
        "_meta": {"title": "Save Image"},
    },
}

# SDXL Turbo style workflow: SamplerCustom + KSamplerSelect + SDTurboScheduler
TURBO = {
    "5": {"class_type": "EmptyLatentImage", "inputs": {"width": 512, "height": 512, "batch_size": 1}},
    "6": {"class_type": "CLIPTextEncode", "inputs": {"text": "a cinematic fox", "clip": ["20", 1]}},
    "7": {"class_type": "CLIPTextEncode", "inputs": {"text": "blurry", "clip": ["20", 1]}},
    "8": {"class_type": "VAEDecode", "inputs": {"samples": ["13", 0], "vae": ["20", 2]}},
    "13": {
        "class_type": "SamplerCustom",
        "inputs": {
            "add_noise": True,
            "noise_seed": 7,
            "cfg": 1.0,
            "model": ["20", 0],
            "positive": ["6", 0],
            "negative": ["7", 0],
            "sampler": ["14", 0],
            "sigmas": ["22", 0],
            "latent_image": ["5", 0],
        },
    },
    "14": {"class_type": "KSamplerSelect", "inputs": {"sampler_name": "euler_ancestral"}},
    "20": {"class_type": "CheckpointLoaderSimple", "inputs": {"ckpt_name": "sd_xl_turbo_1.0_fp16.safetensors"}},
    "22": {"class_type": "SDTurboScheduler", "inputs": {"steps": 1, "denoise": 1.0, "model": ["20", 0]}},
    "25": {"class_type": "PreviewImage", "inputs": {"images": ["8", 0]}},
}


# Same workflow as exported by tools that name their nodes
NAMED_TXT2IMG = {
    "ckpt": {"class_type": "CheckpointLoaderSimple", "inputs": {"ckpt_name": "dreamshaper_8.safetensors"}},
    "pos": {"class_type": "CLIPTextEncode", "inputs": {"text": "a lighthouse at dusk", "clip": ["ckpt", 1]}},
    "neg": {"class_type": "CLIPTextEncode", "inputs": {"text": "lowres", "clip": ["ckpt", 1]}},
    "latent": {"class_type": "EmptyLatentImage", "inputs": {"width": 768, "height": 512, "batch_size": 1}},
    "sampler": {
        "class_type": "KSampler",
        "inputs": {
            "seed": 42,
            "steps": 25,
            "cfg": 6.5,
            "sampler_name": "dpmpp_2m",
            "scheduler": "karras",
            "denoise": 1.0,
            "model": ["ckpt", 0],
            "positive": ["pos", 0],
            "negative": ["neg", 0],
            "latent_image": ["latent", 0],
        },
    },
    "decode": {"class_type": "VAEDecode", "inputs": {"samples": ["sampler", 0], "vae": ["ckpt", 2]}},
    "save": {"class_type": "SaveImage", "inputs": {"filename_prefix": "relay", "images": ["decode", 0]}},
}


@pytest.fixture
def txt2img_payload():
    return copy.deepcopy(TXT2IMG)


@pytest.fixture
def turbo_payload():
    return copy.deepcopy(TURBO)


@pytest.fixture
def named_payload():
    return copy.deepcopy(NAMED_TXT2IMG)


class FakeComfy:
    """In-process stand-in for the ComfyUI endpoints this package talks to."""

    def __init__(self):
        self.prompt_id = "prompt-1"
        self.events = []
        self.prompts = []
        self.uploads = []
        self.view_requests = []
        self.ws_client_ids = []
        self.history = {}
        self.images = {}
        self.frames = []
        self.prompt_reply = None
        self.wait_for_submit = True
        self.base_url = ""
        self._submitted = asyncio.Event()

    def app(self):
        app = web.Application()
        app.router.add_post("/prompt", self._prompt)
        app.router.add_get("/history/{prompt_id}", self._history)
        app.router.add_get("/view", self._view)
        app.router.add_post("/upload/image", self._upload)
        app.router.add_get("/ws", self._ws)
        return app

    async def _prompt(self, request):
        self.events.append("prompt")
        self.prompts.append(await request.json())
        self._submitted.set()
        if self.prompt_reply is not None:
            status, body = self.prompt_reply
            return web.json_response(body, status=status)
        return web.json_response({"prompt_id": self.prompt_id, "number": 3, "node_errors": {}})

    async def _history(self, request):
        prompt_id = request.match_info["prompt_id"]
        entry = self.history.get(prompt_id)
        return web.json_response({prompt_id: entry} if entry is not None else {})

    async def _view(self, request):
        key = (request.query.get("filename"), request.query.get("subfolder", ""), request.query.get("type"))
        self.view_requests.append(key)
        data = self.images.get(key)
        if data is None:
            return web.Response(status=404, text="image not found")
        return web.Response(body=data, content_type="image/png")

    async def _upload(self, request):
        form = await request.post()
        image = form["image"]
        self.uploads.append(
            {
                "filename": image.filename,
                "content_type": image.content_type,
                "data": image.file.read(),
                "type": form.get("type"),
                "subfolder": form.get("subfolder"),
                "overwrite": form.get("overwrite"),
            }
        )
        return web.json_response(
            {"name": image.filename, "subfolder": form.get("subfolder") or "", "type": form.get("type")}
        )

    async def _ws(self, request):
        self.events.append("ws")
        self.ws_client_ids.append(request.query.get("clientId"))
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        if self.wait_for_submit:
            await self._submitted.wait()
        for frame in self.frames:
            if ws.closed:
                break
            if isinstance(frame, bytes):
                await ws.send_bytes(frame)
            elif isinstance(frame, str):
                await ws.send_str(frame)
            else:
                await ws.send_str(json.dumps(frame))
        await ws.close()
        return ws

    def add_image(self, filename, data, subfolder="", folder_type="output"):
        self.images[(filename, subfolder, folder_type)] = data
        return {"filename": filename, "subfolder": subfolder, "type": folder_type}


@pytest_asyncio.fixture
async def fake_comfy():
    fake = FakeComfy()
    server = TestServer(fake.app())
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    try:
        yield fake
    finally:
        await server.close()


@pytest_asyncio.fixture
async def comfy_client(fake_comfy):
    from comfy_relay.adapters.http import ComfyClient

    client = ComfyClient(fake_comfy.base_url)
    try:
        yield client
    finally:
        await client.close()
