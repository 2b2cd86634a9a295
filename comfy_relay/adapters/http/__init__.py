"""HTTP and websocket adapter for the ComfyUI server."""
from .client import ComfyClient, SubmitResponse, UpdateStream, UploadedImage, sniff_image

__all__ = ["ComfyClient", "SubmitResponse", "UpdateStream", "UploadedImage", "sniff_image"]
