"""
Configuration for ComfyRelay, read from the environment at import time.
"""
import logging
import os
from typing import Callable, TypeVar

from .utils import env_bool

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    """First set, non-blank value among ``names``."""
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and val.strip():
            return val.strip()
    return default


def _env_number(
    convert: Callable[[str], N],
    default: N,
    *names: str,
    min_value: N | None = None,
    max_value: N | None = None,
) -> N:
    raw = _env_raw(*names)
    if raw is None:
        return default
    label = names[0] if names else "<unknown>"
    try:
        value = convert(raw)
    except ValueError:
        value = None
    if value is None or value != value:
        logger.warning("Ignoring %s=%r (not a %s), using %s", label, raw, convert.__name__, default)
        return default
    bounded = value
    if min_value is not None:
        bounded = max(bounded, min_value)
    if max_value is not None:
        bounded = min(bounded, max_value)
    if bounded != value:
        logger.warning("%s=%s is outside [%s, %s]; using %s", label, value, min_value, max_value, bounded)
    return bounded


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    return _env_number(int, default, *names, min_value=min_value, max_value=max_value)


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    return _env_number(float, default, *names, min_value=min_value, max_value=max_value)


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


def _normalize_base_url(raw: str) -> str:
    url = raw.strip()
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/")


DEFAULT_COMFY_URL = "http://127.0.0.1:8188"

# Base URL of the ComfyUI server (http or https; ws/wss is derived from it)
COMFY_URL: str = _normalize_base_url(_env_raw("COMFY_RELAY_URL", "COMFYUI_URL", default=DEFAULT_COMFY_URL) or DEFAULT_COMFY_URL)

# Per-request transport timeouts, in seconds. There is no deadline over a whole run.
HTTP_TIMEOUT: float = _env_float(30.0, "COMFY_RELAY_HTTP_TIMEOUT", min_value=1.0, max_value=600.0)
UPLOAD_TIMEOUT: float = _env_float(60.0, "COMFY_RELAY_UPLOAD_TIMEOUT", min_value=1.0, max_value=600.0)

# Websocket ping interval; 0 disables heartbeats
WS_HEARTBEAT: int = _env_int(30, "COMFY_RELAY_WS_HEARTBEAT", min_value=0, max_value=3600)

UPLOAD_OVERWRITE: bool = _env_bool(True, "COMFY_RELAY_UPLOAD_OVERWRITE")
