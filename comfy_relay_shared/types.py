"""
Shared types, enums, and constants.
"""
from enum import Enum
from typing import Final, Literal

# Folder classes the server files images under
FolderType = Literal["input", "output", "temp"]

# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Graph resolution
    NOT_FOUND = "NOT_FOUND"
    LINKED_INPUT = "LINKED_INPUT"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    UNKNOWN_PARAMETER = "UNKNOWN_PARAMETER"

    # Transport
    TRANSPORT = "TRANSPORT"
    HTTP_STATUS = "HTTP_STATUS"
    CONNECTION_CLOSED = "CONNECTION_CLOSED"

    # Protocol
    PROTOCOL = "PROTOCOL"
    SUBMIT_REJECTED = "SUBMIT_REJECTED"

    # Server-asserted
    INTERRUPTED = "INTERRUPTED"
    EXECUTION_ERROR = "EXECUTION_ERROR"

# Node class types whose outputs are images written by the server
IMAGE_OUTPUT_CLASS_TYPES: Final[frozenset[str]] = frozenset(
    {"SaveImage", "PreviewImage", "SaveAnimatedWEBP"}
)

# Content types accepted by the upload endpoint, keyed by Pillow format name
UPLOAD_CONTENT_TYPES: Final[dict[str, tuple[str, str]]] = {
    "PNG": ("image/png", ".png"),
    "JPEG": ("image/jpeg", ".jpg"),
    "WEBP": ("image/webp", ".webp"),
    "GIF": ("image/gif", ".gif"),
    "BMP": ("image/bmp", ".bmp"),
}
