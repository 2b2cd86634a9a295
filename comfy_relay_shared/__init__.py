"""Shared utilities for ComfyRelay."""
from .errors import (
    ConnectionClosedError,
    ExecutionFailedError,
    ExecutionInterruptedError,
    HttpStatusError,
    LinkedInputError,
    ProtocolError,
    RelayError,
    ResolutionError,
    SubmitError,
    TransportError,
    TypeMismatchError,
    UnknownParameterError,
)
from .log import get_logger, log_structured, log_success, prompt_id_var
from .result import Result
from .time import ms, timer
from .types import IMAGE_OUTPUT_CLASS_TYPES, UPLOAD_CONTENT_TYPES, ErrorCode, FolderType

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "prompt_id_var",
    "ms",
    "timer",
    "ErrorCode",
    "FolderType",
    "IMAGE_OUTPUT_CLASS_TYPES",
    "UPLOAD_CONTENT_TYPES",
    "RelayError",
    "ResolutionError",
    "LinkedInputError",
    "TypeMismatchError",
    "UnknownParameterError",
    "TransportError",
    "HttpStatusError",
    "ConnectionClosedError",
    "ProtocolError",
    "SubmitError",
    "ExecutionInterruptedError",
    "ExecutionFailedError",
]
