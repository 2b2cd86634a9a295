"""
Execution feature: update decoding, history records and output tracking.
"""
from .history import HistoryPrompt, HistoryRecord, parse_history, parse_history_entry
from .service import ComfyRelay
from .tracker import ExecutionTracker, OutputImage, TrackerState
from .updates import (
    AnyUpdate,
    Executed,
    Executing,
    ExecutionCached,
    ExecutionError,
    ExecutionInterrupted,
    ExecutionStart,
    ExecutionSuccess,
    ImageRef,
    Preview,
    Progress,
    Status,
    UnknownUpdate,
    Update,
    parse_message,
    parse_update,
)

__all__ = [
    "ComfyRelay",
    "ExecutionTracker",
    "OutputImage",
    "TrackerState",
    "HistoryPrompt",
    "HistoryRecord",
    "parse_history",
    "parse_history_entry",
    "AnyUpdate",
    "Update",
    "Status",
    "Progress",
    "ExecutionStart",
    "Executing",
    "Executed",
    "ExecutionCached",
    "ExecutionSuccess",
    "ExecutionInterrupted",
    "ExecutionError",
    "UnknownUpdate",
    "Preview",
    "ImageRef",
    "parse_update",
    "parse_message",
]
