"""
Logging utilities with consistent formatting and emoji indicators.
"""
import json
import logging
import os
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

# Emoji indicators for log levels
EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

# Global logger prefix
PREFIX: Final[str] = "🎨 ComfyRelay"

# Correlation id of the submission currently being tracked
prompt_id_var: ContextVar[str] = ContextVar("prompt_id", default="")


class CorrelationFilter(logging.Filter):
    """Inject `prompt_id` from `prompt_id_var` unless the record already carries one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "prompt_id", ""):
            record.prompt_id = prompt_id_var.get("")
        return True


class EmojiFormatter(logging.Formatter):
    """Custom formatter that adds emoji based on log level."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "🎨")

        # Format: 🎨 ComfyRelay [✅] module [prompt-id]: message
        pid = str(getattr(record, "prompt_id", "") or "").strip()
        pid_part = f" [{pid}]" if pid else ""
        log_format = f"{PREFIX} [{emoji}] %(name)s{pid_part}: %(message)s"
        formatter = logging.Formatter(log_format)
        return formatter.format(record)


def _default_level() -> int:
    raw = (os.getenv("COMFY_RELAY_LOG_LEVEL") or "").strip().upper()
    if not raw:
        return logging.INFO
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a logger with the ComfyRelay prefix and emoji indicators.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance with emoji formatting
    """
    if name.startswith("__main__"):
        name = "main"
    elif name.startswith("comfy_relay."):
        name = name[len("comfy_relay."):]

    logger = logging.getLogger(f"comfy_relay.{name}")
    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    if level is not None:
        logger.setLevel(level)
    elif not logger.handlers:
        logger.setLevel(_default_level())

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(EmojiFormatter())
        logger.addHandler(handler)

        # Prevent propagation to avoid duplicate logs
        logger.propagate = False

    return logger

# Add SUCCESS level
SUCCESS_LEVEL: Final[int] = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

def log_success(logger: logging.Logger, message: str) -> None:
    """Log a success message with ✅ emoji."""
    logger.log(SUCCESS_LEVEL, message)

def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "prompt_id": prompt_id_var.get(""),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
