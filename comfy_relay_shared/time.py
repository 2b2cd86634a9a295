"""
Time utilities for performance measurement.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager


def ms() -> int:
    """Get current timestamp in milliseconds (int)."""
    return int(time.time() * 1000)

@contextmanager
def timer(label: str, logger: logging.Logger) -> Iterator[None]:
    """
    Context manager for timing operations at debug level.

    Usage:
        with timer("fetch 3 images for node 9", logger):
            await fetch_all(images)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("%s took %.3fs", label, elapsed)
