"""Lightweight timing utilities for performance debugging."""
import time
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Return current time in milliseconds using high-resolution timer."""
    return time.perf_counter() * 1000


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log elapsed time since start_ms and return current time.

    Example:
        t = now_ms()
        t = log_elapsed(t, "load_candidates")
        t = log_elapsed(t, "rank")
    """
    elapsed = now_ms() - start_ms
    if log_fn:
        log_fn(f"{label}: {elapsed:.2f}ms")
    else:
        logger.debug(f"{label}: {elapsed:.2f}ms")
    return now_ms()
