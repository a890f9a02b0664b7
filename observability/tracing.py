"""Simple span helper for recording pipeline stage timings."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from .logger import log_event


@contextmanager
def span(session_id: str, name: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log_event("span", session_id, node=name, ms=elapsed_ms)


__all__ = ["span"]
