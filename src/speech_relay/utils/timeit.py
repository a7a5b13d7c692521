"""
Timing helpers.

    with timeit("cache_lookup") as t:
        url = await store.get_signed_url(name, 60)
    print(f"Took {t.timing.seconds:.3f}s")

Uses time.perf_counter() for sub-millisecond precision. Works across
awaits inside the block since it only measures wall-clock time.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed (e.g., "cache_lookup").
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The result is available as `timing` after the block exits, and
    `elapsed()` gives the running time while still inside it.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    def elapsed(self) -> float:
        """Seconds since the block was entered."""
        assert self._t0 is not None
        return perf_counter() - self._t0

    @property
    def seconds(self) -> float:
        """Final duration, or -1.0 if the block has not exited yet."""
        return self.timing.seconds if self.timing else -1.0
