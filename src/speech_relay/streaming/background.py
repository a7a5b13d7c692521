"""
Supervised background tasks.

Fire-and-forget work (artifact uploads) must outlive the request that
started it, must not be garbage-collected mid-flight, and must have its
outcome logged since nobody awaits it. BackgroundSupervisor covers all
three:

    supervisor = BackgroundSupervisor()
    supervisor.spawn(upload(...), name="persist:3f1c0a2b")
    ...
    pending = await supervisor.drain(timeout=30.0)   # at shutdown

Tasks inherit the spawning context, so log lines emitted from them carry
the originating request id.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Coroutine, Dict, Optional, Set

from speech_relay.core.logging import fail, get_logger, info, verbose, warn
from speech_relay.core.metrics import SpeechMetrics, metrics as default_metrics

_LOG = get_logger("speech-relay.background")


class BackgroundSupervisor:
    """
    Owns detached tasks until they finish.

    Each task runs at most once; failures are logged and counted, never
    retried and never propagated.
    """

    def __init__(self, metrics: Optional[SpeechMetrics] = None):
        self._tasks: Set[asyncio.Task] = set()
        self._metrics = metrics or default_metrics
        self._closed = False

        self._stats_lock = threading.Lock()
        self._started = 0
        self._succeeded = 0
        self._failed = 0
        self._cancelled = 0

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str = "background") -> asyncio.Task:
        """
        Schedule `coro` as a supervised task and return it.

        Raises:
            RuntimeError: If the supervisor has been drained.
        """
        if self._closed:
            coro.close()
            raise RuntimeError("background supervisor is closed")

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        with self._stats_lock:
            self._started += 1
        self._metrics.set_background_in_flight(len(self._tasks))
        task.add_done_callback(self._on_done)
        verbose(_LOG, "background_spawned", task=name, in_flight=len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._metrics.set_background_in_flight(len(self._tasks))
        name = task.get_name()

        if task.cancelled():
            with self._stats_lock:
                self._cancelled += 1
            warn(_LOG, "background_cancelled", task=name)
            return

        exc = task.exception()
        if exc is not None:
            with self._stats_lock:
                self._failed += 1
            fail(_LOG, "background_failed", task=name, error=str(exc), error_type=type(exc).__name__)
            return

        with self._stats_lock:
            self._succeeded += 1
        verbose(_LOG, "background_done", task=name)

    async def drain(self, timeout: float) -> int:
        """
        Wait up to `timeout` seconds for in-flight tasks, then cancel the rest.

        No new tasks are accepted afterwards.

        Returns:
            Number of tasks that had to be cancelled.
        """
        self._closed = True
        if not self._tasks:
            return 0

        pending_before = len(self._tasks)
        info(_LOG, "background_draining", in_flight=pending_before, timeout_s=timeout)
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            warn(_LOG, "background_drain_timeout", cancelled=len(pending))
        else:
            info(_LOG, "background_drained", completed=len(done))
        return len(pending)

    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return {
                "in_flight": len(self._tasks),
                "started": self._started,
                "succeeded": self._succeeded,
                "failed": self._failed,
                "cancelled": self._cancelled,
            }
