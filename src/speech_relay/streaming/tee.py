"""
Broadcast one async byte stream to several consumers.

    tee = StreamTee(upstream, branches=2)
    response_branch, upload_branch = tee.start()

A single pump task reads the upstream source and copies every chunk into
a per-branch queue. Each branch is an async iterator over its own queue,
so consumers progress independently:

    - a slow consumer never delays a fast one (queues are unbounded)
    - closing a branch drops its queue and stops delivery to it only
    - the pump keeps running while at least one branch is open
    - an upstream exception is re-raised in every open branch

The pump runs in its own task, so cancelling a consumer (a client
disconnecting mid-response) never cancels the upstream read.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Tuple

from speech_relay.core.logging import debug, get_logger

_LOG = get_logger("speech-relay.tee")


class _End:
    """Marks normal end of stream."""


_END = _End()


class _Failure:
    """Carries an upstream exception to a branch."""

    def __init__(self, exc: BaseException):
        self.exc = exc


class TeeBranch:
    """One consumer's view of a teed stream."""

    def __init__(self, tee: "StreamTee"):
        self._tee = tee
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, item) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def __aiter__(self) -> "TeeBranch":
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._closed = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._closed = True
            raise item.exc
        return item

    async def aclose(self) -> None:
        """Stop receiving chunks. Other branches are unaffected."""
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._tee._on_branch_closed()


class StreamTee:
    """
    Split `source` into `branches` independent async iterators.

    Call start() from inside a running event loop; it creates the pump
    task and returns the branches.
    """

    def __init__(self, source: AsyncIterator[bytes], branches: int = 2):
        if branches < 1:
            raise ValueError("branches must be >= 1")
        self._source = source
        self._branches: List[TeeBranch] = [TeeBranch(self) for _ in range(branches)]
        self._task: Optional[asyncio.Task] = None
        self._chunks = 0
        self._bytes = 0

    @property
    def branches(self) -> Tuple[TeeBranch, ...]:
        return tuple(self._branches)

    @property
    def bytes_read(self) -> int:
        return self._bytes

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> Tuple[TeeBranch, ...]:
        if self._task is None:
            self._task = asyncio.create_task(self._pump(), name="stream-tee")
        return self.branches

    def _open_branches(self) -> List[TeeBranch]:
        return [b for b in self._branches if not b.closed]

    def _broadcast(self, item) -> None:
        for branch in self._branches:
            branch._deliver(item)

    def _on_branch_closed(self) -> None:
        if self._task is not None and not self._task.done() and not self._open_branches():
            self._task.cancel()

    async def _pump(self) -> None:
        try:
            async for chunk in self._source:
                if not self._open_branches():
                    break
                self._chunks += 1
                self._bytes += len(chunk)
                self._broadcast(chunk)
        except asyncio.CancelledError:
            self._broadcast(_Failure(asyncio.CancelledError()))
            raise
        except Exception as e:
            debug(_LOG, "tee_source_failed", error=str(e), chunks=self._chunks)
            self._broadcast(_Failure(e))
        else:
            self._broadcast(_END)
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()
            debug(_LOG, "tee_finished", chunks=self._chunks, bytes=self._bytes)


async def first_chunk(stream: AsyncIterator[bytes]) -> Optional[bytes]:
    """Await the first chunk of `stream`, or None if it is empty."""
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Yield `first` and then everything from `rest`."""
    try:
        yield first
        async for chunk in rest:
            yield chunk
    finally:
        aclose = getattr(rest, "aclose", None)
        if aclose is not None:
            await aclose()
