"""
Abstract object store interface.

The relay only needs two operations from a store:

    put(name, chunks, content_type) -> bytes written
    get_signed_url(name, ttl_seconds) -> URL or None

get_signed_url returns None when the object does not exist, and raises
CacheLookupError when the store cannot answer. put raises
PersistenceError. Both backends (local filesystem, S3) follow that
contract so the service never sees backend-specific exceptions.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, Dict, Optional


class ObjectStore(ABC):
    """Base class for artifact stores."""

    name: str = "base"

    @abstractmethod
    async def put(self, name: str, chunks: AsyncIterable[bytes], content_type: str) -> int:
        """
        Store the complete byte stream under `name`.

        The object only becomes visible once the whole stream has been
        consumed. If iterating `chunks` raises, nothing is written and the
        exception propagates.

        Returns:
            Number of bytes written.
        """

    @abstractmethod
    async def get_signed_url(self, name: str, ttl_seconds: int) -> Optional[str]:
        """
        Return a time-limited retrieval URL for `name`, or None if absent.

        Raises:
            CacheLookupError: If the store cannot be queried.
        """

    async def close(self) -> None:
        """Release resources held by the store."""
        return None

    def info(self) -> Dict[str, Any]:
        """Describe the store for the health endpoint."""
        return {"backend": self.name}


async def read_all(chunks: AsyncIterable[bytes]) -> bytes:
    """Drain an async byte stream into a single bytes object."""
    buf = bytearray()
    async for chunk in chunks:
        buf.extend(chunk)
    return bytes(buf)
