"""
Shared fakes for the speech-relay tests.

FakeSynthesis impersonates the ElevenLabs streaming endpoint behind
httpx.MockTransport; local_lookup_handler serves signed artifact URLs
straight from a LocalObjectStore, standing in for the /v1/artifacts
round trip.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx

from speech_relay.core.config import Settings
from speech_relay.core.container import AppContainer
from speech_relay.core.metrics import SpeechMetrics
from speech_relay.storage.local import LocalObjectStore

AUDIO_CHUNKS = (b"ID3\x04\x00", b"\xff\xfb\x90\x00" * 8, b"\xff\xfb\x90\x64" * 8)
AUDIO = b"".join(AUDIO_CHUNKS)
SIGNING_SECRET = "test-signing-secret"
PUBLIC_BASE_URL = "http://relay.test"


class FakeSynthesis:
    """
    Callable httpx handler for POST /v1/text-to-speech/{voice}/stream.

    Args:
        chunks: Audio chunks streamed on success.
        status: Response status; non-200 returns an ElevenLabs-style error.
        exc: Raised instead of responding (connection failures).
        fail_after: Raise httpx.ReadError after this many chunks.
        delay: Seconds to sleep between chunks.
    """

    def __init__(
        self,
        chunks: Iterable[bytes] = AUDIO_CHUNKS,
        status: int = 200,
        exc: Optional[Exception] = None,
        fail_after: Optional[int] = None,
        delay: float = 0.0,
    ):
        self.chunks = list(chunks)
        self.status = status
        self.exc = exc
        self.fail_after = fail_after
        self.delay = delay
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.status != 200:
            return httpx.Response(
                self.status,
                json={"detail": {"status": "invalid_api_key", "message": "Invalid API key"}},
            )
        return httpx.Response(200, headers={"content-type": "audio/mpeg"}, content=self._stream())

    async def _stream(self):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise httpx.ReadError("connection reset by peer")
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk


def local_lookup_handler(store: LocalObjectStore, counter: Optional[List[str]] = None):
    """httpx handler that verifies signed URLs against `store` and serves the file."""

    def handler(request: httpx.Request) -> httpx.Response:
        if counter is not None:
            counter.append(str(request.url))
        name = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params
        try:
            expires = int(params.get("expires", "0"))
        except ValueError:
            return httpx.Response(403, json={"error": "Invalid or expired signature"})
        if not store.verify(name, expires, params.get("signature", "")):
            return httpx.Response(403, json={"error": "Invalid or expired signature"})
        path = store.path_for(name)
        if not path.is_file():
            return httpx.Response(404, json={"error": "Artifact not found"})
        return httpx.Response(200, headers={"content-type": "audio/mpeg"}, content=path.read_bytes())

    return handler


def make_store(base_dir) -> LocalObjectStore:
    return LocalObjectStore(
        base_dir=str(base_dir),
        bucket="audio",
        public_base_url=PUBLIC_BASE_URL,
        signing_secret=SIGNING_SECRET,
    )


def settings_for(base_dir, **sections: Dict[str, Any]) -> Settings:
    raw: Dict[str, Dict[str, Any]] = {
        "synthesis": {"api_key": "test-api-key", "base_url": "https://tts.test"},
        "storage": {
            "backend": "local",
            "base_dir": str(base_dir),
            "public_base_url": PUBLIC_BASE_URL,
            "signing_secret": SIGNING_SECRET,
        },
        "cache": {"lookup_timeout_s": 1.0},
        "background": {"drain_timeout_s": 5.0},
    }
    for section, values in sections.items():
        raw.setdefault(section, {}).update(values)
    return Settings(raw=raw)


def build_container(
    base_dir,
    fake_synthesis: FakeSynthesis,
    *,
    store=None,
    lookup=None,
    **sections: Dict[str, Any],
) -> AppContainer:
    """
    Container wired to fakes; call start() inside the event loop.

    Keyword sections (synthesis=, storage=, cache=, ...) are merged into
    the settings built by settings_for().
    """
    store = store if store is not None else make_store(base_dir)
    if lookup is None:
        lookup = local_lookup_handler(store)
    return AppContainer.build(
        settings_for(base_dir, **sections),
        store=store,
        synthesis_transport=httpx.MockTransport(fake_synthesis),
        lookup_transport=httpx.MockTransport(lookup),
        metrics=SpeechMetrics(),
    )


async def collect(stream) -> bytes:
    buf = bytearray()
    async for chunk in stream:
        buf.extend(chunk)
    return bytes(buf)


async def wait_for_uploads(container: AppContainer, timeout: float = 5.0) -> None:
    """Poll until no background upload is in flight."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while container.supervisor.in_flight:
        if loop.time() > deadline:
            raise AssertionError("background uploads did not finish")
        await asyncio.sleep(0.01)
