"""
Speech Delivery Service.

SpeechService.handle() turns a (text, voice) request into a stream of
mp3 bytes, serving from the artifact store when it can and falling back
to the synthesis provider otherwise:

    Received
       │ validate text / voice   ── invalid ──> Err(INVALID_INPUT)
       ▼
    CacheCheck: signed URL + GET
       ├── 2xx with body ──> Ok(stream, source="cache")
       ▼ (absent, non-2xx, error, timeout)
    Synthesize: open upstream stream, wait for first chunk
       ├── SynthesisError ──> Err(SYNTHESIS_FAILED)
       ▼
    StreamAndPersist: tee upstream
       ├── branch A ──> Ok(stream, source="synthesis")
       └── branch B ──> background upload of "<key>.mp3"

The outcome is returned as soon as audio is available; the upload is
never awaited by the request. Lookup and upload failures are logged
and counted but never reach the caller.
"""
from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from speech_relay.core.config import ServiceConfig
from speech_relay.core.errors import (
    CacheLookupError,
    PersistenceError,
    SpeechRelayError,
    SynthesisError,
    ValidationError,
)
from speech_relay.core.logging import fail, get_logger, info, success, verbose, warn
from speech_relay.core.metrics import SpeechMetrics, metrics as default_metrics
from speech_relay.services.validators import validate_text, validate_voice_id
from speech_relay.storage.base import ObjectStore
from speech_relay.storage.keys import AUDIO_CONTENT_TYPE, make_key, object_name
from speech_relay.streaming.background import BackgroundSupervisor
from speech_relay.streaming.tee import StreamTee, first_chunk, prepend
from speech_relay.synthesis.elevenlabs import ElevenLabsClient
from speech_relay.utils.timeit import timeit

_LOG = get_logger("speech-relay.service")

SOURCE_CACHE = "cache"
SOURCE_SYNTHESIS = "synthesis"


@dataclass(frozen=True)
class SynthesisRequest:
    """
    A speech request.

    Attributes:
        text: Text to speak (required, non-blank).
        voice_id: Voice identifier; None or "" selects the default voice.
    """
    text: Optional[str]
    voice_id: Optional[str] = None


@dataclass
class SpeechOutcome:
    """
    Tagged result of SpeechService.handle().

    ok=True carries the audio `stream` and its `source` ("cache" or
    "synthesis"). ok=False carries the `error` itself plus its
    `error_code` and `message`; the message is safe to return to the caller.
    """
    ok: bool
    stream: Optional[AsyncIterator[bytes]] = None
    source: Optional[str] = None
    cache_key: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    error: Optional[SpeechRelayError] = None

    @classmethod
    def success(cls, stream: AsyncIterator[bytes], source: str, cache_key: str) -> "SpeechOutcome":
        return cls(ok=True, stream=stream, source=source, cache_key=cache_key)

    @classmethod
    def failure(cls, error: SpeechRelayError, cache_key: Optional[str] = None) -> "SpeechOutcome":
        return cls(ok=False, cache_key=cache_key, error_code=error.code, message=error.message, error=error)


class SpeechService:
    """
    Cache-check-then-populate orchestration for speech requests.

    All collaborators are injected; the service owns none of their
    lifecycles (see AppContainer).

    Args:
        config: Validated service configuration.
        store: Artifact store (local or S3).
        synthesizer: Started ElevenLabsClient.
        lookup_client: HTTP client used to GET signed artifact URLs.
        supervisor: Owner of background uploads.
        metrics: Metrics sink (defaults to the process-wide collector).
    """

    def __init__(
        self,
        config: ServiceConfig,
        store: ObjectStore,
        synthesizer: ElevenLabsClient,
        lookup_client: httpx.AsyncClient,
        supervisor: BackgroundSupervisor,
        metrics: Optional[SpeechMetrics] = None,
    ):
        self._config = config
        self._store = store
        self._synthesizer = synthesizer
        self._lookup_client = lookup_client
        self._supervisor = supervisor
        self._metrics = metrics or default_metrics

        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._lookup_errors = 0
        self._synthesis_failures = 0

    def _preview(self, text: str) -> str:
        limit = self._config.logging.text_preview_chars
        if limit <= 0:
            return ""
        return text if len(text) <= limit else text[:limit] + "..."

    # ─────────────────────────────────────────────────────────────────────
    # Request handling
    # ─────────────────────────────────────────────────────────────────────

    async def handle(self, request: SynthesisRequest) -> SpeechOutcome:
        """
        Serve one speech request.

        Never raises for expected failures; inspect the returned outcome.
        """
        with timeit("speech_request") as t:
            try:
                text = validate_text(request.text, self._config.synthesis.max_text_chars)
                voice_id = validate_voice_id(request.voice_id, self._config.synthesis.default_voice_id)
            except ValidationError as e:
                info(_LOG, "request_rejected", reason=e.message)
                self._metrics.record_request("none", "error")
                return SpeechOutcome.failure(e)

            key = make_key(text, voice_id)
            name = object_name(key)
            info(_LOG, "speech_request", key=key[:8], voice=voice_id, chars=len(text), text=self._preview(text))

            cached = await self._lookup(name)
            if cached is not None:
                with self._stats_lock:
                    self._hits += 1
                self._metrics.record_cache_lookup("hit")
                self._metrics.observe_first_byte(SOURCE_CACHE, t.elapsed())
                info(_LOG, "cache_hit", key=key[:8], cache="hit", seconds=round(t.elapsed(), 4))
                return SpeechOutcome.success(self._relay(cached, SOURCE_CACHE, key), SOURCE_CACHE, key)

            with self._stats_lock:
                self._misses += 1
            info(_LOG, "cache_miss", key=key[:8], cache="miss")

            try:
                upstream = await self._synthesizer.synthesize_stream(
                    voice_id,
                    text,
                    output_format=self._config.synthesis.output_format,
                    model_id=self._config.synthesis.model_id,
                )
                first = await first_chunk(upstream)
                if first is None:
                    await upstream.aclose()
                    raise SynthesisError("Speech synthesis returned no audio")
            except SynthesisError as e:
                with self._stats_lock:
                    self._synthesis_failures += 1
                fail(_LOG, "synthesis_failed", key=key[:8], error=e.message, details=e.details)
                self._metrics.record_request(SOURCE_SYNTHESIS, "error")
                return SpeechOutcome.failure(e, cache_key=key)

            self._metrics.observe_first_byte(SOURCE_SYNTHESIS, t.elapsed())
            verbose(_LOG, "synthesis_first_chunk", key=key[:8], bytes=len(first), seconds=round(t.elapsed(), 4))

            tee = StreamTee(prepend(first, upstream), branches=2)
            response_branch, upload_branch = tee.start()
            try:
                self._supervisor.spawn(self._persist(name, upload_branch), name=f"persist:{key[:8]}")
            except RuntimeError as e:
                # Shutting down: serve the audio, skip caching it
                warn(_LOG, "upload_skipped", key=key[:8], error=str(e))
                await upload_branch.aclose()

            return SpeechOutcome.success(
                self._relay(response_branch, SOURCE_SYNTHESIS, key),
                SOURCE_SYNTHESIS,
                key,
            )

    async def _lookup(self, name: str) -> Optional[AsyncIterator[bytes]]:
        """
        Return the cached artifact body, or None on any kind of miss.

        The GET must answer 2xx with a non-empty body within the lookup
        timeout. Everything else counts as a miss.
        """
        cache_cfg = self._config.cache
        try:
            return await asyncio.wait_for(
                self._open_cached(name, cache_cfg.signed_url_ttl_seconds),
                timeout=cache_cfg.lookup_timeout_s,
            )
        except asyncio.TimeoutError:
            self._lookup_failed(name, "timeout", "TimeoutError")
        except CacheLookupError as e:
            self._lookup_failed(name, e.message, type(e).__name__)
        except httpx.HTTPError as e:
            self._lookup_failed(name, str(e).strip() or type(e).__name__, type(e).__name__)
        return None

    def _lookup_failed(self, name: str, reason: str, error_type: str) -> None:
        with self._stats_lock:
            self._lookup_errors += 1
        self._metrics.record_cache_lookup("error")
        warn(_LOG, "cache_lookup_failed", key=name[:8], error=reason, error_type=error_type)

    async def _open_cached(self, name: str, ttl_seconds: int) -> Optional[AsyncIterator[bytes]]:
        url = await self._store.get_signed_url(name, ttl_seconds)
        if url is None:
            self._metrics.record_cache_lookup("miss")
            return None

        request = self._lookup_client.build_request("GET", url)
        resp = await self._lookup_client.send(request, stream=True)
        try:
            if not resp.is_success:
                verbose(_LOG, "cache_fetch_rejected", key=name[:8], status=resp.status_code)
                await resp.aclose()
                self._metrics.record_cache_lookup("miss")
                return None

            body = self._iter_cached(resp)
            first = await first_chunk(body)
        except BaseException:
            await resp.aclose()
            raise

        if first is None:
            verbose(_LOG, "cache_fetch_empty", key=name[:8])
            self._metrics.record_cache_lookup("miss")
            return None
        return prepend(first, body)

    @staticmethod
    async def _iter_cached(resp: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.aiter_bytes():
                if chunk:
                    yield chunk
        finally:
            await resp.aclose()

    # ─────────────────────────────────────────────────────────────────────
    # Streaming and persistence
    # ─────────────────────────────────────────────────────────────────────

    async def _relay(self, stream: AsyncIterator[bytes], source: str, key: str) -> AsyncIterator[bytes]:
        """Yield audio to the caller, recording the outcome when the stream ends."""
        sent = 0
        try:
            async for chunk in stream:
                sent += len(chunk)
                yield chunk
        except (SynthesisError, httpx.HTTPError) as e:
            fail(_LOG, "stream_interrupted", key=key[:8], source=source, bytes=sent, error=str(e))
            self._metrics.record_request(source, "error")
            self._metrics.record_audio_bytes(source, sent)
            raise
        except (GeneratorExit, asyncio.CancelledError):
            info(_LOG, "client_disconnected", key=key[:8], source=source, bytes=sent)
            self._metrics.record_request(source, "disconnected")
            self._metrics.record_audio_bytes(source, sent)
            raise
        else:
            success(_LOG, "stream_complete", key=key[:8], source=source, bytes=sent)
            self._metrics.record_request(source, "success")
            self._metrics.record_audio_bytes(source, sent)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _persist(self, name: str, chunks: AsyncIterator[bytes]) -> int:
        """Upload the complete stream; a truncated stream is never stored."""
        try:
            with timeit("upload") as t:
                written = await self._store.put(name, chunks, AUDIO_CONTENT_TYPE)
        except PersistenceError as e:
            self._metrics.record_upload("error")
            warn(_LOG, "upload_failed", key=name[:8], error=e.message, details=e.details)
            raise
        except (SynthesisError, httpx.HTTPError) as e:
            self._metrics.record_upload("aborted")
            warn(_LOG, "upload_aborted", key=name[:8], error=str(e))
            raise PersistenceError(
                "Upload aborted: synthesis stream failed",
                details={"name": name},
            ) from e
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        self._metrics.record_upload("success")
        success(_LOG, "upload_saved", key=name[:8], bytes=written, seconds=round(t.seconds, 4))
        return written

    # ─────────────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────────────

    def cache_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "lookup_errors": self._lookup_errors,
                "synthesis_failures": self._synthesis_failures,
            }

    def get_health_info(self) -> Dict[str, Any]:
        """Service status, configuration summary and counters."""
        synth = self._config.synthesis
        return {
            "ok": True,
            "synthesis": {
                "default_voice_id": synth.default_voice_id,
                "model_id": synth.model_id,
                "output_format": synth.output_format,
                **self._synthesizer.info(),
            },
            "storage": self._store.info(),
            "cache": {
                "signed_url_ttl_seconds": self._config.cache.signed_url_ttl_seconds,
                **self.cache_stats(),
            },
            "background": self._supervisor.stats(),
        }
