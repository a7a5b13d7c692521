"""Async client for the ElevenLabs streaming text-to-speech API."""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict

import httpx

from speech_relay.core.config import Defaults
from speech_relay.core.errors import SynthesisError
from speech_relay.core.logging import debug, get_logger, verbose, warn

_LOG = get_logger("speech-relay.synthesis")

_STREAM_PATH = "/v1/text-to-speech/{voice_id}/stream"


class ElevenLabsClient:
    """
    Streaming wrapper around `POST /v1/text-to-speech/{voice_id}/stream`.

    synthesize_stream() is awaited to open the upstream response, so any
    failure before the first byte (unreachable host, 4xx/5xx) raises
    SynthesisError there. The returned iterator then yields raw audio
    chunks; a failure while reading also surfaces as SynthesisError.
    """

    def __init__(
        self,
        base_url: str = Defaults.SYNTHESIS_BASE_URL,
        api_key: str = "",
        timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S,
        connect_timeout_s: float = Defaults.SYNTHESIS_CONNECT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout_s, connect=connect_timeout_s)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def synthesize_stream(
        self,
        voice_id: str,
        text: str,
        *,
        output_format: str = Defaults.SYNTHESIS_OUTPUT_FORMAT,
        model_id: str = Defaults.SYNTHESIS_MODEL_ID,
    ) -> AsyncIterator[bytes]:
        """
        Start a streamed synthesis and return an iterator over audio chunks.

        Raises:
            SynthesisError: If the API key is missing, the service is
                unreachable, or it answers with a non-200 status.
        """
        if not self._api_key:
            raise SynthesisError("Speech synthesis is not configured")

        client = self._require_client()
        request = client.build_request(
            "POST",
            _STREAM_PATH.format(voice_id=voice_id),
            params={"output_format": output_format},
            headers={"xi-api-key": self._api_key, "Accept": "audio/mpeg"},
            json={"text": text, "model_id": model_id},
        )
        debug(_LOG, "synthesis_request", voice=voice_id, model=model_id, format=output_format)

        try:
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            msg = str(e).strip() or e.__class__.__name__
            raise SynthesisError(
                "Speech synthesis service unreachable",
                details={"error": msg, "error_type": e.__class__.__name__},
            ) from e

        if resp.status_code != 200:
            try:
                await resp.aread()
                detail = self._extract_error(resp)
            finally:
                await resp.aclose()
            warn(_LOG, "synthesis_rejected", status=resp.status_code, detail=detail)
            raise SynthesisError(
                f"Speech synthesis failed with status {resp.status_code}",
                details={"status": resp.status_code, "detail": detail},
            )

        verbose(_LOG, "synthesis_stream_open", voice=voice_id)
        return self._iter_audio(resp)

    @staticmethod
    async def _iter_audio(resp: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.HTTPError as e:
            msg = str(e).strip() or e.__class__.__name__
            raise SynthesisError(
                "Speech synthesis stream interrupted",
                details={"error": msg, "error_type": e.__class__.__name__},
            ) from e
        finally:
            await resp.aclose()

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("synthesis client not started")
        return self._client

    @staticmethod
    def _extract_error(resp: httpx.Response) -> str:
        # ElevenLabs errors look like {"detail": {"status": "...", "message": "..."}}
        try:
            data = resp.json()
            if isinstance(data, dict):
                for key in ("detail", "error"):
                    val = data.get(key)
                    if isinstance(val, str) and val:
                        return val
                    if isinstance(val, dict):
                        message = val.get("message") or val.get("status")
                        if isinstance(message, str) and message:
                            return message
        except ValueError:
            pass
        text = resp.text.strip()
        return text[:160] if text else "unknown error"

    def info(self) -> Dict[str, Any]:
        return {"base_url": self._base_url, "configured": self.configured}
