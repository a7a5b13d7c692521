"""
speech-relay API Routes.

Endpoints:
    GET /v1/speech              - Speak text, served from cache or synthesized
    GET /v1/artifacts/{name}    - Signed retrieval of locally stored artifacts
    GET /health                 - Health check for load balancers and probes
    GET /metrics                - Prometheus metrics

Request Flow (/v1/speech):
    1. Generate a request id and bind it to the logging context
    2. Hand text/voiceId to SpeechService.handle()
    3. Map a failed outcome to a status code and {"error": message}
    4. Otherwise stream the audio as audio/mpeg

Error Handling:
    Errors are JSON: {"error": "<human readable message>"}

    Status codes are mapped from ErrorCode:
        - INVALID_INPUT -> 400 Bad Request
        - SYNTHESIS_FAILED -> 500 Internal Server Error
        - anything else -> 500

    A failure after streaming has begun can only abort the connection;
    the status line has already been sent.

Example:
    curl "http://localhost:8000/v1/speech?text=Hello%20world&voiceId=JBFqnCBsd6RMkjVDRZzb" \\
        --output hello.mp3
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse

from speech_relay.api.dependencies import get_container, get_object_store, get_speech_service
from speech_relay.api.schemas import ErrorBody, HealthResponse
from speech_relay.core.container import AppContainer
from speech_relay.core.errors import ErrorCode, SpeechRelayError
from speech_relay.core.logging import error, get_logger, set_request_id, verbose
from speech_relay.services.speech_service import SpeechService, SynthesisRequest
from speech_relay.storage.base import ObjectStore
from speech_relay.storage.keys import AUDIO_CONTENT_TYPE, is_object_name
from speech_relay.storage.local import LocalObjectStore

router = APIRouter()

_LOG = get_logger("speech-relay.api")

_STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.SYNTHESIS_FAILED: 500,
}


def _error_response(err: SpeechRelayError, status_code: int, rid: Optional[str] = None) -> JSONResponse:
    headers = {"X-Request-Id": rid} if rid else None
    return JSONResponse(status_code=status_code, content=err.to_dict(), headers=headers)


@router.get(
    "/v1/speech",
    response_class=StreamingResponse,
    responses={
        200: {"content": {AUDIO_CONTENT_TYPE: {}}, "description": "mp3 audio stream"},
        400: {"model": ErrorBody},
        500: {"model": ErrorBody},
    },
)
async def speech(
    text: Optional[str] = Query(None, description="Text to speak"),
    voice_id: Optional[str] = Query(None, alias="voiceId", description="Voice identifier"),
    service: SpeechService = Depends(get_speech_service),
):
    """
    Speak `text` with `voiceId` (or the default voice).

    Returns:
        StreamingResponse: mp3 audio with headers:
            - X-Request-Id: Request identifier for tracing
            - X-Cache: "hit" when served from the artifact store, else "miss"
            - X-Cache-Key: Artifact digest
    """
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    try:
        outcome = await service.handle(SynthesisRequest(text=text, voice_id=voice_id))
    except Exception as e:
        # Log internally, never expose details
        error(_LOG, "speech_unhandled", error=str(e), error_type=type(e).__name__)
        return _error_response(SpeechRelayError("Internal server error"), 500, rid)

    if not outcome.ok:
        status_code = _STATUS_BY_CODE.get(outcome.error_code, 500)
        return _error_response(outcome.error, status_code, rid)

    headers = {
        "X-Request-Id": rid,
        "X-Cache": "hit" if outcome.source == "cache" else "miss",
        "X-Cache-Key": outcome.cache_key or "",
    }
    return StreamingResponse(outcome.stream, media_type=AUDIO_CONTENT_TYPE, headers=headers)


@router.get(
    "/v1/artifacts/{name}",
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
def artifact(
    name: str,
    expires: Optional[int] = Query(None),
    signature: Optional[str] = Query(None),
    store: ObjectStore = Depends(get_object_store),
):
    """
    Serve a locally stored artifact through a signed URL.

    Only available with the local storage backend; S3 URLs point at the
    bucket directly.
    """
    if not isinstance(store, LocalObjectStore) or not is_object_name(name):
        return _error_response(SpeechRelayError("Artifact not found"), 404)

    if expires is None or not signature or not store.verify(name, expires, signature):
        verbose(_LOG, "artifact_forbidden", key=name[:8])
        return _error_response(SpeechRelayError("Invalid or expired signature"), 403)

    path = store.path_for(name)
    if not path.is_file():
        return _error_response(SpeechRelayError("Artifact not found"), 404)

    return FileResponse(path, media_type=AUDIO_CONTENT_TYPE)


@router.get("/health", response_model=HealthResponse)
def health(service: SpeechService = Depends(get_speech_service)):
    """Health check for load balancers and orchestration."""
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics(container: AppContainer = Depends(get_container)):
    """Prometheus metrics in text exposition format."""
    content, content_type = container.metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
