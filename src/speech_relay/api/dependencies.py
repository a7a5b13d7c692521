"""
FastAPI Dependency Injection Providers.

The AppContainer is built in the application lifespan and stored on
app.state; route handlers receive its parts through Depends():

    @router.get("/v1/speech")
    async def speech(service: SpeechService = Depends(get_speech_service)):
        ...

get_settings() resolves the settings file from SPEECH_RELAY_SETTINGS
(default config/settings.yaml); a missing file means all defaults.
"""
from __future__ import annotations

import os
from functools import lru_cache

from fastapi import Request

from speech_relay.core.config import Settings, load_settings
from speech_relay.core.container import AppContainer
from speech_relay.services.speech_service import SpeechService
from speech_relay.storage.base import ObjectStore


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache application settings."""
    path = os.getenv("SPEECH_RELAY_SETTINGS", "config/settings.yaml")
    return load_settings(path, missing_ok=True)


def get_container(request: Request) -> AppContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("application container not initialised")
    return container


def get_speech_service(request: Request) -> SpeechService:
    return get_container(request).service


def get_object_store(request: Request) -> ObjectStore:
    return get_container(request).store
