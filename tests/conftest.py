"""Shared pytest fixtures."""
from __future__ import annotations

import pytest

from helpers import FakeSynthesis, make_store

_ENV_VARS = (
    "ELEVENLABS_API_KEY",
    "ELEVENLABS_BASE_URL",
    "SPEECH_RELAY_STORAGE_BACKEND",
    "SPEECH_RELAY_S3_BUCKET",
    "SPEECH_RELAY_S3_ENDPOINT_URL",
    "SPEECH_RELAY_PUBLIC_BASE_URL",
    "SPEECH_RELAY_SIGNING_SECRET",
    "SPEECH_RELAY_HOST",
    "SPEECH_RELAY_PORT",
    "AWS_REGION",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from the developer's environment."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def synthesis():
    """Fake synthesis endpoint returning the default audio chunks."""
    return FakeSynthesis()


@pytest.fixture
def store(tmp_path):
    """Local object store rooted in a temp directory."""
    return make_store(tmp_path)
