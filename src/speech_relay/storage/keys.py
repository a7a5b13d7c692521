"""
Cache key generation and artifact naming.

A cache key is the SHA-256 hex digest of the (text, voice_id) pair. The
pair is serialized as a compact JSON array before hashing, so the
boundary between the two fields is unambiguous: ("ab", "c") and
("a", "bc") never share a pre-image, which plain concatenation would
allow.

Each key maps to exactly one object named "<digest>.mp3" in a flat
namespace.

Usage:
    from speech_relay.storage.keys import make_key, object_name

    key = make_key("Hello world", "JBFqnCBsd6RMkjVDRZzb")
    name = object_name(key)     # "3f1c....mp3"
"""
from __future__ import annotations

import hashlib
import json
import re

AUDIO_CONTENT_TYPE = "audio/mpeg"
ARTIFACT_SUFFIX = ".mp3"

_OBJECT_NAME_RE = re.compile(r"^[0-9a-f]{64}\.mp3$")


def make_key(text: str, voice_id: str) -> str:
    """
    Compute the deterministic cache key for a synthesis request.

    Args:
        text: Text to synthesize, exactly as it will be sent upstream.
        voice_id: Voice identifier (already resolved to the default if
            the caller omitted it).

    Returns:
        64-character lowercase hex string.
    """
    payload = json.dumps([text, voice_id], ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def object_name(key: str) -> str:
    return f"{key}{ARTIFACT_SUFFIX}"


def is_object_name(name: str) -> bool:
    """True if `name` looks like an artifact name this service produces."""
    return bool(_OBJECT_NAME_RE.match(name))
