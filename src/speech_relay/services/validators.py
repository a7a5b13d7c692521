"""
Input validation for speech requests.

Validation runs before the cache lookup, so a rejected request never
touches the store or the synthesis provider.

Validation Rules:
    - Text: Required, not blank, at most synthesis.max_text_chars
      characters (default 5000). Passed through unmodified otherwise
      (the cache key covers the exact text).
    - Voice id: Optional; letters, digits, "_" and "-", max 64 characters.
      The id is interpolated into the upstream URL path, hence the
      character restriction.
"""
from __future__ import annotations

import re
from typing import Optional

from speech_relay.core.config import Defaults
from speech_relay.core.errors import ValidationError
from speech_relay.core.logging import debug, get_logger

_LOG = get_logger("speech-relay.validators")

MAX_TEXT_CHARS = Defaults.SYNTHESIS_MAX_TEXT_CHARS
TEXT_REQUIRED_MESSAGE = "Text parameter is required"

_VOICE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_text(text: Optional[str], max_length: int = MAX_TEXT_CHARS) -> str:
    """
    Validate text input.

    Raises:
        ValidationError: If the text is missing, blank or too long.
    """
    if text is None or not text.strip():
        raise ValidationError(TEXT_REQUIRED_MESSAGE, details={"field": "text"})

    if len(text) > max_length:
        raise ValidationError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            details={"field": "text", "length": len(text)},
        )

    return text


def validate_voice_id(voice_id: Optional[str], default: str) -> str:
    """
    Resolve and validate the voice identifier.

    An omitted or empty voice id falls back to `default`.

    Raises:
        ValidationError: If the voice id contains unsupported characters.
    """
    if not voice_id:
        return default

    if not _VOICE_ID_RE.match(voice_id):
        debug(_LOG, "voice_id_rejected", voice=voice_id[:64])
        raise ValidationError("Invalid voiceId parameter", details={"field": "voiceId"})

    return voice_id
