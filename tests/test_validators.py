"""
Tests for input validation functions.

Tests cover:
- validate_text() - missing, blank, max length, valid, unicode, untouched
- validate_voice_id() - default fallback, allowed characters, rejection
"""
import pytest

from speech_relay.core.errors import ErrorCode, ValidationError
from speech_relay.services.validators import (
    MAX_TEXT_CHARS,
    TEXT_REQUIRED_MESSAGE,
    validate_text,
    validate_voice_id,
)

DEFAULT = "JBFqnCBsd6RMkjVDRZzb"


class TestValidateText:
    """Tests for validate_text()."""

    def test_valid_text(self):
        assert validate_text("Hello, world!") == "Hello, world!"

    def test_unicode_text(self):
        text = "Merhaba, nasılsınız? Grüße aus Köln. こんにちは"
        assert validate_text(text) == text

    def test_text_not_stripped(self):
        """Surrounding whitespace is part of the cache key."""
        assert validate_text("  Hello  ") == "  Hello  "

    @pytest.mark.parametrize("text", [None, "", " ", "\n\t  "])
    def test_missing_or_blank(self, text):
        with pytest.raises(ValidationError) as exc_info:
            validate_text(text)

        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.message == TEXT_REQUIRED_MESSAGE

    def test_at_max_length(self):
        text = "a" * MAX_TEXT_CHARS
        assert validate_text(text) == text

    def test_over_max_length(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_text("a" * (MAX_TEXT_CHARS + 1))

        assert "maximum length" in exc_info.value.message
        assert exc_info.value.details["length"] == MAX_TEXT_CHARS + 1

    def test_custom_max_length(self):
        with pytest.raises(ValidationError):
            validate_text("abcdef", max_length=5)


class TestValidateVoiceId:
    """Tests for validate_voice_id()."""

    @pytest.mark.parametrize("voice_id", [None, ""])
    def test_default_fallback(self, voice_id):
        assert validate_voice_id(voice_id, DEFAULT) == DEFAULT

    @pytest.mark.parametrize("voice_id", ["voiceA", DEFAULT, "my_voice-2", "a" * 64])
    def test_valid(self, voice_id):
        assert validate_voice_id(voice_id, DEFAULT) == voice_id

    @pytest.mark.parametrize("voice_id", ["a/b", "../x", "voice id", "a?b=c", "a" * 65, "ses-ğ"])
    def test_invalid(self, voice_id):
        with pytest.raises(ValidationError) as exc_info:
            validate_voice_id(voice_id, DEFAULT)

        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.message == "Invalid voiceId parameter"
