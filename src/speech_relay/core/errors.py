"""
Error codes and exceptions for speech-relay.

Every failure the relay can report carries an ErrorCode. The HTTP layer
maps codes to status codes; callers only ever see the safe message, while
the details dict (upstream status, provider error text) goes to the logs.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Standardized error codes.

    Only INVALID_INPUT and SYNTHESIS_FAILED ever reach a client. Lookup and
    persistence failures are absorbed by the service and only logged.
    """
    INVALID_INPUT = "INVALID_INPUT"             # Missing text, bad voice id
    CACHE_LOOKUP_FAILED = "CACHE_LOOKUP_FAILED" # Store unreachable during lookup
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"       # Provider rejected or unreachable
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"   # Background upload failed
    INTERNAL_ERROR = "INTERNAL_ERROR"           # Unexpected error


class SpeechRelayError(Exception):
    """
    Base exception for relay errors.

    Attributes:
        message: Human-readable message, safe to return to a caller.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context for logs.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Response body for the HTTP layer."""
        return {"error": self.message}


class ValidationError(SpeechRelayError):
    """Raised when request parameters are missing or malformed."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class CacheLookupError(SpeechRelayError):
    """Raised when the object store cannot answer an existence/sign query."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CACHE_LOOKUP_FAILED, details)


class SynthesisError(SpeechRelayError):
    """Raised when the synthesis provider fails or returns an error status."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class PersistenceError(SpeechRelayError):
    """Raised when an artifact cannot be written to the object store."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PERSISTENCE_FAILED, details)
