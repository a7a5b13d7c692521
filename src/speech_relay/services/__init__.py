"""
speech-relay Services Layer.

Sits between the HTTP routes and the store/synthesis clients.

Components:
    - speech_service.py: SpeechService (cache check, synthesis, tee, upload)
    - validators.py: Input validation functions
"""
from .speech_service import SpeechOutcome, SpeechService, SynthesisRequest

__all__ = [
    "SpeechService",
    "SpeechOutcome",
    "SynthesisRequest",
]
