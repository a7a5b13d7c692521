"""
Speech synthesis providers.

    - elevenlabs.py: ElevenLabsClient, streaming mp3 over httpx
"""
from .elevenlabs import ElevenLabsClient

__all__ = ["ElevenLabsClient"]
