"""
speech-relay: cached text-to-speech relay.

Serves GET /v1/speech?text=...&voiceId=... as an mp3 stream. Each
(text, voice) pair is synthesized once by the ElevenLabs streaming API;
the audio is teed to the caller and, in the background, to an object
store (local filesystem or S3). Later identical requests are streamed
straight from the store through a short-lived signed URL.

Example Usage:
    >>> from speech_relay.main import create_app
    >>> app = create_app()

    $ export ELEVENLABS_API_KEY=...
    $ uvicorn speech_relay.main:app --port 8000
    $ curl "http://localhost:8000/v1/speech?text=Hello" -o hello.mp3
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
