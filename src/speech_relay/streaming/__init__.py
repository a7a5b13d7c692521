"""
Stream plumbing.

    - tee.py: StreamTee, one upstream to several independent consumers
    - background.py: BackgroundSupervisor for detached uploads
"""
from .background import BackgroundSupervisor
from .tee import StreamTee, TeeBranch, first_chunk, prepend

__all__ = [
    "BackgroundSupervisor",
    "StreamTee",
    "TeeBranch",
    "first_chunk",
    "prepend",
]
