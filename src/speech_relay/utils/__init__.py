"""
Utility helpers for speech-relay.

    - timeit.py: Timing context manager used for latency logging
"""
