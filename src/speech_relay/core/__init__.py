"""
Core Infrastructure for speech-relay.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error codes and exception hierarchy
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
    - container.py: Process-lifetime wiring of clients and services
"""
