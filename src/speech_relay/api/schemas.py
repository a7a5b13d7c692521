"""
API Response Schemas.

Speech requests arrive as query parameters, so only the JSON responses
need models:

    ErrorBody: {"error": "<safe message>"} for 4xx/5xx responses
    HealthResponse: /health payload
"""
from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """Error response returned by every endpoint."""

    error: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Text parameter is required"],
    )


class HealthResponse(BaseModel):
    """Service health, configuration summary and counters."""

    ok: bool = Field(True, description="Whether the service is up")
    synthesis: Dict[str, Any] = Field(
        default_factory=dict,
        description="Default voice, model, output format and whether an API key is set",
    )
    storage: Dict[str, Any] = Field(
        default_factory=dict,
        description="Artifact store backend and bucket information",
    )
    cache: Dict[str, Any] = Field(
        default_factory=dict,
        description="Signed URL TTL and hit/miss/error counters",
    )
    background: Dict[str, int] = Field(
        default_factory=dict,
        description="Background upload counters",
    )
