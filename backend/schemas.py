"""Pydantic v2 response models for the tracker HTTP API.

The trader snapshot itself is ``tracker.models.TraderSnapshot``; only the
envelopes that exist purely for HTTP live here.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    cached: int


class ErrorResponse(BaseModel):
    """Body returned with 4xx/5xx responses."""

    error: str
