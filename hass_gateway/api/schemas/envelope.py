"""Response envelopes shared by every route.

Successful calls return ``{"ok": true, "message": ..., "data": ...}``;
failures return ``{"ok": false, "error": {...}}``.
"""

from typing import Any

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    """Success envelope."""

    ok: bool = True
    message: str
    data: Any = None


class ErrorBody(BaseModel):
    code: int
    message: str
    type: str
    correlation_id: str | None = None


class ErrorEnvelope(BaseModel):
    """Failure envelope produced by the exception handlers."""

    ok: bool = False
    error: ErrorBody


class EventSubscribeRequest(BaseModel):
    """Body of ``POST /ha/events/subscribe``."""

    event_type: str | None = Field(None, description="Event type to subscribe to (all when omitted)")


class HomeAssistantHealth(BaseModel):
    configured: bool
    websocket_connected: bool


class HealthResponse(BaseModel):
    ok: bool = True
    version: str
    uptime_seconds: float
    home_assistant: HomeAssistantHealth


def ok(message: str, data: Any = None) -> Envelope:
    """Build a success envelope."""
    return Envelope(message=message, data=data)
