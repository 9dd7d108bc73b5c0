"""API request and response schemas."""

from hass_gateway.api.schemas.envelope import (
    ErrorBody,
    ErrorEnvelope,
    Envelope,
    EventSubscribeRequest,
    HealthResponse,
    ok,
)

__all__ = [
    "Envelope",
    "ErrorBody",
    "ErrorEnvelope",
    "EventSubscribeRequest",
    "HealthResponse",
    "ok",
]
