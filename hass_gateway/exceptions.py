"""Gateway exception hierarchy.

Base exceptions for all application layers with correlation ID support.

Usage:
    from hass_gateway.exceptions import HAClientError, HAConnectionError

    try:
        response = await client.get_states()
    except HAConnectionError as e:
        logger.warning("Hub unreachable (%s): %s", e.correlation_id, e)
"""

import uuid
from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway application errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class HAClientError(GatewayError):
    """Errors from Home Assistant client operations.

    Raised when REST or WebSocket calls to the hub fail, with optional
    tool name and detail context for diagnostics.
    """

    def __init__(
        self,
        message: str,
        tool: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ):
        self.tool = tool
        self.details = details or {}
        self.status_code = status_code
        super().__init__(message, correlation_id=correlation_id)


class HAConnectionError(HAClientError):
    """The duplex connection to the hub closed or errored.

    One instance is shared by every request that was pending when the
    transport went away.
    """

    pass


class HAAuthError(HAClientError):
    """The hub rejected the bearer token (``auth_invalid``)."""

    pass


class ValidationError(GatewayError):
    """Errors from input validation (beyond Pydantic)."""

    pass


class ConfigurationError(GatewayError):
    """Errors from application configuration."""

    pass
