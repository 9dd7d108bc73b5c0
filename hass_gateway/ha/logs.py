"""Hub log retrieval with a REST fallback.

The WebSocket ``system_log/list`` command is tried first under a timeout; when it
fails, times out, or returns something other than a list, the plain-text
``/api/error_log`` endpoint is used instead.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal

from hass_gateway.exceptions import HAClientError
from hass_gateway.ha.rest import HARestClient
from hass_gateway.ha.websocket import HAWebSocketClient

logger = logging.getLogger(__name__)

LogSource = Literal["websocket", "error_log_api", "none"]


def parse_error_log(text: str) -> list[str]:
    """Split the raw error log into its non-blank lines."""
    return [line for line in text.splitlines() if line.strip()]


async def fetch_logs(
    ws_client: HAWebSocketClient,
    rest_client: HARestClient,
    timeout: float = 10.0,
) -> dict[str, Any]:
    """Fetch recent hub logs.

    Returns:
        ``{"source": <LogSource>, "logs": [...]}``. The source is ``"none"``
        with an empty list when neither channel answered.
    """
    try:
        response = await asyncio.wait_for(ws_client.get_logs(), timeout=timeout)
        result = response.get("result")
        if response.get("success", True) and isinstance(result, list):
            return {"source": "websocket", "logs": result}
        logger.debug("system_log/list returned no list, falling back to error_log API")
    except TimeoutError:
        logger.warning("system_log/list timed out after %.1fs, falling back to error_log API", timeout)
    except HAClientError as e:
        logger.warning("system_log/list failed (%s), falling back to error_log API", e)

    try:
        text = await rest_client.get_error_log()
    except HAClientError as e:
        logger.warning("error_log API failed: %s", e)
        return {"source": "none", "logs": []}
    return {"source": "error_log_api", "logs": parse_error_log(text)}
