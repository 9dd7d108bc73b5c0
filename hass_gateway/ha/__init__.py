"""Home Assistant clients.

The WebSocket client is the primary channel to the hub; the REST client
covers the state dump and the error log.
"""

from hass_gateway.ha.logs import fetch_logs, parse_error_log
from hass_gateway.ha.rest import HARestClient
from hass_gateway.ha.websocket import HAWebSocketClient, build_ws_url, unwrap_result

__all__ = [
    "HARestClient",
    "HAWebSocketClient",
    "build_ws_url",
    "fetch_logs",
    "parse_error_log",
    "unwrap_result",
]
