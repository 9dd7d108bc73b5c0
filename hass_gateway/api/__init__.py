"""HTTP and WebSocket API for the gateway."""
