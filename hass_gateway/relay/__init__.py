"""Realtime relay: fan-out bridge from downstream clients to a hub socket."""

from hass_gateway.relay.hub import HubRelay, RelayRegistry

__all__ = ["HubRelay", "RelayRegistry"]
