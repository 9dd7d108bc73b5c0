"""Command-line interface for hass-gateway."""
