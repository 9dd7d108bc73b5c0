"""hass-gateway: proxy and light automation layer in front of Home Assistant."""

__version__ = "0.1.0"
