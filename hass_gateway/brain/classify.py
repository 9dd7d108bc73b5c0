"""Naming heuristics and capability decoding for the brain sweep."""

from __future__ import annotations

import math
import re

from hass_gateway.brain.models import CapabilityValue, Classification, UnbrainedEntity

_LIGHT_PATTERN = re.compile(r"light|lamp|bulb")
_FAN_PATTERN = re.compile(r"fan|ventilation")

_DEFAULT_REASONING = "Default canonicalization equals HA domain."
_LIGHT_REASONING = (
    "Name heuristic indicates a light; HA domain must remain 'switch' for service calls."
)
_FAN_REASONING = (
    "Name heuristic indicates a fan; HA domain must remain 'switch' for service calls."
)


def classify_entity(entity: UnbrainedEntity) -> Classification:
    """Assign a canonical type to an entity from its name.

    Only ``switch`` entities are reinterpreted. The canonical domain is
    always the real domain.
    """
    name = (entity.friendly_name or entity.object_id).lower()

    canonical_type = entity.domain
    confidence = 0.9
    reasoning = _DEFAULT_REASONING

    if entity.domain == "switch":
        if _LIGHT_PATTERN.search(name):
            canonical_type, confidence, reasoning = "light", 0.95, _LIGHT_REASONING
        elif _FAN_PATTERN.search(name):
            canonical_type, confidence, reasoning = "fan", 0.9, _FAN_REASONING

    return Classification(
        canonical_type=canonical_type,
        canonical_domain=entity.domain,
        confidence=confidence,
        reasoning=reasoning,
    )


def decode_capability_value(raw: str | None) -> CapabilityValue | None:
    """Decode a stored capability value.

    ``"true"``/``"false"`` become booleans, numeric strings become numbers
    (``int`` when written without a fraction or exponent), anything else is
    returned unchanged.  Blank text stays ``""`` and a missing value (both
    storage columns NULL) stays None rather than being coerced to ``0``;
    both are falsy, so capability checks treat them as unsupported.
    """
    if raw is None:
        return None
    if raw == "true":
        return True
    if raw == "false":
        return False

    text = raw.strip()
    if not text:
        return raw
    try:
        number = float(text)
    except ValueError:
        return raw
    if not math.isfinite(number):
        return raw
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text)
    return number


def decode_capabilities(rows: list[tuple[str, str | None]]) -> dict[str, CapabilityValue | None]:
    """Decode ``(name, value)`` rows into a capability mapping."""
    return {name: decode_capability_value(value) for name, value in rows}
