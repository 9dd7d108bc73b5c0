"""Intent candidate generation.

Each supported domain gets a fixed catalogue of phrasings; unknown domains
get a generic set. Every candidate targets the entity's real domain and
carries ``entity_id`` in its action payload. The result always holds between
:data:`MIN_INTENTS` and :data:`MAX_INTENTS` candidates.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from hass_gateway.brain.models import CapabilityValue, IntentSpec, UnbrainedEntity
from hass_gateway.storage.entities import IntentKind

MIN_INTENTS = 5
MAX_INTENTS = 15

CONTROL = IntentKind.CONTROL
SCHEDULE = IntentKind.SCHEDULE
QUERY = IntentKind.QUERY
DIAGNOSTIC = IntentKind.DIAGNOSTIC

# (label template, kind, service, data, confidence)
_FILLER_INTENTS: list[tuple[str, IntentKind, str, dict[str, Any], float]] = [
    ("activate {name}", CONTROL, "turn_on", {}, 0.5),
    ("deactivate {name}", CONTROL, "turn_off", {}, 0.5),
    ("get {name} info", DIAGNOSTIC, "get_state", {}, 0.6),
    ("reset {name}", DIAGNOSTIC, "reload", {}, 0.4),
    ("monitor {name}", SCHEDULE, "automation_stub", {"template": "entity_monitor"}, 0.5),
]


class _IntentBuilder:
    """Accumulates candidates for one entity."""

    def __init__(self, entity: UnbrainedEntity) -> None:
        self.entity = entity
        self.name = entity.label
        self.intents: list[IntentSpec] = []

    def add(
        self,
        label: str,
        kind: IntentKind,
        service: str,
        data: dict[str, Any] | None = None,
        requires_caps: list[str] | None = None,
        confidence: float = 0.8,
    ) -> None:
        self.intents.append(
            IntentSpec(
                label=label,
                intent_kind=kind,
                action_domain=self.entity.domain,
                action_service=service,
                action_data={"entity_id": self.entity.entity_id, **(data or {})},
                requires_caps=requires_caps,
                confidence=confidence,
            )
        )

    def add_delayed_off_and_dusk(self) -> None:
        n = self.name
        self.add(f"turn off {n} in 15 minutes", SCHEDULE, "turn_off", {"delay": "PT15M"}, confidence=0.75)
        self.add(f"turn on {n} at dusk daily", SCHEDULE, "turn_on", {"schedule": "sunset_daily"}, confidence=0.72)


def _switch(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"turn on {n}", CONTROL, "turn_on")
    b.add(f"turn off {n}", CONTROL, "turn_off")
    b.add(f"toggle {n}", CONTROL, "toggle")
    b.add_delayed_off_and_dusk()
    b.add(f"check {n} status", QUERY, "get_state", confidence=0.7)


def _light(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"turn on {n}", CONTROL, "turn_on")
    b.add(f"turn off {n}", CONTROL, "turn_off")
    b.add(f"toggle {n}", CONTROL, "toggle")

    if caps.get("supports_brightness"):
        brightness = ["supports_brightness"]
        b.add(f"dim {n} to 30%", CONTROL, "turn_on", {"brightness_pct": 30}, brightness)
        b.add(f"set {n} to 75%", CONTROL, "turn_on", {"brightness_pct": 75}, brightness)
        b.add(f"brighten {n}", CONTROL, "turn_on", {"brightness_pct": 100}, brightness)

    if caps.get("supports_color"):
        color = ["supports_color"]
        b.add(f"set {n} to red", CONTROL, "turn_on", {"color_name": "red"}, color)
        b.add(f"set {n} to blue", CONTROL, "turn_on", {"color_name": "blue"}, color)

    b.add_delayed_off_and_dusk()


def _lock(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"lock {n}", CONTROL, "lock")
    b.add(f"unlock {n}", CONTROL, "unlock")
    b.add(f"auto-lock {n} after 5 minutes", SCHEDULE, "lock", {"delay": "PT5M"}, confidence=0.7)
    b.add(f"check {n} lock status", QUERY, "get_state", confidence=0.8)


def _camera(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    snapshot_file = f"/tmp/{b.entity.object_id}_{int(time.time() * 1000)}.jpg"  # noqa: S108
    b.add(f"show live stream for {n}", QUERY, "play_stream", {"format": "hls"})
    b.add(f"snapshot {n} now", CONTROL, "snapshot", {"filename": snapshot_file})
    b.add(
        f"notify me on motion for {n}",
        SCHEDULE,
        "automation_stub",
        {"template": "camera_motion_notify"},
        confidence=0.7,
    )
    b.add(f"record {n} for 30 seconds", CONTROL, "record", {"duration": 30}, confidence=0.75)
    b.add(f"check {n} status", DIAGNOSTIC, "get_state", confidence=0.8)


def _sensor(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"check {n} reading", QUERY, "get_state", confidence=0.9)
    b.add(f"show {n} history", QUERY, "get_history", {"hours": 24}, confidence=0.8)
    b.add(
        f"alert me if {n} exceeds threshold",
        SCHEDULE,
        "automation_stub",
        {"template": "sensor_threshold_alert"},
        confidence=0.7,
    )


def _climate(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"set {n} to 72°F", CONTROL, "set_temperature", {"temperature": 72})
    b.add(f"turn on {n}", CONTROL, "turn_on")
    b.add(f"turn off {n}", CONTROL, "turn_off")
    b.add(f"set {n} to heat mode", CONTROL, "set_hvac_mode", {"hvac_mode": "heat"})
    b.add(f"set {n} to cool mode", CONTROL, "set_hvac_mode", {"hvac_mode": "cool"})
    b.add(f"check {n} temperature", QUERY, "get_state", confidence=0.8)


def _fan(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"turn on {n}", CONTROL, "turn_on")
    b.add(f"turn off {n}", CONTROL, "turn_off")
    b.add(f"set {n} speed to low", CONTROL, "set_percentage", {"percentage": 33})
    b.add(f"set {n} speed to high", CONTROL, "set_percentage", {"percentage": 100})
    b.add(f"oscillate {n}", CONTROL, "oscillate", {"oscillating": True})


def _cover(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"open {n}", CONTROL, "open_cover")
    b.add(f"close {n}", CONTROL, "close_cover")
    b.add(f"stop {n}", CONTROL, "stop_cover")
    b.add(f"set {n} to 50%", CONTROL, "set_cover_position", {"position": 50})
    b.add(f"check {n} position", QUERY, "get_state", confidence=0.8)


def _generic(b: _IntentBuilder, caps: Mapping[str, Any]) -> None:
    n = b.name
    b.add(f"turn on {n}", CONTROL, "turn_on", confidence=0.6)
    b.add(f"turn off {n}", CONTROL, "turn_off", confidence=0.6)
    b.add(f"check {n} status", QUERY, "get_state", confidence=0.7)
    b.add(f"toggle {n}", CONTROL, "toggle", confidence=0.5)
    b.add(f"restart {n}", DIAGNOSTIC, "reload", confidence=0.4)


DOMAIN_GENERATORS: dict[str, Callable[[_IntentBuilder, Mapping[str, Any]], None]] = {
    "switch": _switch,
    "light": _light,
    "lock": _lock,
    "camera": _camera,
    "sensor": _sensor,
    "climate": _climate,
    "fan": _fan,
    "cover": _cover,
}


def generate_intents(
    entity: UnbrainedEntity,
    caps: Mapping[str, CapabilityValue | None] | None = None,
) -> list[IntentSpec]:
    """Generate intent candidates for an entity from its real domain.

    Args:
        entity: Entity to generate phrasings for.
        caps: Decoded capability flags (``supports_brightness`` etc.).

    Returns:
        Between MIN_INTENTS and MAX_INTENTS candidates.
    """
    builder = _IntentBuilder(entity)
    generator = DOMAIN_GENERATORS.get(entity.domain, _generic)
    generator(builder, caps or {})

    for label, kind, service, data, confidence in _FILLER_INTENTS:
        if len(builder.intents) >= MIN_INTENTS:
            break
        builder.add(label.format(name=builder.name), kind, service, data, confidence=confidence)

    return builder.intents[:MAX_INTENTS]
