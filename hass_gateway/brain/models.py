"""Value types passed between the brain sweep steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from hass_gateway.storage.entities import IntentKind

T = TypeVar("T")

CapabilityValue = str | int | float | bool


@dataclass(frozen=True)
class UnbrainedEntity:
    """An entity lacking a normalization row or enough enabled intents."""

    entity_id: str
    domain: str
    object_id: str
    friendly_name: str | None = None

    @property
    def label(self) -> str:
        """Phrase used inside generated intent labels."""
        return self.friendly_name or self.object_id.replace("_", " ")


@dataclass(frozen=True)
class Classification:
    """Heuristic classification of one entity."""

    canonical_type: str
    canonical_domain: str
    confidence: float
    reasoning: str


@dataclass
class IntentSpec:
    """An intent candidate before it is written to the store."""

    label: str
    intent_kind: IntentKind
    action_domain: str
    action_service: str
    action_data: dict[str, Any]
    requires_caps: list[str] | None = None
    confidence: float = 0.8


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one sweep step: a value, plus the error that degraded it."""

    value: T
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SweepResult:
    """Summary returned by a sweep and persisted as a BrainRun."""

    ran_at_utc: str
    scanned: int = 0
    normalized: int = 0
    intents_created: int = 0
    failures: int = field(default=0, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: ``{ran_at_utc, scanned, normalized, intentsCreated}``."""
        return {
            "ran_at_utc": self.ran_at_utc,
            "scanned": self.scanned,
            "normalized": self.normalized,
            "intentsCreated": self.intents_created,
        }
