"""Database entity models.

All SQLAlchemy ORM models for the gateway.
"""

from hass_gateway.storage.entities.brain_run import BrainRun
from hass_gateway.storage.entities.entity import Entity
from hass_gateway.storage.entities.entity_capability import EntityCapability
from hass_gateway.storage.entities.entity_normalization import EntityNormalization
from hass_gateway.storage.entities.intent_candidate import IntentCandidate, IntentKind

__all__ = [
    "BrainRun",
    "Entity",
    "EntityCapability",
    "EntityNormalization",
    "IntentCandidate",
    "IntentKind",
]
