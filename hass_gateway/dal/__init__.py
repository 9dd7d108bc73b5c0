"""Data access layer.

Repositories wrap one AsyncSession each and leave commits to the caller.
"""

from hass_gateway.dal.brain import BrainRepository
from hass_gateway.dal.entities import EntityRepository, split_entity_id

__all__ = [
    "BrainRepository",
    "EntityRepository",
    "split_entity_id",
]
