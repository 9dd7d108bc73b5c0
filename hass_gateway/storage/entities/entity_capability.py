"""Capability flags from the external registry (read-only to the sweep)."""

from sqlalchemy import Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hass_gateway.storage.models import Base


class EntityCapability(Base):
    """Name/value pair describing what an entity supports.

    Values are stored as text or number; readers decode them with
    :func:`hass_gateway.brain.classify.decode_capability_value`.
    """

    __tablename__ = "entity_capabilities"

    entity_id: Mapped[str] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_num: Mapped[float | None] = mapped_column(Float, nullable=True)
