"""Canonical classification of an entity."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from hass_gateway.storage.models import Base


class EntityNormalization(Base):
    """One-to-one classification row for an entity.

    ``canonical_type`` may differ from the real domain (a switch that looks
    like a light); ``canonical_domain`` always equals the real domain so
    service calls keep targeting it.
    """

    __tablename__ = "entity_normalization"

    entity_id: Mapped[str] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"),
        primary_key=True,
    )
    canonical_type: Mapped[str] = mapped_column(String(50), nullable=False)
    canonical_domain: Mapped[str] = mapped_column(String(50), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<EntityNormalization(entity_id={self.entity_id}, "
            f"canonical_type={self.canonical_type})>"
        )
