"""Entity model mirroring the hub's live state registry."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from hass_gateway.storage.models import Base, JSONType, TimestampMixin


class Entity(Base, TimestampMixin):
    """One hub-managed device or sensor.

    Rows are written by the entity sync and only read (and annotated via
    related tables) by the brain sweep.
    """

    __tablename__ = "entities"

    entity_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        doc="Home Assistant entity ID (e.g., switch.office_lamp)",
    )
    source_id: Mapped[str] = mapped_column(
        String(64),
        default="default",
        nullable=False,
        doc="Hub instance the entity was synced from",
    )
    domain: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        doc="Entity domain (light, sensor, switch, etc.)",
    )
    object_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Part of the entity ID after the domain",
    )
    friendly_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Human label from the friendly_name attribute",
    )
    icon: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit_of_measure: Mapped[str | None] = mapped_column(String(50), nullable=True)
    area: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the sync last saw this entity in the hub",
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        doc="Device linkage (unique_id, device_id, device_class, entity_category)",
    )

    __table_args__ = (Index("ix_entities_source_domain", "source_id", "domain"),)

    def __repr__(self) -> str:
        return f"<Entity(entity_id={self.entity_id}, domain={self.domain})>"

    @property
    def label(self) -> str:
        """Display label, falling back to the object id with spaces."""
        return self.friendly_name or self.object_id.replace("_", " ")
