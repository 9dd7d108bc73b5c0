"""Actionable phrasing generated for an entity."""

from enum import StrEnum
from typing import Any

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hass_gateway.storage.models import Base, JSONType, TimestampMixin


class IntentKind(StrEnum):
    """Closed set of intent kinds."""

    CONTROL = "control"
    SCHEDULE = "schedule"
    QUERY = "query"
    DIAGNOSTIC = "diagnostic"


class IntentCandidate(Base, TimestampMixin):
    """Human-phrased action template bound to one entity and one service call.

    Rows are only ever inserted; a sweep never updates existing ones.
    """

    __tablename__ = "intent_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(
        ForeignKey("entities.entity_id", ondelete="CASCADE"),
        nullable=False,
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    intent_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    action_domain: Mapped[str] = mapped_column(String(50), nullable=False)
    action_service: Mapped[str] = mapped_column(String(100), nullable=False)
    action_data_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    requires_caps: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.75, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_intent_candidates_entity_enabled", "entity_id", "enabled"),)

    def __repr__(self) -> str:
        return f"<IntentCandidate(id={self.id}, entity_id={self.entity_id}, label={self.label!r})>"
