"""Append-only audit row for each brain sweep."""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from hass_gateway.storage.models import Base


class BrainRun(Base):
    """Summary of one sweep invocation, used for status reporting."""

    __tablename__ = "brain_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ran_at_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    scanned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    normalized: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    intents_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<BrainRun(id={self.id}, ran_at_utc={self.ran_at_utc}, scanned={self.scanned})>"
