from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String, Text

from .base import Base


class StateEntry(Base):
    """One persisted record of a namespaced key-value map."""

    __tablename__ = "state_entries"

    namespace = Column(String(32), primary_key=True)
    key = Column(Text, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["StateEntry"]
