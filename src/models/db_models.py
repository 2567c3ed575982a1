# -*- coding: utf-8 -*-
"""SQLAlchemy models."""

from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, String, Text

from src.core.database import Base


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class KeyValueEntry(Base):
    """A single key/value pair used by the history store."""

    __tablename__ = "search_kv"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utc_now, onupdate=_utc_now)
