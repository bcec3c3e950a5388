"""
SQLAlchemy ORM models for TenderWatch.

Only the cache lives in SQL: one row per cache key holding the
serialised tender records for a source.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        list[dict[str, Any]]: JSON,
    }


# =============================================================================
# Cache Entry Model
# =============================================================================


class CachedResult(Base):
    """Last stored scrape result for one cache key."""

    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Serialised TenderRecord dicts
    payload: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)

    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_fallback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_cache_entries_source_id", "source_id"),
        Index("ix_cache_entries_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<CachedResult(key='{self.key}', records={len(self.payload or [])})>"
