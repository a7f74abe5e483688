"""SQLAlchemy ORM models for consultations and drafts."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from consultflow.db.base import Base


def _jsonb() -> type:
    """Return JSONB for Postgres, plain JSON for SQLite."""
    return JSON().with_variant(PG_JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsultationRow(Base):
    __tablename__ = "consultations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), default="")
    contact_info: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    business_context: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    pain_points: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    goals_objectives: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    status: Mapped[str] = mapped_column(String(16), default="draft")
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_consultations_user_id", "user_id"),
        Index("ix_consultations_status", "status"),
    )


class ConsultationDraftRow(Base):
    __tablename__ = "consultation_drafts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    consultation_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("consultations.id", ondelete="CASCADE")
    )
    user_id: Mapped[str] = mapped_column(String(128), default="")
    contact_info: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    business_context: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    pain_points: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    goals_objectives: Mapped[dict] = mapped_column(_jsonb(), default=dict)
    auto_saved: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("consultation_id", name="uq_consultation_drafts_consultation_id"),
    )
