"""SQLAlchemy model for the audit trail.

Append-only: rows are inserted by the database audit sink and never updated.
Family ids are not foreign keys so the trail outlives purged families.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rotauth.infrastructure.persistence.database import Base


class AuditEventModel(Base):
    """SQLAlchemy model for the audit_events table."""

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    outcome: Mapped[str] = mapped_column(String(64), nullable=False)
    family_id: Mapped[str] = mapped_column(String(40), nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    token_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    detail: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_audit_events_family_occurred", "family_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"AuditEventModel(id={self.id!r}, outcome={self.outcome!r}, "
            f"family_id={self.family_id!r})"
        )
