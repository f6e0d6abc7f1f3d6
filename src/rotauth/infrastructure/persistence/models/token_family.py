"""SQLAlchemy model for token families.

One row per rotation lineage. The version column is the optimistic
concurrency counter every transition compares and bumps.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rotauth.infrastructure.persistence.database import Base


class TokenFamilyModel(Base):
    """SQLAlchemy model for the token_families table."""

    __tablename__ = "token_families"

    id: Mapped[str] = mapped_column(
        String(40),
        primary_key=True,
        comment="Family ID",
    )
    client_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="OAuth client of the original grant",
    )
    subject_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Resource owner of the original grant",
    )
    scope: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Space-delimited scope of the original grant",
    )
    audience: Mapped[str] = mapped_column(String(255), nullable=False)
    grant_type: Mapped[str] = mapped_column(String(64), nullable=False)

    head_token_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Hash of the single active token",
    )
    revoked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoke_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Optimistic concurrency counter",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    tokens = relationship(
        "RefreshTokenModel",
        back_populates="family",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_token_families_subject_client", "subject_id", "client_id"),
    )

    def __repr__(self) -> str:
        return (
            f"TokenFamilyModel(id={self.id!r}, revoked={self.revoked!r}, "
            f"version={self.version!r})"
        )
