"""SQLAlchemy model for refresh tokens.

Stores the hash of each refresh token in a family's rotation chain.
The bearer secret itself is never stored.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rotauth.infrastructure.persistence.database import Base


class RefreshTokenModel(Base):
    """Refresh token model for rotation chains."""

    __tablename__ = "refresh_tokens"

    # SHA-256 of the bearer secret
    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )

    family_id: Mapped[str] = mapped_column(
        String(40),
        ForeignKey("token_families.id", ondelete="CASCADE"),
        nullable=False,
    )
    predecessor_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )

    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")
    audience: Mapped[str] = mapped_column(String(255), nullable=False)

    # Token state
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="active",
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    rotated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    family = relationship("TokenFamilyModel", back_populates="tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_family_status", "family_id", "status"),
        # At most one active token per family
        Index(
            "uq_refresh_tokens_family_active",
            "family_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"RefreshTokenModel(id={self.id[:12]!r}, family_id={self.family_id!r}, "
            f"status={self.status!r})"
        )
