"""Repository for refresh token operations.

Provides database operations for storing and transitioning refresh tokens.
"""

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rotauth.domain.entities import RefreshToken, TokenStatus, hash_token
from rotauth.domain.services import format_scope, parse_scope
from rotauth.infrastructure.persistence.models import RefreshTokenModel


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshTokenRepository:
    """Repository for refresh token database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    def _to_model(self, entity: RefreshToken) -> RefreshTokenModel:
        """Convert domain entity to infrastructure model."""
        return RefreshTokenModel(
            id=entity.id,
            family_id=entity.family_id,
            predecessor_id=entity.predecessor_id,
            client_id=entity.client_id,
            subject_id=entity.subject_id,
            scope=format_scope(entity.scope),
            audience=entity.audience,
            status=entity.status.value,
            issued_at=entity.issued_at,
            expires_at=entity.expires_at,
            rotated_at=entity.rotated_at,
            revoked_at=entity.revoked_at,
        )

    def _to_entity(self, model: RefreshTokenModel) -> RefreshToken:
        """Convert infrastructure model to domain entity."""
        return RefreshToken(
            id=model.id,
            family_id=model.family_id,
            predecessor_id=model.predecessor_id,
            client_id=model.client_id,
            subject_id=model.subject_id,
            scope=parse_scope(model.scope),
            audience=model.audience,
            status=TokenStatus(model.status),
            issued_at=as_utc(model.issued_at),
            expires_at=as_utc(model.expires_at),
            rotated_at=as_utc(model.rotated_at),
            revoked_at=as_utc(model.revoked_at),
        )

    async def create(self, entity: RefreshToken) -> RefreshToken:
        """Store a new refresh token.

        Args:
            entity: The RefreshToken entity to store.

        Returns:
            The stored entity.
        """
        model = self._to_model(entity)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def get_by_id(self, token_id: str) -> RefreshToken | None:
        """Look up a token by its hash."""
        model = await self._session.get(RefreshTokenModel, token_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def get_by_token(self, raw_token: str) -> RefreshToken | None:
        """Look up a token by its bearer secret.

        Args:
            raw_token: The raw refresh token string.

        Returns:
            The RefreshToken entity if found, None otherwise.
        """
        return await self.get_by_id(hash_token(raw_token))

    async def list_by_family(self, family_id: str) -> list[RefreshToken]:
        """Return a family's tokens, oldest first."""
        stmt = (
            select(RefreshTokenModel)
            .where(RefreshTokenModel.family_id == family_id)
            .order_by(RefreshTokenModel.issued_at, RefreshTokenModel.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def mark_rotated(self, token_id: str, rotated_at: datetime) -> bool:
        """Move an active token to rotated.

        Returns:
            True if the token was active and is now rotated.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.id == token_id,
                RefreshTokenModel.status == TokenStatus.ACTIVE.value,
            )
            .values(status=TokenStatus.ROTATED.value, rotated_at=rotated_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def revoke_active_in_family(self, family_id: str, revoked_at: datetime) -> int:
        """Move every active token of a family to revoked.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.family_id == family_id,
                RefreshTokenModel.status == TokenStatus.ACTIVE.value,
            )
            .values(status=TokenStatus.REVOKED.value, revoked_at=revoked_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount
