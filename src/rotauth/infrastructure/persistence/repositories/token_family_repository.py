"""Repository for token family operations.

All writes are versioned: they match on the version the caller read and
bump it, so a concurrent writer makes them affect zero rows.
"""

from datetime import datetime

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rotauth.domain.entities import (
    GrantType,
    RevokeReason,
    TokenFamily,
    TokenStatus,
)
from rotauth.domain.services import format_scope, parse_scope
from rotauth.infrastructure.persistence.models import (
    RefreshTokenModel,
    TokenFamilyModel,
)
from rotauth.infrastructure.persistence.repositories.refresh_token_repository import as_utc


class TokenFamilyRepository:
    """Repository for token family database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    def _to_model(self, entity: TokenFamily) -> TokenFamilyModel:
        """Convert domain entity to infrastructure model."""
        return TokenFamilyModel(
            id=entity.id,
            client_id=entity.client_id,
            subject_id=entity.subject_id,
            scope=format_scope(entity.scope),
            audience=entity.audience,
            grant_type=entity.grant_type.value,
            head_token_id=entity.head_token_id,
            revoked=entity.revoked,
            revoked_at=entity.revoked_at,
            revoke_reason=entity.revoke_reason.value if entity.revoke_reason else None,
            version=entity.version,
            created_at=entity.created_at,
            last_used_at=entity.last_used_at,
        )

    def _to_entity(self, model: TokenFamilyModel) -> TokenFamily:
        """Convert infrastructure model to domain entity."""
        return TokenFamily(
            id=model.id,
            client_id=model.client_id,
            subject_id=model.subject_id,
            scope=parse_scope(model.scope),
            audience=model.audience,
            grant_type=GrantType(model.grant_type),
            head_token_id=model.head_token_id,
            revoked=model.revoked,
            revoked_at=as_utc(model.revoked_at),
            revoke_reason=RevokeReason(model.revoke_reason) if model.revoke_reason else None,
            version=model.version,
            created_at=as_utc(model.created_at),
            last_used_at=as_utc(model.last_used_at),
        )

    async def create(self, entity: TokenFamily) -> TokenFamily:
        """Store a new family."""
        model = self._to_model(entity)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def get_by_id(self, family_id: str) -> TokenFamily | None:
        """Look up a family by ID."""
        model = await self._session.get(TokenFamilyModel, family_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def compare_and_set_head(
        self,
        family_id: str,
        expected_version: int,
        head_token_id: str,
        last_used_at: datetime,
    ) -> bool:
        """Move the head pointer if the family is still at the expected version.

        Returns:
            True if the row was updated.
        """
        stmt = (
            update(TokenFamilyModel)
            .where(
                TokenFamilyModel.id == family_id,
                TokenFamilyModel.version == expected_version,
                TokenFamilyModel.revoked == False,  # noqa: E712
            )
            .values(
                head_token_id=head_token_id,
                last_used_at=last_used_at,
                version=TokenFamilyModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def compare_and_revoke(
        self,
        family_id: str,
        expected_version: int,
        reason: RevokeReason,
        revoked_at: datetime,
    ) -> bool:
        """Revoke the family if it is still at the expected version.

        Returns:
            True if the row was updated.
        """
        stmt = (
            update(TokenFamilyModel)
            .where(
                TokenFamilyModel.id == family_id,
                TokenFamilyModel.version == expected_version,
            )
            .values(
                revoked=True,
                head_token_id=None,
                revoked_at=revoked_at,
                revoke_reason=reason.value,
                version=TokenFamilyModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def find_purgeable_ids(self, inactive_before: datetime, now: datetime) -> list[str]:
        """Find families the retention job may delete.

        A family qualifies when it was revoked before the cutoff, or when it
        has been idle since before the cutoff and its head has expired.
        """
        expired_heads = select(RefreshTokenModel.family_id).where(
            RefreshTokenModel.status == TokenStatus.ACTIVE.value,
            RefreshTokenModel.expires_at < now,
        )
        stmt = select(TokenFamilyModel.id).where(
            or_(
                and_(
                    TokenFamilyModel.revoked == True,  # noqa: E712
                    TokenFamilyModel.revoked_at < inactive_before,
                ),
                and_(
                    TokenFamilyModel.revoked == False,  # noqa: E712
                    TokenFamilyModel.last_used_at < inactive_before,
                    TokenFamilyModel.id.in_(expired_heads),
                ),
            )
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def delete_with_tokens(self, family_ids: list[str]) -> int:
        """Delete families and their tokens.

        Returns:
            Number of families deleted.
        """
        if not family_ids:
            return 0
        await self._session.execute(
            delete(RefreshTokenModel)
            .where(RefreshTokenModel.family_id.in_(family_ids))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(
            delete(TokenFamilyModel)
            .where(TokenFamilyModel.id.in_(family_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
