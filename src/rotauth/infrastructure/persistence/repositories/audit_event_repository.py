"""Repository for the audit trail.

Insert and read only.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rotauth.domain.entities import AuditEvent, AuditOutcome
from rotauth.infrastructure.persistence.models import AuditEventModel
from rotauth.infrastructure.persistence.repositories.refresh_token_repository import as_utc


class AuditEventRepository:
    """Repository for audit event database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, event: AuditEvent) -> int:
        """Append an event.

        Returns:
            The new row ID.
        """
        model = AuditEventModel(
            occurred_at=event.occurred_at,
            outcome=event.outcome.value,
            family_id=event.family_id,
            client_id=event.client_id,
            subject_id=event.subject_id,
            token_id=event.token_id,
            detail=event.detail or None,
        )
        self._session.add(model)
        await self._session.flush()
        return model.id

    async def list_by_family(self, family_id: str, limit: int = 100) -> list[AuditEvent]:
        """Return a family's events, oldest first."""
        stmt = (
            select(AuditEventModel)
            .where(AuditEventModel.family_id == family_id)
            .order_by(AuditEventModel.occurred_at, AuditEventModel.id)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [
            AuditEvent(
                outcome=AuditOutcome(model.outcome),
                family_id=model.family_id,
                client_id=model.client_id,
                subject_id=model.subject_id,
                token_id=model.token_id,
                detail=model.detail or {},
                occurred_at=as_utc(model.occurred_at),
            )
            for model in result.scalars().all()
        ]

    async def count_by_outcome(self, outcome: AuditOutcome) -> int:
        """Count events with a given outcome."""
        stmt = select(func.count(AuditEventModel.id)).where(
            AuditEventModel.outcome == outcome.value
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()
