"""Audit sink implementations."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rotauth.core.logging import get_logger
from rotauth.domain.entities import AuditEvent, AuditOutcome
from rotauth.domain.ports import AuditSink
from rotauth.infrastructure.persistence.repositories import AuditEventRepository

audit_logger = get_logger("rotauth.audit")

# Outcomes that point at a possibly stolen token
SECURITY_OUTCOMES = frozenset(
    {
        AuditOutcome.REUSE_DETECTED,
        AuditOutcome.FAMILY_REVOKED_EXCHANGE_ATTEMPT,
        AuditOutcome.CLIENT_MISMATCH,
    }
)


class LoggingAuditSink(AuditSink):
    """Write audit events to the structured log."""

    name = "log"

    async def write(self, event: AuditEvent) -> None:
        data = event.to_dict()
        if event.outcome in SECURITY_OUTCOMES:
            audit_logger.warning("Audit event", **data)
        else:
            audit_logger.info("Audit event", **data)


class DatabaseAuditSink(AuditSink):
    """Append audit events to the audit_events table."""

    name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def write(self, event: AuditEvent) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await AuditEventRepository(session).create(event)


class MemoryAuditSink(AuditSink):
    """Keep audit events in a list. Used by tests and the shell."""

    name = "memory"

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def write(self, event: AuditEvent) -> None:
        self.events.append(event)

    def outcomes(self) -> list[AuditOutcome]:
        return [event.outcome for event in self.events]

    def for_family(self, family_id: str) -> list[AuditEvent]:
        return [event for event in self.events if event.family_id == family_id]
