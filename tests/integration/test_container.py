"""Integration tests for service wiring and the database audit sink."""

import pytest

from rotauth.core.config import Settings
from rotauth.domain.entities import AuditOutcome
from rotauth.infrastructure.audit import DatabaseAuditSink, LoggingAuditSink, MemoryAuditSink
from rotauth.infrastructure.container import build_audit_sinks, build_services
from rotauth.infrastructure.persistence.repositories import AuditEventRepository


def test_build_audit_sinks_in_configured_order(session_factory):
    sinks = build_audit_sinks(Settings(audit_sinks="memory,log,database"), session_factory)

    assert [type(s) for s in sinks] == [MemoryAuditSink, LoggingAuditSink, DatabaseAuditSink]


@pytest.mark.asyncio
async def test_services_write_audit_trail_to_database(session_factory, issuer):
    settings = Settings(audit_sinks="database", reuse_grace_seconds=0)
    services = build_services(session_factory, settings, issuer=issuer)
    await services.audit.start()

    pair = await services.authority.grant("client-a", "user-1", scope="read")
    await services.authority.exchange(pair.refresh_token, "client-a")
    await services.audit.stop()

    async with session_factory() as session:
        events = await AuditEventRepository(session).list_by_family(pair.family_id)

    assert [e.outcome for e in events] == [AuditOutcome.GRANT_ISSUED, AuditOutcome.EXCHANGE_SUCCEEDED]
    assert events[1].detail["scope"] == "read"
    assert services.audit.running is False
