"""Wiring of the rotation authority and its collaborators."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rotauth.application.services import RotationAuthority
from rotauth.core.config import Settings, get_settings
from rotauth.domain.ports import AccessTokenIssuer, AuditSink
from rotauth.infrastructure.audit import (
    AuditDispatcher,
    DatabaseAuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
)
from rotauth.infrastructure.auth import jwt_service
from rotauth.infrastructure.persistence.token_store import SqlAlchemyTokenStore


@dataclass
class Services:
    """Long-lived services shared by the API and the CLI."""

    authority: RotationAuthority
    audit: AuditDispatcher
    store: SqlAlchemyTokenStore


def build_audit_sinks(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> list[AuditSink]:
    """Instantiate the sinks named in settings, in order."""
    sinks: list[AuditSink] = []
    for name in settings.audit_sinks:
        if name == "log":
            sinks.append(LoggingAuditSink())
        elif name == "database":
            sinks.append(DatabaseAuditSink(session_factory))
        elif name == "memory":
            sinks.append(MemoryAuditSink())
    return sinks


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
    issuer: AccessTokenIssuer | None = None,
    sinks: list[AuditSink] | None = None,
) -> Services:
    """Build the authority, its store and its audit dispatcher.

    The dispatcher is returned stopped; call ``await services.audit.start()``.
    """
    settings = settings or get_settings()
    store = SqlAlchemyTokenStore(session_factory)
    audit = AuditDispatcher(
        sinks if sinks is not None else build_audit_sinks(settings, session_factory),
        queue_size=settings.audit_queue_size,
        max_attempts=settings.audit_max_attempts,
    )
    authority = RotationAuthority.from_settings(
        store,
        issuer or jwt_service,
        audit,
        settings=settings,
    )
    return Services(authority=authority, audit=audit, store=store)
