"""Audit trail delivery: the outbox dispatcher and its sinks."""

from rotauth.infrastructure.audit.dispatcher import AuditDispatcher
from rotauth.infrastructure.audit.sinks import (
    DatabaseAuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
)

__all__ = [
    "AuditDispatcher",
    "DatabaseAuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
]
