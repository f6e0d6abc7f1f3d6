"""Audit event entity.

One record per exchange attempt, grant and revocation. Records are
immutable once created.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class AuditOutcome(str, Enum):
    """Outcome codes written to the audit trail."""

    GRANT_ISSUED = "grant_issued"
    EXCHANGE_SUCCEEDED = "sertft"
    REUSE_DETECTED = "ferrt"
    FAMILY_REVOKED_EXCHANGE_ATTEMPT = "family_revoked_exchange_attempt"
    CLIENT_MISMATCH = "client_mismatch"
    TOKEN_EXPIRED = "token_expired"
    SCOPE_EXCEEDED = "scope_exceeded"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    CONCURRENT_ROTATION = "concurrent_rotation"
    FAMILY_REVOKED = "family_revoked"


@dataclass(frozen=True)
class AuditEvent:
    """Audit record for one authority decision.

    Attributes:
        outcome: What happened.
        family_id: Family the decision applied to.
        client_id: Client that made the request.
        subject_id: Resource owner of the family.
        token_id: Token involved (the offending token on reuse).
        detail: Extra structured context.
        occurred_at: When the decision was made (UTC).
    """

    outcome: AuditOutcome
    family_id: str
    client_id: str
    subject_id: str
    token_id: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.family_id:
            raise ValueError("Family ID is required")
        if not self.client_id:
            raise ValueError("Client ID is required")

    def to_dict(self) -> dict[str, Any]:
        """Flatten for logging and persistence."""
        data = asdict(self)
        data["outcome"] = self.outcome.value
        data["occurred_at"] = self.occurred_at.isoformat()
        return data
