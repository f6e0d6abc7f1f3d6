"""Domain entities for rotauth.

Entities are pure Python dataclasses that represent core business concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from rotauth.domain.entities.audit_event import AuditEvent, AuditOutcome
from rotauth.domain.entities.refresh_token import (
    TOKEN_PREFIX,
    RefreshToken,
    TokenStatus,
    hash_token,
)
from rotauth.domain.entities.token_family import (
    GrantType,
    RevokeReason,
    TokenFamily,
    new_family_id,
)

__all__ = [
    "AuditEvent",
    "AuditOutcome",
    "GrantType",
    "RefreshToken",
    "RevokeReason",
    "TOKEN_PREFIX",
    "TokenFamily",
    "TokenStatus",
    "hash_token",
    "new_family_id",
]
