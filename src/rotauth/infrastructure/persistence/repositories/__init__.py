"""Repository implementations for data access."""

from rotauth.infrastructure.persistence.repositories.audit_event_repository import (
    AuditEventRepository,
)
from rotauth.infrastructure.persistence.repositories.refresh_token_repository import (
    RefreshTokenRepository,
)
from rotauth.infrastructure.persistence.repositories.token_family_repository import (
    TokenFamilyRepository,
)

__all__ = [
    "AuditEventRepository",
    "RefreshTokenRepository",
    "TokenFamilyRepository",
]
