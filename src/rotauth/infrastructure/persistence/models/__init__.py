"""SQLAlchemy models for rotauth tables.

All models inherit from the Base class defined in database.py and are
automatically created on application startup in development mode.
"""

from rotauth.infrastructure.persistence.models.audit_event import AuditEventModel
from rotauth.infrastructure.persistence.models.refresh_token import RefreshTokenModel
from rotauth.infrastructure.persistence.models.token_family import TokenFamilyModel

__all__ = [
    "AuditEventModel",
    "RefreshTokenModel",
    "TokenFamilyModel",
]
