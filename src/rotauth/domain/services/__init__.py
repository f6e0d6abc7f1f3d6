"""Domain services for rotauth.

Services contain business logic that doesn't naturally fit within a single entity.
They have no dependencies on infrastructure or external frameworks.
"""

from rotauth.domain.services.family_lock import FamilyLockRegistry
from rotauth.domain.services.scope_policy import (
    ScopePolicy,
    format_scope,
    parse_scope,
)

__all__ = [
    "FamilyLockRegistry",
    "ScopePolicy",
    "format_scope",
    "parse_scope",
]
