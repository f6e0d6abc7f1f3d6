"""Token family entity.

The family is the aggregate root of a rotation chain: every status check and
transition for its tokens goes through it, and its version counter is the
compare-and-swap point for concurrent writers.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


class GrantType(str, Enum):
    """Initial grants that can open a family."""

    AUTHORIZATION_CODE = "authorization_code"
    DEVICE_CODE = "urn:ietf:params:oauth:grant-type:device_code"
    PASSWORD = "password"


class RevokeReason(str, Enum):
    """Why a family was revoked."""

    REUSE_DETECTED = "reuse_detected"
    USER_REVOKED = "user_revoked"
    ADMIN_REVOKED = "admin_revoked"


def new_family_id() -> str:
    return f"fam_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class TokenFamily:
    """Rotation lineage descending from one original grant.

    Attributes:
        id: Family identifier.
        client_id: OAuth client of the original grant.
        subject_id: Resource owner of the original grant.
        scope: Scope of the original grant; exchanges may only narrow it.
        audience: Audience access tokens are minted for.
        grant_type: Grant that opened the family.
        head_token_id: The single active token, None once revoked.
        revoked: Monotonic revocation flag.
        revoked_at: When the family was revoked.
        revoke_reason: Why the family was revoked.
        version: Bumped on every transition.
        created_at: When the family was opened.
        last_used_at: Last successful exchange (or creation).
    """

    client_id: str
    subject_id: str
    scope: frozenset[str]
    audience: str
    grant_type: GrantType = GrantType.AUTHORIZATION_CODE
    id: str = field(default_factory=new_family_id)
    head_token_id: str | None = None
    revoked: bool = False
    revoked_at: datetime | None = None
    revoke_reason: RevokeReason | None = None
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_used_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_head(self, token_id: str) -> bool:
        return not self.revoked and self.head_token_id == token_id

    def advanced(self, new_head_id: str, at: datetime) -> "TokenFamily":
        """Return the family after a successful rotation."""
        if self.revoked:
            raise ValueError("Cannot rotate a revoked family")
        return replace(
            self,
            head_token_id=new_head_id,
            version=self.version + 1,
            last_used_at=at,
        )

    def revoked_copy(self, reason: RevokeReason, at: datetime) -> "TokenFamily":
        """Return the family after revocation.

        Revoking an already revoked family keeps the first reason and time.
        """
        if self.revoked:
            return self
        return replace(
            self,
            head_token_id=None,
            revoked=True,
            revoked_at=at,
            revoke_reason=reason,
            version=self.version + 1,
        )
