"""Refresh token entity.

A refresh token is one link in a family's rotation chain. Only the hash of
the bearer secret is kept.
"""

import hashlib
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum

TOKEN_PREFIX = "rt_"


class TokenStatus(str, Enum):
    """Lifecycle state of a refresh token."""

    ACTIVE = "active"
    ROTATED = "rotated"
    REVOKED = "revoked"


def hash_token(raw_token: str) -> str:
    """Return the SHA-256 hex digest used as the token id."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


@dataclass(frozen=True)
class RefreshToken:
    """Refresh token entity.

    Attributes:
        id: SHA-256 hash of the bearer secret.
        family_id: Family this token belongs to.
        client_id: OAuth client the token was issued to.
        subject_id: Resource owner.
        scope: Scope of the original grant.
        audience: Audience access tokens are minted for.
        expires_at: After this instant the token cannot be exchanged.
        status: Lifecycle state.
        predecessor_id: Token this one replaced (None for the family root).
        issued_at: When the token was created.
        rotated_at: When the token was exchanged.
        revoked_at: When the token was revoked.
    """

    id: str
    family_id: str
    client_id: str
    subject_id: str
    scope: frozenset[str]
    audience: str
    expires_at: datetime
    status: TokenStatus = TokenStatus.ACTIVE
    predecessor_id: str | None = None
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rotated_at: datetime | None = None
    revoked_at: datetime | None = None

    @classmethod
    def generate(
        cls,
        family_id: str,
        client_id: str,
        subject_id: str,
        scope: frozenset[str],
        audience: str,
        lifetime: timedelta,
        predecessor_id: str | None = None,
    ) -> tuple["RefreshToken", str]:
        """Generate a new active token and its bearer secret.

        Returns:
            A tuple of (RefreshToken entity, raw_token_string).
        """
        raw_token = TOKEN_PREFIX + secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        entity = cls(
            id=hash_token(raw_token),
            family_id=family_id,
            client_id=client_id,
            subject_id=subject_id,
            scope=frozenset(scope),
            audience=audience,
            expires_at=now + lifetime,
            predecessor_id=predecessor_id,
            issued_at=now,
        )
        return entity, raw_token

    @property
    def is_root(self) -> bool:
        return self.predecessor_id is None

    @property
    def is_active(self) -> bool:
        return self.status is TokenStatus.ACTIVE

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token is past its expiry."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def rotated(self, at: datetime) -> "RefreshToken":
        """Return a copy retired by a successful exchange."""
        if not self.is_active:
            raise ValueError(f"Cannot rotate a {self.status.value} token")
        return replace(self, status=TokenStatus.ROTATED, rotated_at=at)

    def revoked(self, at: datetime) -> "RefreshToken":
        """Return a revoked copy."""
        return replace(self, status=TokenStatus.REVOKED, revoked_at=self.revoked_at or at)
