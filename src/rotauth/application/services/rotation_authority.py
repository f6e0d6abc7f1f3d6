"""Refresh token rotation authority.

Issues token families, rotates their refresh tokens on every exchange,
detects the reuse of retired tokens and revokes whole families.

Every decision for a family is taken while holding that family's lock and
is written with a versioned compare-and-swap, so a second process writing
the same family makes the store raise ConflictRetry; the decision is then
re-taken on fresh state. The access token is signed before anything is
written, so a signing failure leaves the family untouched.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable

from rotauth.core.config import Settings, get_settings
from rotauth.core.logging import get_logger, log_context
from rotauth.domain.entities import (
    AuditEvent,
    AuditOutcome,
    GrantType,
    RefreshToken,
    RevokeReason,
    TokenFamily,
    TokenStatus,
    hash_token,
)
from rotauth.domain.exceptions import (
    ConflictRetry,
    InvalidGrant,
    ScopeExceeded,
    UpstreamUnavailable,
)
from rotauth.domain.ports import AccessTokenIssuer, SignedAccessToken, TokenStore
from rotauth.domain.services import (
    FamilyLockRegistry,
    ScopePolicy,
    format_scope,
    parse_scope,
)
from rotauth.infrastructure.audit import AuditDispatcher

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Tokens handed to the client after a grant or an exchange."""

    access_token: str
    refresh_token: str
    expires_in: int
    scope: frozenset[str]
    family_id: str
    token_type: str = "Bearer"


class RotationAuthority:
    """Issue, rotate and revoke refresh tokens organised in families."""

    def __init__(
        self,
        store: TokenStore,
        issuer: AccessTokenIssuer,
        audit: AuditDispatcher,
        *,
        scope_policy: ScopePolicy | None = None,
        locks: FamilyLockRegistry | None = None,
        default_audience: str = "rotauth-api",
        refresh_token_lifetime: timedelta = timedelta(days=30),
        reuse_grace: timedelta = timedelta(0),
        max_conflict_retries: int = 5,
        conflict_backoff: float = 0.01,
        signing_timeout: float = 2.0,
    ) -> None:
        """Initialize the authority.

        Args:
            store: Durable family and token storage.
            issuer: Access token signer.
            audit: Outbox for audit events.
            scope_policy: How requested scopes are narrowed.
            locks: Per-family lock registry, shared by every caller in the process.
            default_audience: Audience used when a grant names none.
            refresh_token_lifetime: Lifetime of every refresh token issued.
            reuse_grace: Window in which the immediate predecessor of the head
                is rejected without revoking the family. Zero disables it.
            max_conflict_retries: Attempts before a contended family is
                reported as temporarily unavailable.
            conflict_backoff: Base delay between attempts, in seconds.
            signing_timeout: Upper bound on one access token signing call.
        """
        self._store = store
        self._issuer = issuer
        self._audit = audit
        self._scope_policy = scope_policy or ScopePolicy("strict")
        self._locks = locks or FamilyLockRegistry()
        self._default_audience = default_audience
        self._refresh_token_lifetime = refresh_token_lifetime
        self._reuse_grace = reuse_grace
        self._max_conflict_retries = max(1, max_conflict_retries)
        self._conflict_backoff = conflict_backoff
        self._signing_timeout = signing_timeout

    @classmethod
    def from_settings(
        cls,
        store: TokenStore,
        issuer: AccessTokenIssuer,
        audit: AuditDispatcher,
        settings: Settings | None = None,
    ) -> "RotationAuthority":
        """Build an authority configured from application settings."""
        settings = settings or get_settings()
        return cls(
            store,
            issuer,
            audit,
            scope_policy=ScopePolicy(settings.scope_policy),
            default_audience=settings.default_audience,
            refresh_token_lifetime=timedelta(days=settings.refresh_token_expire_days),
            reuse_grace=timedelta(seconds=settings.reuse_grace_seconds),
            max_conflict_retries=settings.conflict_max_retries,
            conflict_backoff=settings.conflict_backoff_ms / 1000,
            signing_timeout=settings.signing_timeout_seconds,
        )

    async def grant(
        self,
        client_id: str,
        subject_id: str,
        scope: str | Iterable[str] | None = None,
        audience: str | None = None,
        grant_type: GrantType = GrantType.AUTHORIZATION_CODE,
    ) -> TokenPair:
        """Open a new family after a successful initial grant.

        Raises:
            ValueError: If client_id or subject_id is empty.
            UpstreamUnavailable: If the access token cannot be signed.
        """
        if not client_id:
            raise ValueError("client_id is required")
        if not subject_id:
            raise ValueError("subject_id is required")

        granted_scope = parse_scope(scope)
        audience = audience or self._default_audience
        family = TokenFamily(
            client_id=client_id,
            subject_id=subject_id,
            scope=granted_scope,
            audience=audience,
            grant_type=grant_type,
        )
        root, raw_token = RefreshToken.generate(
            family_id=family.id,
            client_id=client_id,
            subject_id=subject_id,
            scope=granted_scope,
            audience=audience,
            lifetime=self._refresh_token_lifetime,
        )
        family = replace(family, head_token_id=root.id)

        access = await self._sign(subject_id, client_id, granted_scope, audience)
        await self._store.create_family(family, root)

        self._emit(
            AuditOutcome.GRANT_ISSUED,
            family,
            client_id,
            token_id=root.id,
            grant_type=grant_type.value,
            scope=format_scope(granted_scope),
        )
        logger.info(
            "Token family created",
            family_id=family.id,
            client_id=client_id,
            grant_type=grant_type.value,
        )
        return TokenPair(
            access_token=access.token,
            refresh_token=raw_token,
            expires_in=access.expires_in,
            scope=granted_scope,
            family_id=family.id,
            token_type=access.token_type,
        )

    async def exchange(
        self,
        refresh_token: str,
        client_id: str,
        requested_scope: str | Iterable[str] | None = None,
    ) -> TokenPair:
        """Exchange a refresh token for a new token pair.

        Raises:
            InvalidGrant: Unknown, reused, expired or revoked token, or a
                token presented by another client.
            ScopeExceeded: The requested scope is not allowed by the policy.
            UpstreamUnavailable: Signing failed, or the family stayed
                contended for every retry.
        """
        token_id = hash_token(refresh_token)
        token = await self._store.get_token(token_id)
        if token is None:
            logger.info("Exchange rejected: unknown refresh token", client_id=client_id)
            raise InvalidGrant("unknown_token")

        requested = parse_scope(requested_scope) if requested_scope is not None else None

        with log_context(family_id=token.family_id, client_id=client_id):
            async with self._locks.hold(token.family_id):
                for attempt in range(1, self._max_conflict_retries + 1):
                    try:
                        return await self._exchange_once(token_id, client_id, requested)
                    except ConflictRetry as e:
                        logger.debug(
                            "Family changed during exchange, retrying",
                            expected_version=e.expected_version,
                            attempt=attempt,
                        )
                        await asyncio.sleep(self._conflict_backoff * attempt)

        logger.error(
            "Exchange abandoned after repeated conflicts",
            family_id=token.family_id,
            attempts=self._max_conflict_retries,
        )
        raise UpstreamUnavailable("Token family is busy, retry later")

    async def _exchange_once(
        self,
        token_id: str,
        client_id: str,
        requested: frozenset[str] | None,
    ) -> TokenPair:
        now = datetime.now(timezone.utc)
        token = await self._store.get_token(token_id)
        family = await self._store.get_family(token.family_id) if token else None
        if token is None or family is None:
            # Purged while this request waited for the lock
            raise InvalidGrant("unknown_token")

        if family.revoked:
            self._emit(AuditOutcome.FAMILY_REVOKED_EXCHANGE_ATTEMPT, family, client_id, token_id=token.id)
            raise InvalidGrant("family_revoked")

        if not token.is_active or not family.is_head(token.id):
            if token.client_id == client_id and await self._within_reuse_grace(
                token, family, now
            ):
                self._emit(AuditOutcome.CONCURRENT_ROTATION, family, client_id, token_id=token.id)
                raise InvalidGrant("concurrent_rotation")
            await self._revoke_on_reuse(token, family, client_id, now)
            raise InvalidGrant("reuse_detected")

        if token.client_id != client_id:
            self._emit(
                AuditOutcome.CLIENT_MISMATCH,
                family,
                client_id,
                token_id=token.id,
                expected_client_id=token.client_id,
            )
            raise InvalidGrant("client_mismatch")

        if token.is_expired(now):
            self._emit(AuditOutcome.TOKEN_EXPIRED, family, client_id, token_id=token.id)
            raise InvalidGrant("token_expired")

        try:
            scope = self._scope_policy.resolve(family.scope, requested)
        except ScopeExceeded:
            self._emit(
                AuditOutcome.SCOPE_EXCEEDED,
                family,
                client_id,
                token_id=token.id,
                requested_scope=format_scope(requested or ()),
            )
            raise

        try:
            access = await self._sign(family.subject_id, client_id, scope, family.audience)
        except UpstreamUnavailable:
            self._emit(AuditOutcome.UPSTREAM_UNAVAILABLE, family, client_id, token_id=token.id)
            raise

        successor, raw_token = RefreshToken.generate(
            family_id=family.id,
            client_id=client_id,
            subject_id=family.subject_id,
            scope=family.scope,
            audience=family.audience,
            lifetime=self._refresh_token_lifetime,
            predecessor_id=token.id,
        )
        await self._store.rotate(family, token.id, successor, now)

        self._emit(
            AuditOutcome.EXCHANGE_SUCCEEDED,
            family,
            client_id,
            token_id=successor.id,
            predecessor_id=token.id,
            scope=format_scope(scope),
        )
        return TokenPair(
            access_token=access.token,
            refresh_token=raw_token,
            expires_in=access.expires_in,
            scope=scope,
            family_id=family.id,
            token_type=access.token_type,
        )

    async def _within_reuse_grace(
        self, token: RefreshToken, family: TokenFamily, now: datetime
    ) -> bool:
        """Check whether a retired token is the just-replaced predecessor of the head."""
        if self._reuse_grace <= timedelta(0):
            return False
        if token.status is not TokenStatus.ROTATED or token.rotated_at is None:
            return False
        if family.head_token_id is None or now - token.rotated_at > self._reuse_grace:
            return False
        head = await self._store.get_token(family.head_token_id)
        return head is not None and head.predecessor_id == token.id

    async def _revoke_on_reuse(
        self,
        token: RefreshToken,
        family: TokenFamily,
        client_id: str,
        now: datetime,
    ) -> None:
        _, revoked_count = await self._store.revoke_family(
            family, RevokeReason.REUSE_DETECTED, now
        )
        self._emit(
            AuditOutcome.REUSE_DETECTED,
            family,
            client_id,
            token_id=token.id,
            token_status=token.status.value,
            revoked_tokens=revoked_count,
        )
        logger.warning(
            "Refresh token reuse detected, family revoked",
            family_id=family.id,
            client_id=client_id,
            revoked_tokens=revoked_count,
        )

    async def revoke_token(
        self,
        refresh_token: str,
        client_id: str | None = None,
        reason: RevokeReason = RevokeReason.USER_REVOKED,
    ) -> bool:
        """Revoke the family a refresh token belongs to.

        Returns:
            True if this call revoked the family. Unknown tokens, tokens of
            another client and already revoked families return False.
        """
        token = await self._store.get_token(hash_token(refresh_token))
        if token is None:
            logger.info("Revocation ignored: unknown refresh token", client_id=client_id)
            return False
        if client_id is not None and token.client_id != client_id:
            logger.warning(
                "Revocation ignored: token belongs to another client",
                family_id=token.family_id,
                client_id=client_id,
            )
            return False
        return await self.revoke_family(
            token.family_id, reason, requested_by=client_id or token.client_id
        )

    async def revoke_family(
        self,
        family_id: str,
        reason: RevokeReason = RevokeReason.ADMIN_REVOKED,
        requested_by: str | None = None,
    ) -> bool:
        """Revoke a family and every active token in it.

        Returns:
            True if this call revoked the family.
        """
        async with self._locks.hold(family_id):
            for attempt in range(1, self._max_conflict_retries + 1):
                family = await self._store.get_family(family_id)
                if family is None or family.revoked:
                    return False
                try:
                    _, revoked_count = await self._store.revoke_family(
                        family, reason, datetime.now(timezone.utc)
                    )
                except ConflictRetry:
                    await asyncio.sleep(self._conflict_backoff * attempt)
                    continue

                self._emit(
                    AuditOutcome.FAMILY_REVOKED,
                    family,
                    requested_by or family.client_id,
                    reason=reason.value,
                    revoked_tokens=revoked_count,
                )
                logger.info(
                    "Token family revoked",
                    family_id=family_id,
                    reason=reason.value,
                    revoked_tokens=revoked_count,
                )
                return True

        raise UpstreamUnavailable("Token family is busy, retry later")

    async def get_family(self, family_id: str) -> TokenFamily | None:
        """Read a family without taking its lock."""
        return await self._store.get_family(family_id)

    async def list_family_tokens(self, family_id: str) -> list[RefreshToken]:
        """Read a family's rotation chain without taking its lock."""
        return await self._store.list_family_tokens(family_id)

    async def purge_inactive(self, older_than_days: int) -> int:
        """Delete families revoked or idle for longer than the given days.

        Returns:
            Number of families deleted.
        """
        now = datetime.now(timezone.utc)
        deleted = await self._store.purge(now - timedelta(days=older_than_days), now)
        logger.info("Inactive token families purged", deleted=deleted, older_than_days=older_than_days)
        return deleted

    async def _sign(
        self,
        subject_id: str,
        client_id: str,
        scope: frozenset[str],
        audience: str,
    ) -> SignedAccessToken:
        try:
            return await asyncio.wait_for(
                self._issuer.sign(subject_id, client_id, scope, audience),
                timeout=self._signing_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Access token signing timed out", client_id=client_id)
            raise UpstreamUnavailable("Access token signing timed out") from e
        except UpstreamUnavailable:
            raise
        except Exception as e:
            logger.error("Access token signing failed", client_id=client_id, error=str(e))
            raise UpstreamUnavailable("Access token signing failed") from e

    def _emit(
        self,
        outcome: AuditOutcome,
        family: TokenFamily,
        client_id: str,
        token_id: str | None = None,
        **detail: object,
    ) -> None:
        self._audit.emit(
            AuditEvent(
                outcome=outcome,
                family_id=family.id,
                client_id=client_id,
                subject_id=family.subject_id,
                token_id=token_id,
                detail=dict(detail),
            )
        )
