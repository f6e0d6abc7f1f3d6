"""SQLAlchemy implementation of the token store.

Each operation opens its own session and transaction. Transitions use the
versioned family writes of TokenFamilyRepository and turn a lost race into
ConflictRetry; the transaction is rolled back so nothing partial is kept.
"""

from datetime import datetime

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rotauth.core.logging import get_logger
from rotauth.domain.entities import RefreshToken, RevokeReason, TokenFamily
from rotauth.domain.exceptions import ConflictRetry, UpstreamUnavailable
from rotauth.domain.ports import TokenStore
from rotauth.infrastructure.persistence.repositories import (
    RefreshTokenRepository,
    TokenFamilyRepository,
)

logger = get_logger(__name__)


class SqlAlchemyTokenStore(TokenStore):
    """Token store backed by the token_families and refresh_tokens tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_family(self, family: TokenFamily, root: RefreshToken) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await TokenFamilyRepository(session).create(family)
                    await RefreshTokenRepository(session).create(root)
        except OperationalError as e:
            logger.error("Token store unavailable", operation="create_family", error=str(e))
            raise UpstreamUnavailable() from e

    async def get_token(self, token_id: str) -> RefreshToken | None:
        try:
            async with self._session_factory() as session:
                return await RefreshTokenRepository(session).get_by_id(token_id)
        except OperationalError as e:
            logger.error("Token store unavailable", operation="get_token", error=str(e))
            raise UpstreamUnavailable() from e

    async def get_family(self, family_id: str) -> TokenFamily | None:
        try:
            async with self._session_factory() as session:
                return await TokenFamilyRepository(session).get_by_id(family_id)
        except OperationalError as e:
            logger.error("Token store unavailable", operation="get_family", error=str(e))
            raise UpstreamUnavailable() from e

    async def list_family_tokens(self, family_id: str) -> list[RefreshToken]:
        try:
            async with self._session_factory() as session:
                return await RefreshTokenRepository(session).list_by_family(family_id)
        except OperationalError as e:
            logger.error("Token store unavailable", operation="list_family_tokens", error=str(e))
            raise UpstreamUnavailable() from e

    async def rotate(
        self,
        family: TokenFamily,
        exchanged_token_id: str,
        new_token: RefreshToken,
        rotated_at: datetime,
    ) -> TokenFamily:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    families = TokenFamilyRepository(session)
                    tokens = RefreshTokenRepository(session)

                    if not await families.compare_and_set_head(
                        family.id, family.version, new_token.id, rotated_at
                    ):
                        raise ConflictRetry(family.id, family.version)
                    if not await tokens.mark_rotated(exchanged_token_id, rotated_at):
                        raise ConflictRetry(family.id, family.version)
                    await tokens.create(new_token)
        except IntegrityError as e:
            # Unique active-token index caught a concurrent writer
            raise ConflictRetry(family.id, family.version) from e
        except OperationalError as e:
            logger.error("Token store unavailable", operation="rotate", error=str(e))
            raise UpstreamUnavailable() from e

        return family.advanced(new_token.id, rotated_at)

    async def revoke_family(
        self,
        family: TokenFamily,
        reason: RevokeReason,
        revoked_at: datetime,
    ) -> tuple[TokenFamily, int]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if not await TokenFamilyRepository(session).compare_and_revoke(
                        family.id, family.version, reason, revoked_at
                    ):
                        raise ConflictRetry(family.id, family.version)
                    revoked_count = await RefreshTokenRepository(
                        session
                    ).revoke_active_in_family(family.id, revoked_at)
        except OperationalError as e:
            logger.error("Token store unavailable", operation="revoke_family", error=str(e))
            raise UpstreamUnavailable() from e

        return family.revoked_copy(reason, revoked_at), revoked_count

    async def purge(self, inactive_before: datetime, now: datetime) -> int:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    families = TokenFamilyRepository(session)
                    family_ids = await families.find_purgeable_ids(inactive_before, now)
                    return await families.delete_with_tokens(family_ids)
        except OperationalError as e:
            logger.error("Token store unavailable", operation="purge", error=str(e))
            raise UpstreamUnavailable() from e
