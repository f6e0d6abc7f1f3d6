"""Unit tests for SqlAlchemyTokenStore."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from rotauth.domain.entities import RefreshToken, RevokeReason, TokenFamily, TokenStatus
from rotauth.domain.exceptions import ConflictRetry, UpstreamUnavailable
from rotauth.infrastructure.persistence.token_store import SqlAlchemyTokenStore


async def _open_family(store: SqlAlchemyTokenStore) -> tuple[TokenFamily, RefreshToken]:
    family = TokenFamily(
        client_id="client-a",
        subject_id="user-1",
        scope=frozenset({"read"}),
        audience="api",
    )
    root, _ = RefreshToken.generate(
        family.id, "client-a", "user-1", family.scope, "api", timedelta(days=1)
    )
    family = replace(family, head_token_id=root.id)
    await store.create_family(family, root)
    return family, root


def _successor(family: TokenFamily, predecessor: RefreshToken) -> RefreshToken:
    token, _ = RefreshToken.generate(
        family.id, "client-a", "user-1", family.scope, "api", timedelta(days=1),
        predecessor_id=predecessor.id,
    )
    return token


class TestSqlAlchemyTokenStore:
    """Test suite for SqlAlchemyTokenStore."""

    @pytest.mark.asyncio
    async def test_rotate(self, store):
        family, root = await _open_family(store)
        successor = _successor(family, root)
        now = datetime.now(timezone.utc)

        updated = await store.rotate(family, root.id, successor, now)

        assert updated.head_token_id == successor.id
        assert updated.version == family.version + 1
        stored = await store.get_family(family.id)
        assert stored.head_token_id == successor.id
        assert stored.version == updated.version
        assert (await store.get_token(root.id)).status is TokenStatus.ROTATED
        assert (await store.get_token(successor.id)).status is TokenStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_stale_rotate_raises_conflict_and_writes_nothing(self, store):
        family, root = await _open_family(store)
        now = datetime.now(timezone.utc)

        await store.rotate(family, root.id, _successor(family, root), now)
        loser = _successor(family, root)

        with pytest.raises(ConflictRetry) as exc_info:
            await store.rotate(family, root.id, loser, now)

        assert exc_info.value.family_id == family.id
        assert exc_info.value.expected_version == family.version
        assert await store.get_token(loser.id) is None
        assert len(await store.list_family_tokens(family.id)) == 2

    @pytest.mark.asyncio
    async def test_stale_revoke_raises_conflict(self, store):
        family, root = await _open_family(store)
        now = datetime.now(timezone.utc)
        await store.rotate(family, root.id, _successor(family, root), now)

        with pytest.raises(ConflictRetry):
            await store.revoke_family(family, RevokeReason.REUSE_DETECTED, now)

        assert (await store.get_family(family.id)).revoked is False

    @pytest.mark.asyncio
    async def test_revoke_family(self, store):
        family, root = await _open_family(store)
        now = datetime.now(timezone.utc)

        revoked, count = await store.revoke_family(family, RevokeReason.ADMIN_REVOKED, now)

        assert count == 1
        assert revoked.revoked is True
        assert revoked.head_token_id is None
        stored = await store.get_family(family.id)
        assert stored.revoked is True
        assert stored.revoke_reason is RevokeReason.ADMIN_REVOKED
        assert (await store.get_token(root.id)).status is TokenStatus.REVOKED

    @pytest.mark.asyncio
    async def test_rotate_revoked_family_conflicts(self, store):
        family, root = await _open_family(store)
        now = datetime.now(timezone.utc)
        revoked, _ = await store.revoke_family(family, RevokeReason.ADMIN_REVOKED, now)

        with pytest.raises(ConflictRetry):
            await store.rotate(revoked, root.id, _successor(family, root), now)

    @pytest.mark.asyncio
    async def test_purge(self, store):
        family, _ = await _open_family(store)
        now = datetime.now(timezone.utc)
        await store.revoke_family(family, RevokeReason.USER_REVOKED, now - timedelta(days=40))

        assert await store.purge(now - timedelta(days=30), now) == 1
        assert await store.get_family(family.id) is None
        assert await store.list_family_tokens(family.id) == []

    @pytest.mark.asyncio
    async def test_database_errors_become_upstream_unavailable(self, store, monkeypatch):
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr(store, "_session_factory", broken_factory)

        with pytest.raises(UpstreamUnavailable):
            await store.get_token("tok-1")
