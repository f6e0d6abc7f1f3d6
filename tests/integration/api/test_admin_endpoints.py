"""Integration tests for the admin endpoints."""

import pytest
from httpx import AsyncClient

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.mark.asyncio
async def test_admin_requires_key(client: AsyncClient):
    missing = await client.get("/api/v1/admin/families/fam_1")
    wrong = await client.get("/api/v1/admin/families/fam_1", headers={"X-Admin-Key": "nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_admin_rejects_non_ascii_key(client: AsyncClient, monkeypatch):
    from rotauth.core.config import get_settings

    wrong = await client.get(
        "/api/v1/admin/families/fam_1",
        headers={"X-Admin-Key": "clé-secrète".encode("utf-8")},
    )
    assert wrong.status_code == 401

    monkeypatch.setattr(get_settings(), "admin_api_key", "clé-secrète")
    ascii_header = await client.get("/api/v1/admin/families/fam_1", headers=ADMIN_HEADERS)
    assert ascii_header.status_code == 401


@pytest.mark.asyncio
async def test_admin_disabled_without_key(client: AsyncClient, monkeypatch):
    from rotauth.core.config import get_settings

    monkeypatch.setattr(get_settings(), "admin_api_key", None)

    response = await client.get("/api/v1/admin/families/fam_1", headers=ADMIN_HEADERS)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_grant_and_inspect_family(client: AsyncClient):
    created = await client.post(
        "/api/v1/admin/grants",
        json={"client_id": "client-a", "subject_id": "user-1", "scope": "write read"},
        headers=ADMIN_HEADERS,
    )

    assert created.status_code == 201
    grant = created.json()
    assert grant["scope"] == "read write"
    assert grant["family_id"].startswith("fam_")

    exchanged = await client.post(
        "/api/v1/oauth/token",
        data={
            "grant_type": "refresh_token",
            "refresh_token": grant["refresh_token"],
            "client_id": "client-a",
        },
    )
    assert exchanged.status_code == 200

    family = await client.get(f"/api/v1/admin/families/{grant['family_id']}", headers=ADMIN_HEADERS)
    assert family.status_code == 200
    data = family.json()
    assert data["client_id"] == "client-a"
    assert data["revoked"] is False
    assert data["version"] == 2
    assert [t["status"] for t in data["tokens"]] == ["rotated", "active"]
    assert data["tokens"][1]["predecessor_id"] == data["tokens"][0]["id"]
    assert data["head_token_id"] == data["tokens"][1]["id"]


@pytest.mark.asyncio
async def test_create_grant_validation(client: AsyncClient):
    response = await client.post(
        "/api/v1/admin/grants",
        json={"client_id": "", "subject_id": "user-1"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_revoke_family(client: AsyncClient, authority):
    pair = await authority.grant("client-a", "user-1")

    first = await client.delete(f"/api/v1/admin/families/{pair.family_id}", headers=ADMIN_HEADERS)
    second = await client.delete(f"/api/v1/admin/families/{pair.family_id}", headers=ADMIN_HEADERS)

    assert first.status_code == 200
    assert first.json() == {"family_id": pair.family_id, "revoked": True}
    assert second.json()["revoked"] is False

    family = await client.get(f"/api/v1/admin/families/{pair.family_id}", headers=ADMIN_HEADERS)
    assert family.json()["revoke_reason"] == "admin_revoked"
    assert family.json()["head_token_id"] is None


@pytest.mark.asyncio
async def test_unknown_family(client: AsyncClient):
    get = await client.get("/api/v1/admin/families/fam_missing", headers=ADMIN_HEADERS)
    delete = await client.delete("/api/v1/admin/families/fam_missing", headers=ADMIN_HEADERS)

    assert get.status_code == 404
    assert delete.status_code == 404


@pytest.mark.asyncio
async def test_purge(client: AsyncClient, authority):
    pair = await authority.grant("client-a", "user-1")
    await authority.revoke_family(pair.family_id)

    kept = await client.post("/api/v1/admin/purge", params={"days": 30}, headers=ADMIN_HEADERS)
    assert kept.json() == {"deleted": 0}

    purged = await client.post("/api/v1/admin/purge", params={"days": 0}, headers=ADMIN_HEADERS)
    assert purged.status_code == 200
    assert purged.json() == {"deleted": 1}
