"""Integration tests for the OAuth2 token and revocation endpoints."""

import pytest
from httpx import AsyncClient

TOKEN_URL = "/api/v1/oauth/token"
REVOKE_URL = "/api/v1/oauth/revoke"


def _refresh_form(refresh_token: str, client_id: str = "client-a", **extra) -> dict:
    return {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
        **extra,
    }


@pytest.mark.asyncio
async def test_refresh_token_exchange(client: AsyncClient, authority):
    """A valid refresh token returns a new token pair."""
    pair = await authority.grant("client-a", "user-1", scope="read write")

    response = await client.post(TOKEN_URL, data=_refresh_form(pair.refresh_token))

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    data = response.json()
    assert data["token_type"] == "Bearer"
    assert data["scope"] == "read write"
    assert data["expires_in"] > 0
    assert data["refresh_token"].startswith("rt_")
    assert data["refresh_token"] != pair.refresh_token
    assert data["access_token"]


@pytest.mark.asyncio
async def test_reused_refresh_token_revokes_family(client: AsyncClient, authority):
    pair = await authority.grant("client-a", "user-1")

    first = await client.post(TOKEN_URL, data=_refresh_form(pair.refresh_token))
    assert first.status_code == 200
    new_token = first.json()["refresh_token"]

    replay = await client.post(TOKEN_URL, data=_refresh_form(pair.refresh_token))
    assert replay.status_code == 400
    assert replay.json() == {"error": "invalid_grant", "error_description": "Access Denied"}

    # The legitimate head died with the family
    head = await client.post(TOKEN_URL, data=_refresh_form(new_token))
    assert head.status_code == 400
    assert head.json()["error"] == "invalid_grant"


@pytest.mark.asyncio
async def test_unknown_and_revoked_look_the_same(client: AsyncClient, authority):
    pair = await authority.grant("client-a", "user-1")
    await authority.revoke_family(pair.family_id)

    unknown = await client.post(TOKEN_URL, data=_refresh_form("rt_nope"))
    revoked = await client.post(TOKEN_URL, data=_refresh_form(pair.refresh_token))

    assert unknown.status_code == revoked.status_code == 400
    assert unknown.json() == revoked.json()


@pytest.mark.asyncio
async def test_scope_exceeded(client: AsyncClient, authority):
    pair = await authority.grant("client-a", "user-1", scope="read")

    response = await client.post(
        TOKEN_URL, data=_refresh_form(pair.refresh_token, scope="read admin")
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_scope"


@pytest.mark.asyncio
async def test_signing_outage_is_retryable(client: AsyncClient, authority, issuer):
    pair = await authority.grant("client-a", "user-1")
    issuer.fail = True

    response = await client.post(TOKEN_URL, data=_refresh_form(pair.refresh_token))

    assert response.status_code == 503
    assert response.json()["error"] == "temporarily_unavailable"
    assert response.headers["retry-after"] == "1"

    issuer.fail = False
    retry = await client.post(TOKEN_URL, data=_refresh_form(pair.refresh_token))
    assert retry.status_code == 200


@pytest.mark.asyncio
async def test_unsupported_grant_type(client: AsyncClient):
    response = await client.post(
        TOKEN_URL,
        data={"grant_type": "password", "client_id": "client-a"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "unsupported_grant_type"


@pytest.mark.asyncio
async def test_missing_refresh_token(client: AsyncClient):
    response = await client.post(
        TOKEN_URL,
        data={"grant_type": "refresh_token", "client_id": "client-a"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_revoke_endpoint(client: AsyncClient, authority):
    pair = await authority.grant("client-a", "user-1")

    response = await client.post(
        REVOKE_URL,
        data={"token": pair.refresh_token, "client_id": "client-a", "token_type_hint": "refresh_token"},
    )

    assert response.status_code == 200
    family = await authority.get_family(pair.family_id)
    assert family.revoked is True


@pytest.mark.asyncio
async def test_revoke_unknown_token_still_succeeds(client: AsyncClient):
    response = await client.post(REVOKE_URL, data={"token": "rt_unknown"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Correlation-ID": "cid_test"})

    assert response.status_code == 200
    assert response.headers["x-correlation-id"] == "cid_test"
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_liveness(client: AsyncClient):
    response = await client.get("/live")

    assert response.status_code == 200
    assert response.json()["status"] == "alive"
