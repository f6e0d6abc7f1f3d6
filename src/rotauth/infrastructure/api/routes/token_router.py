"""OAuth2 token endpoint routes.

Provides the refresh_token grant and token revocation (RFC 7009).
Rotation errors propagate to the handlers registered in app.py.
"""

from fastapi import APIRouter, Form, status
from fastapi.responses import JSONResponse, Response

from rotauth.core.logging import get_logger
from rotauth.domain.entities import RevokeReason
from rotauth.domain.services import format_scope
from rotauth.infrastructure.api.dependencies import AuthorityDep
from rotauth.infrastructure.api.schemas import OAuthErrorResponse, TokenResponse

logger = get_logger(__name__)

router = APIRouter()

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def oauth_error(error: str, description: str, status_code: int = 400) -> JSONResponse:
    """Build an OAuth2 error response."""
    return JSONResponse(
        status_code=status_code,
        content=OAuthErrorResponse(error=error, error_description=description).model_dump(),
        headers=NO_STORE_HEADERS,
    )


@router.post(
    "/token",
    response_model=TokenResponse,
    responses={
        400: {"model": OAuthErrorResponse, "description": "invalid_grant, invalid_scope or invalid_request"},
        503: {"model": OAuthErrorResponse, "description": "temporarily_unavailable"},
    },
)
async def exchange_token(
    authority: AuthorityDep,
    grant_type: str = Form(...),
    client_id: str = Form(...),
    refresh_token: str | None = Form(None),
    scope: str | None = Form(None),
) -> TokenResponse | JSONResponse:
    """Exchange a refresh token for a new access token and refresh token.

    The presented refresh token is retired on success. Presenting a retired
    token again revokes its whole family.
    """
    if grant_type != "refresh_token":
        return oauth_error(
            "unsupported_grant_type",
            "Only the refresh_token grant is served by this endpoint",
        )
    if not refresh_token:
        return oauth_error("invalid_request", "refresh_token is required")

    pair = await authority.exchange(refresh_token, client_id, requested_scope=scope)

    body = TokenResponse(
        access_token=pair.access_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
        refresh_token=pair.refresh_token,
        scope=format_scope(pair.scope),
    )
    return JSONResponse(content=body.model_dump(), headers=NO_STORE_HEADERS)


@router.post("/revoke", status_code=status.HTTP_200_OK)
async def revoke_token(
    authority: AuthorityDep,
    token: str = Form(...),
    client_id: str | None = Form(None),
    token_type_hint: str | None = Form(None),
) -> Response:
    """Revoke a refresh token and its family.

    Always answers 200, whether or not the token was known.
    """
    if token_type_hint not in (None, "refresh_token"):
        logger.debug("Ignoring token_type_hint", token_type_hint=token_type_hint)

    await authority.revoke_token(token, client_id=client_id, reason=RevokeReason.USER_REVOKED)
    return Response(status_code=status.HTTP_200_OK, headers=NO_STORE_HEADERS)
