"""Pydantic schemas for API request/response validation."""

from rotauth.infrastructure.api.schemas.token_schemas import (
    FamilyResponse,
    GrantRequest,
    GrantResponse,
    OAuthErrorResponse,
    PurgeResponse,
    RefreshTokenView,
    RevokeFamilyResponse,
    TokenResponse,
)

__all__ = [
    "FamilyResponse",
    "GrantRequest",
    "GrantResponse",
    "OAuthErrorResponse",
    "PurgeResponse",
    "RefreshTokenView",
    "RevokeFamilyResponse",
    "TokenResponse",
]
