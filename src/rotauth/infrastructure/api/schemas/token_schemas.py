"""Pydantic schemas for the token and admin endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from rotauth.domain.entities import GrantType


class TokenResponse(BaseModel):
    """Successful token response (RFC 6749 section 5.1)."""

    access_token: str = Field(..., description="Signed JWT access token")
    token_type: str = Field(default="Bearer", description="Access token type")
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    refresh_token: str = Field(..., description="Opaque refresh token, single use")
    scope: str = Field(default="", description="Space-delimited scope of the access token")


class OAuthErrorResponse(BaseModel):
    """Error response (RFC 6749 section 5.2)."""

    error: str = Field(..., description="OAuth2 error code")
    error_description: str | None = Field(None, description="Human-readable description")


class GrantRequest(BaseModel):
    """Request body for opening a token family after an initial grant."""

    client_id: str = Field(..., min_length=1, max_length=255)
    subject_id: str = Field(..., min_length=1, max_length=255)
    scope: str = Field(default="", description="Space-delimited granted scope")
    audience: str | None = Field(None, max_length=255)
    grant_type: GrantType = Field(default=GrantType.AUTHORIZATION_CODE)


class GrantResponse(TokenResponse):
    """Token response returned to the admin caller, with the family ID."""

    family_id: str = Field(..., description="ID of the new token family")


class RefreshTokenView(BaseModel):
    """One link of a family's rotation chain."""

    id: str = Field(..., description="SHA-256 of the refresh token")
    status: str
    predecessor_id: str | None
    issued_at: datetime
    expires_at: datetime
    rotated_at: datetime | None
    revoked_at: datetime | None


class FamilyResponse(BaseModel):
    """Family state and rotation chain."""

    id: str
    client_id: str
    subject_id: str
    scope: str
    audience: str
    grant_type: str
    head_token_id: str | None
    revoked: bool
    revoked_at: datetime | None
    revoke_reason: str | None
    version: int
    created_at: datetime
    last_used_at: datetime
    tokens: list[RefreshTokenView] = Field(default_factory=list)


class RevokeFamilyResponse(BaseModel):
    """Result of an administrative revocation."""

    family_id: str
    revoked: bool = Field(..., description="False if the family was already revoked")


class PurgeResponse(BaseModel):
    """Result of a retention run."""

    deleted: int
