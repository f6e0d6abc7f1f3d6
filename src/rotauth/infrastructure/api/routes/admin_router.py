"""Administrative routes.

Opens families for upstream grant handlers, inspects rotation chains and
revokes families. Every route requires the admin API key.
"""

from fastapi import APIRouter, HTTPException, Query, status

from rotauth.core.logging import get_logger
from rotauth.domain.entities import RevokeReason
from rotauth.domain.services import format_scope
from rotauth.infrastructure.api.dependencies import AdminDep, AuthorityDep
from rotauth.infrastructure.api.schemas import (
    FamilyResponse,
    GrantRequest,
    GrantResponse,
    PurgeResponse,
    RefreshTokenView,
    RevokeFamilyResponse,
)

logger = get_logger(__name__)

router = APIRouter(dependencies=[AdminDep])


@router.post(
    "/grants",
    status_code=status.HTTP_201_CREATED,
    response_model=GrantResponse,
)
async def create_grant(request: GrantRequest, authority: AuthorityDep) -> GrantResponse:
    """Open a token family for a completed initial grant."""
    pair = await authority.grant(
        client_id=request.client_id,
        subject_id=request.subject_id,
        scope=request.scope,
        audience=request.audience,
        grant_type=request.grant_type,
    )
    return GrantResponse(
        access_token=pair.access_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
        refresh_token=pair.refresh_token,
        scope=format_scope(pair.scope),
        family_id=pair.family_id,
    )


@router.get(
    "/families/{family_id}",
    response_model=FamilyResponse,
    responses={404: {"description": "Family not found"}},
)
async def get_family(family_id: str, authority: AuthorityDep) -> FamilyResponse:
    """Show a family and its rotation chain."""
    family = await authority.get_family(family_id)
    if family is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")

    tokens = await authority.list_family_tokens(family_id)
    return FamilyResponse(
        id=family.id,
        client_id=family.client_id,
        subject_id=family.subject_id,
        scope=format_scope(family.scope),
        audience=family.audience,
        grant_type=family.grant_type.value,
        head_token_id=family.head_token_id,
        revoked=family.revoked,
        revoked_at=family.revoked_at,
        revoke_reason=family.revoke_reason.value if family.revoke_reason else None,
        version=family.version,
        created_at=family.created_at,
        last_used_at=family.last_used_at,
        tokens=[
            RefreshTokenView(
                id=token.id,
                status=token.status.value,
                predecessor_id=token.predecessor_id,
                issued_at=token.issued_at,
                expires_at=token.expires_at,
                rotated_at=token.rotated_at,
                revoked_at=token.revoked_at,
            )
            for token in tokens
        ],
    )


@router.delete(
    "/families/{family_id}",
    response_model=RevokeFamilyResponse,
    responses={404: {"description": "Family not found"}},
)
async def revoke_family(family_id: str, authority: AuthorityDep) -> RevokeFamilyResponse:
    """Revoke a family and every active token in it."""
    if await authority.get_family(family_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")

    revoked = await authority.revoke_family(family_id, RevokeReason.ADMIN_REVOKED)
    logger.info("Admin revoked token family", family_id=family_id, changed=revoked)
    return RevokeFamilyResponse(family_id=family_id, revoked=revoked)


@router.post("/purge", response_model=PurgeResponse)
async def purge(
    authority: AuthorityDep,
    days: int = Query(30, ge=0, description="Retention period in days"),
) -> PurgeResponse:
    """Delete families revoked or idle for longer than the retention period."""
    deleted = await authority.purge_inactive(days)
    return PurgeResponse(deleted=deleted)
