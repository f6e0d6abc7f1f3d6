"""FastAPI dependencies for the token and admin endpoints."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from rotauth.application.services import RotationAuthority
from rotauth.core.config import Settings, get_settings
from rotauth.core.logging import get_logger

logger = get_logger(__name__)


def get_rotation_authority(request: Request) -> RotationAuthority:
    """Get the rotation authority from app state.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    authority = getattr(request.app.state, "rotation_authority", None)
    if authority is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rotation authority not initialized",
        )
    return authority


async def require_admin(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    x_admin_key: Annotated[str | None, Header()] = None,
) -> None:
    """Check the admin API key.

    The header name is configurable; ``X-Admin-Key`` is read by default.

    Raises:
        HTTPException: 403 if admin access is disabled, 401 if the key is wrong.
    """
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API is disabled",
        )

    provided = x_admin_key
    if settings.admin_api_key_header.lower() != "x-admin-key":
        provided = request.headers.get(settings.admin_api_key_header)

    if provided is None or not secrets.compare_digest(
        provided.encode(), settings.admin_api_key.encode()
    ):
        logger.info("Admin authentication failed", path=str(request.url.path))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


AuthorityDep = Annotated[RotationAuthority, Depends(get_rotation_authority)]
AdminDep = Depends(require_admin)
