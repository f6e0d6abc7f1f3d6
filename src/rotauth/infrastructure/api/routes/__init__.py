"""API route modules."""

from rotauth.infrastructure.api.routes.admin_router import router as admin_router
from rotauth.infrastructure.api.routes.token_router import router as token_router

__all__ = [
    "admin_router",
    "token_router",
]
