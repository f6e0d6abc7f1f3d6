"""Authentication infrastructure components.

This module provides the JWT access token issuer used by the rotation
authority.
"""

from rotauth.infrastructure.auth.jwt_service import JWTService, jwt_service

__all__ = [
    "JWTService",
    "jwt_service",
]
