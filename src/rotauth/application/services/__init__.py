"""Application services for rotauth."""

from rotauth.application.services.rotation_authority import (
    RotationAuthority,
    TokenPair,
)

__all__ = [
    "RotationAuthority",
    "TokenPair",
]
