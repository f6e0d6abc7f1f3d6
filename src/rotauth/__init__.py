"""rotauth - Refresh token rotation authority.

Issues OAuth2 refresh tokens in families, rotates them on every exchange,
and revokes a whole family when a retired token is presented again.
"""

__version__ = "0.1.0"

from rotauth.infrastructure.api.app import app

__all__ = ["app", "__version__"]
