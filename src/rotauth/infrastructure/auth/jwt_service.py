"""JWT access token service.

Signs the short-lived access tokens handed out next to each refresh token.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt

from rotauth.core.config import get_settings
from rotauth.core.logging import get_logger
from rotauth.domain.exceptions import UpstreamUnavailable
from rotauth.domain.ports import AccessTokenIssuer, SignedAccessToken
from rotauth.domain.services import format_scope

logger = get_logger(__name__)


class JWTService(AccessTokenIssuer):
    """Service for creating JWT access tokens."""

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        issuer: str | None = None,
        expires_delta: timedelta | None = None,
    ) -> None:
        """Initialize the JWT service.

        Args:
            secret_key: Secret key for signing tokens. If not provided,
                        uses the configured secret key from settings.
            algorithm: HMAC algorithm, defaults to the configured one.
            issuer: Value of the iss claim, defaults to the configured one.
            expires_delta: Access token lifetime, defaults to the configured one.
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._issuer = issuer
        self._expires_delta = expires_delta

    @property
    def secret_key(self) -> str:
        """Get the secret key for signing tokens."""
        return self._secret_key or get_settings().secret_key

    @property
    def algorithm(self) -> str:
        return self._algorithm or get_settings().jwt_algorithm

    @property
    def issuer(self) -> str:
        return self._issuer or get_settings().jwt_issuer

    @property
    def expires_delta(self) -> timedelta:
        if self._expires_delta is not None:
            return self._expires_delta
        return timedelta(minutes=get_settings().access_token_expire_minutes)

    def create_access_token(
        self,
        subject_id: str,
        client_id: str,
        scope: frozenset[str],
        audience: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create an access token.

        Args:
            subject_id: Resource owner the token acts for.
            client_id: OAuth client the token was issued to.
            scope: Granted scope.
            audience: Intended resource server.
            expires_delta: Custom expiration time. Defaults to config value.

        Returns:
            Encoded JWT access token.
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or self.expires_delta)

        payload = {
            "iss": self.issuer,
            "sub": subject_id,
            "aud": audience,
            "iat": now,
            "exp": expire,
            "jti": str(uuid.uuid4()),
            "client_id": client_id,
            "scope": format_scope(scope),
            "type": "access",
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    async def sign(
        self,
        subject_id: str,
        client_id: str,
        scope: frozenset[str],
        audience: str,
    ) -> SignedAccessToken:
        """Sign an access token for the rotation authority.

        Raises:
            UpstreamUnavailable: If the token could not be signed.
        """
        try:
            token = self.create_access_token(subject_id, client_id, scope, audience)
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
            logger.error("Access token signing failed", client_id=client_id, error=str(e))
            raise UpstreamUnavailable("Access token signing failed") from e

        return SignedAccessToken(token=token, expires_in=self.get_expires_in())

    def get_expires_in(self) -> int:
        """Get the access token lifetime in seconds."""
        return int(self.expires_delta.total_seconds())


# Default JWT service instance
jwt_service = JWTService()
