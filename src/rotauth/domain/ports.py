"""Abstract collaborators of the rotation authority."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from rotauth.domain.entities import (
    AuditEvent,
    RefreshToken,
    RevokeReason,
    TokenFamily,
)


@dataclass(slots=True, frozen=True)
class SignedAccessToken:
    """Access token returned by an issuer."""

    token: str
    expires_in: int
    token_type: str = "Bearer"


class AccessTokenIssuer(ABC):
    """Signs short-lived access tokens."""

    @abstractmethod
    async def sign(
        self,
        subject_id: str,
        client_id: str,
        scope: frozenset[str],
        audience: str,
    ) -> SignedAccessToken:
        """Sign an access token.

        Raises:
            UpstreamUnavailable: If signing is not possible right now.
        """
        ...


class TokenStore(ABC):
    """Durable storage for families and their tokens.

    Every write is its own transaction. Writes that change a family take the
    version the caller read and raise ConflictRetry if it moved.
    """

    @abstractmethod
    async def create_family(self, family: TokenFamily, root: RefreshToken) -> None:
        """Persist a new family together with its root token."""
        ...

    @abstractmethod
    async def get_token(self, token_id: str) -> RefreshToken | None:
        """Look up a token by id (hash)."""
        ...

    @abstractmethod
    async def get_family(self, family_id: str) -> TokenFamily | None:
        """Look up a family by id."""
        ...

    @abstractmethod
    async def list_family_tokens(self, family_id: str) -> list[RefreshToken]:
        """Return every token of a family, oldest first."""
        ...

    @abstractmethod
    async def rotate(
        self,
        family: TokenFamily,
        exchanged_token_id: str,
        new_token: RefreshToken,
        rotated_at: datetime,
    ) -> TokenFamily:
        """Retire the head, insert its successor and move the head pointer.

        Args:
            family: The family as read by the caller (its version is checked).
            exchanged_token_id: Current head being exchanged.
            new_token: Successor, already built with predecessor_id set.
            rotated_at: Transition timestamp.

        Returns:
            The family after the transition.

        Raises:
            ConflictRetry: If the family version moved since it was read.
        """
        ...

    @abstractmethod
    async def revoke_family(
        self,
        family: TokenFamily,
        reason: RevokeReason,
        revoked_at: datetime,
    ) -> tuple[TokenFamily, int]:
        """Revoke a family and every token in it still active.

        Returns:
            The revoked family and the number of tokens moved to revoked.

        Raises:
            ConflictRetry: If the family version moved since it was read.
        """
        ...

    @abstractmethod
    async def purge(self, inactive_before: datetime, now: datetime) -> int:
        """Delete dead families and their tokens.

        Returns:
            Number of families deleted.
        """
        ...


class AuditSink(ABC):
    """Destination for audit events."""

    name: str = "sink"

    @abstractmethod
    async def write(self, event: AuditEvent) -> None:
        """Deliver one event. May raise; the dispatcher retries."""
        ...
