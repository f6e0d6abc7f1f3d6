"""Exceptions raised by the rotation authority.

Every family-state transition resolves to one of these before reaching the
caller. ConflictRetry never leaves the authority.
"""


class RotationError(Exception):
    """Base class for all rotation authority errors.

    Attributes:
        error_code: OAuth2 error code reported on the wire.
        retryable: Whether the caller may retry the same request.
    """

    error_code = "server_error"
    retryable = False
    public_message = "The request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class InvalidGrant(RotationError):
    """The refresh token or its family is unusable.

    The message is the same for an unknown token, a reused token and a
    revoked family. The reason only goes to the audit trail.
    """

    error_code = "invalid_grant"
    public_message = "Access Denied"

    def __init__(self, reason: str = "invalid_grant") -> None:
        self.reason = reason
        super().__init__(self.public_message)


class ScopeExceeded(RotationError):
    """Requested scope is not covered by the original grant."""

    error_code = "invalid_scope"
    public_message = "Requested scope exceeds the original grant"

    def __init__(self, requested: frozenset[str], granted: frozenset[str]) -> None:
        self.requested = requested
        self.granted = granted
        super().__init__(self.public_message)


class UpstreamUnavailable(RotationError):
    """A dependency (access token signing, the store) is temporarily unavailable."""

    error_code = "temporarily_unavailable"
    retryable = True
    public_message = "Service temporarily unavailable, retry later"


class ConflictRetry(RotationError):
    """The family changed between read and write.

    Raised by the token store when a versioned update matches no row.
    """

    error_code = "conflict"
    retryable = True
    public_message = "Concurrent modification"

    def __init__(self, family_id: str, expected_version: int) -> None:
        self.family_id = family_id
        self.expected_version = expected_version
        super().__init__(
            f"Family {family_id} is no longer at version {expected_version}"
        )
