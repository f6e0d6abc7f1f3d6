"""Scope narrowing for token exchanges.

An exchange may ask for a narrower scope than the original grant. What
happens when it asks for more depends on the policy:

- ``strict``: anything outside the grant raises ScopeExceeded.
- ``downgrade``: the request is intersected with the grant; only an empty
  intersection raises ScopeExceeded.
"""

from collections.abc import Iterable
from typing import Literal

from rotauth.domain.exceptions import ScopeExceeded

ScopePolicyName = Literal["strict", "downgrade"]


def parse_scope(value: str | Iterable[str] | None) -> frozenset[str]:
    """Parse a space-delimited scope string (RFC 6749 section 3.3)."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset(part for part in value.split() if part)
    return frozenset(part.strip() for part in value if part and part.strip())


def format_scope(scope: Iterable[str]) -> str:
    """Render a scope set as a stable space-delimited string."""
    return " ".join(sorted(scope))


class ScopePolicy:
    """Resolve the effective scope of an exchange."""

    def __init__(self, mode: ScopePolicyName = "strict") -> None:
        if mode not in ("strict", "downgrade"):
            raise ValueError(f"Unknown scope policy: {mode}")
        self.mode = mode

    def resolve(
        self,
        granted: frozenset[str],
        requested: frozenset[str] | None,
    ) -> frozenset[str]:
        """Return the scope the new access token carries.

        Raises:
            ScopeExceeded: If the request cannot be satisfied under this policy.
        """
        if not requested:
            return granted

        if requested <= granted:
            return requested

        if self.mode == "strict":
            raise ScopeExceeded(requested=requested, granted=granted)

        narrowed = requested & granted
        if not narrowed:
            raise ScopeExceeded(requested=requested, granted=granted)
        return narrowed
