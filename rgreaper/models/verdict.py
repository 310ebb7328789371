"""Expiration verdict model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExpirationVerdict:
    """Result of evaluating an entity against the expiration policy.

    Derived from current metadata on every run and never persisted.

    Attributes:
        expired: Entity has outlived its lifetime
        pinned: Entity carries a truthy pinned tag (never expired)
        remaining_days: Lifetime minus age, negative once expired
        used_default_expiration: Lifetime came from the default, not a tag
        parse_warning: Warning about a missing or malformed expiration tag
        age_days: Fractional age in days (negative for future timestamps)
        lifetime_days: Effective lifetime in days
    """

    expired: bool
    pinned: bool
    remaining_days: float = 0.0
    used_default_expiration: bool = False
    parse_warning: Optional[str] = None
    age_days: Optional[float] = None
    lifetime_days: Optional[int] = None

    @classmethod
    def pinned_verdict(cls) -> ExpirationVerdict:
        return cls(expired=False, pinned=True)
