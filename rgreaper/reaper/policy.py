"""Expiration policy evaluation.

Decides from an entity's tags and creation time whether it is pinned, expired or
still alive.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Optional

from rgreaper.models.verdict import ExpirationVerdict

SECONDS_PER_DAY = 86400.0

FALSE_TAG_VALUES = ("", "false")

# Optional sign followed by ASCII digits
_LIFETIME_RE = re.compile(r"^[+-]?[0-9]+\Z")


def is_tag_set(tags: dict[str, str], tag_name: str) -> bool:
    """Check whether a tag counts as set.

    A tag is set when it is present and its value, ignoring surrounding
    whitespace, is neither empty nor "false" (case-insensitive).

    Args:
        tags: Entity tags
        tag_name: Tag to look up

    Returns:
        True if the tag is present with a truthy value
    """
    value = tags.get(tag_name)
    if value is None:
        return False
    return str(value).strip().lower() not in FALSE_TAG_VALUES


def parse_lifetime(raw_value: str) -> Optional[int]:
    """Parse an expiration tag value as a whole number of days.

    Returns:
        Lifetime in days, or None if the value is not an integer
    """
    text = str(raw_value).strip()
    if not _LIFETIME_RE.match(text):
        return None
    return int(text)


def age_in_days(created_time: datetime, now: datetime) -> float:
    """Fractional age in days, negative when created_time is in the future.

    Naive datetimes are treated as UTC.
    """
    if created_time.tzinfo is None:
        created_time = created_time.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - created_time).total_seconds() / SECONDS_PER_DAY


def evaluate(
    tags: dict[str, str],
    created_time: datetime,
    now: datetime,
    default_expiration_days: int,
    expiration_tag_name: str,
    pinned_tag_name: str,
) -> ExpirationVerdict:
    """Evaluate an entity against the expiration policy.

    Pure function: performs no I/O and does not modify its inputs. A missing or
    malformed expiration tag falls back to the default lifetime and is reported
    through the verdict's parse_warning.

    Args:
        tags: Entity tags
        created_time: When the entity was created
        now: Evaluation time
        default_expiration_days: Lifetime used when the expiration tag is missing or invalid
        expiration_tag_name: Tag holding the per-entity lifetime in days
        pinned_tag_name: Tag that exempts the entity from deletion

    Returns:
        ExpirationVerdict for the entity
    """
    if is_tag_set(tags, pinned_tag_name):
        return ExpirationVerdict.pinned_verdict()

    warning = None
    used_default = False
    raw_value = tags.get(expiration_tag_name)

    if raw_value is None:
        lifetime = default_expiration_days
        used_default = True
        warning = (
            f"Tag '{expiration_tag_name}' not present, "
            f"using default expiration of {default_expiration_days} days"
        )
    else:
        parsed = parse_lifetime(raw_value)
        if parsed is None:
            lifetime = default_expiration_days
            used_default = True
            warning = (
                f"Tag '{expiration_tag_name}' has non-integer value '{raw_value}', "
                f"using default expiration of {default_expiration_days} days"
            )
        else:
            lifetime = parsed

    age = age_in_days(created_time, now)

    return ExpirationVerdict(
        expired=age > lifetime,
        pinned=False,
        remaining_days=lifetime - age,
        used_default_expiration=used_default,
        parse_warning=warning,
        age_days=age,
        lifetime_days=lifetime,
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpirationPolicy:
    """Expiration policy bound to its configuration.

    Attributes:
        default_expiration_days: Fallback lifetime in days
        expiration_tag_name: Tag holding the per-entity lifetime
        pinned_tag_name: Tag that exempts an entity from deletion
        clock: Callable returning the current time
    """

    def __init__(
        self,
        default_expiration_days: int = 3,
        expiration_tag_name: str = "days",
        pinned_tag_name: str = "pinned",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.default_expiration_days = default_expiration_days
        self.expiration_tag_name = expiration_tag_name
        self.pinned_tag_name = pinned_tag_name
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def evaluate(
        self, tags: dict[str, str], created_time: datetime, now: Optional[datetime] = None
    ) -> ExpirationVerdict:
        """Evaluate tags and creation time at `now` (defaults to the policy clock)."""
        return evaluate(
            tags=tags,
            created_time=created_time,
            now=now if now is not None else self.clock(),
            default_expiration_days=self.default_expiration_days,
            expiration_tag_name=self.expiration_tag_name,
            pinned_tag_name=self.pinned_tag_name,
        )

    def is_pinned(self, tags: dict[str, str]) -> bool:
        return is_tag_set(tags, self.pinned_tag_name)
