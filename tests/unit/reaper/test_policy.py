"""Tests for expiration policy evaluation.

Test coverage for tag truthiness, lifetime parsing and expiration verdicts.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from rgreaper.reaper.policy import ExpirationPolicy, age_in_days, evaluate, is_tag_set, parse_lifetime
from tests.fixtures.metadata import NOW


def _evaluate(tags: dict, age_days: float, default_days: int = 3):
    return evaluate(
        tags=tags,
        created_time=NOW - timedelta(days=age_days),
        now=NOW,
        default_expiration_days=default_days,
        expiration_tag_name="days",
        pinned_tag_name="pinned",
    )


class TestIsTagSet:
    """Test suite for the tag truthiness predicate."""

    @pytest.mark.parametrize("value", ["true", "True", "yes", "1", "anything", " x "])
    def test_truthy_values(self, value: str) -> None:
        """Test any non-empty, non-false value counts as set."""
        assert is_tag_set({"pinned": value}, "pinned") is True

    @pytest.mark.parametrize("value", ["", "   ", "false", "FALSE", " False "])
    def test_falsy_values(self, value: str) -> None:
        """Test empty and "false" values do not count as set."""
        assert is_tag_set({"pinned": value}, "pinned") is False

    def test_missing_tag(self) -> None:
        """Test absent tag does not count as set."""
        assert is_tag_set({"other": "true"}, "pinned") is False

    def test_tag_names_are_case_sensitive(self) -> None:
        """Test lookup uses the tag name as given."""
        assert is_tag_set({"Pinned": "true"}, "pinned") is False


class TestParseLifetime:
    """Test suite for expiration tag parsing."""

    @pytest.mark.parametrize("raw, expected", [("3", 3), (" 7 ", 7), ("0", 0), ("-2", -2), ("+4", 4)])
    def test_integer_values(self, raw: str, expected: int) -> None:
        assert parse_lifetime(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "3.5", "", "3d", "1_0", "٣", "+-1"])
    def test_non_integer_values(self, raw: str) -> None:
        assert parse_lifetime(raw) is None


class TestEvaluate:
    """Test suite for evaluate()."""

    def test_missing_tag_uses_default_and_warns(self) -> None:
        """Test group 5 days old with no tags expires on the default lifetime."""
        verdict = _evaluate({}, age_days=5)

        assert verdict.expired is True
        assert verdict.pinned is False
        assert verdict.used_default_expiration is True
        assert verdict.lifetime_days == 3
        assert verdict.remaining_days == pytest.approx(-2.0)
        assert "not present" in verdict.parse_warning

    def test_tag_lifetime_not_expired(self) -> None:
        """Test group 1 day old with days=3 has about 2 days left."""
        verdict = _evaluate({"days": "3"}, age_days=1)

        assert verdict.expired is False
        assert verdict.used_default_expiration is False
        assert verdict.parse_warning is None
        assert verdict.remaining_days == pytest.approx(2.0)

    def test_pinned_overrides_expiration(self) -> None:
        """Test pinned group 100 days old with days=1 is never expired."""
        verdict = _evaluate({"pinned": "true", "days": "1"}, age_days=100)

        assert verdict.pinned is True
        assert verdict.expired is False
        assert verdict.parse_warning is None

    def test_unparseable_tag_falls_back_to_default(self) -> None:
        """Test days=abc falls back to the default and the warning names the raw value."""
        verdict = _evaluate({"days": "abc"}, age_days=10)

        assert verdict.expired is True
        assert verdict.used_default_expiration is True
        assert verdict.lifetime_days == 3
        assert "abc" in verdict.parse_warning

    def test_pinned_false_is_not_pinned(self) -> None:
        """Test pinned=false does not exempt the entity."""
        verdict = _evaluate({"pinned": "false", "days": "1"}, age_days=2)

        assert verdict.pinned is False
        assert verdict.expired is True

    def test_zero_lifetime_expires_immediately(self) -> None:
        """Test days=0 expires any entity older than now."""
        verdict = _evaluate({"days": "0"}, age_days=0.01)

        assert verdict.expired is True

    def test_negative_lifetime(self) -> None:
        """Test negative lifetimes are honoured."""
        verdict = _evaluate({"days": "-1"}, age_days=0)

        assert verdict.expired is True
        assert verdict.remaining_days == pytest.approx(-1.0)

    def test_age_equal_to_lifetime_is_not_expired(self) -> None:
        """Test expiration is strictly greater than the lifetime."""
        verdict = _evaluate({"days": "3"}, age_days=3)

        assert verdict.expired is False
        assert verdict.remaining_days == pytest.approx(0.0)

    def test_future_creation_time(self) -> None:
        """Test creation time in the future gives a negative age."""
        verdict = _evaluate({"days": "1"}, age_days=-2)

        assert verdict.expired is False
        assert verdict.age_days == pytest.approx(-2.0)
        assert verdict.remaining_days == pytest.approx(3.0)

    @pytest.mark.parametrize(
        "tags, age_days",
        [({}, 2.9), ({}, 3.1), ({"days": "10"}, 9.5), ({"days": "10"}, 10.5), ({"days": "x"}, 4)],
    )
    def test_expired_matches_age_against_effective_lifetime(self, tags: dict, age_days: float) -> None:
        """Test expired == age > effective lifetime."""
        verdict = _evaluate(tags, age_days=age_days)

        effective = parse_lifetime(tags["days"]) if "days" in tags and parse_lifetime(tags["days"]) is not None else 3
        assert verdict.expired == (age_days > effective)

    def test_does_not_mutate_tags(self) -> None:
        """Test evaluation leaves the tag set untouched."""
        tags = {"days": "abc"}
        _evaluate(tags, age_days=1)

        assert tags == {"days": "abc"}


class TestAgeInDays:
    """Test suite for age computation."""

    def test_fractional_days(self) -> None:
        assert age_in_days(NOW - timedelta(hours=36), NOW) == pytest.approx(1.5)

    def test_naive_datetimes_are_utc(self) -> None:
        created = datetime(2025, 11, 10, 12, 0, 0)
        assert age_in_days(created, NOW) == pytest.approx(1.0)


class TestExpirationPolicy:
    """Test suite for the ExpirationPolicy wrapper."""

    def test_defaults(self) -> None:
        policy = ExpirationPolicy()

        assert policy.default_expiration_days == 3
        assert policy.expiration_tag_name == "days"
        assert policy.pinned_tag_name == "pinned"

    def test_uses_clock_when_now_not_given(self) -> None:
        """Test the injected clock drives evaluation."""
        policy = ExpirationPolicy(default_expiration_days=2, clock=lambda: NOW)

        verdict = policy.evaluate({}, NOW - timedelta(days=1))

        assert verdict.remaining_days == pytest.approx(1.0)
        assert policy.now() == NOW

    def test_custom_tag_names(self) -> None:
        policy = ExpirationPolicy(expiration_tag_name="ttl", pinned_tag_name="keep", clock=lambda: NOW)

        assert policy.is_pinned({"keep": "yes"}) is True
        assert policy.evaluate({"ttl": "10"}, NOW - timedelta(days=5)).expired is False
