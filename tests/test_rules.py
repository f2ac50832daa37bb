from datetime import UTC, datetime

import pytest

from outreach.domain.rules import clamp_percentage, format_percentage, parse_timestamp, rate


@pytest.mark.parametrize(
    "value", [float("nan"), float("inf"), 10**400, -(10**400), -5, "not a number", None, True, {}]
)
def test_clamp_percentage_invalid_values_are_zero(value) -> None:
    assert clamp_percentage(value) == 0


@pytest.mark.parametrize("value", [0, 12.5, 50, 99.99, 100])
def test_clamp_percentage_identity_in_range(value) -> None:
    assert clamp_percentage(value) == value


def test_clamp_percentage_caps_and_parses_strings() -> None:
    assert clamp_percentage(150) == 100
    assert clamp_percentage("42.5") == 42.5
    assert clamp_percentage("37%") == 37
    assert clamp_percentage("Infinity") == 0


def test_rate_handles_zero_denominator() -> None:
    assert rate(0, 0) == 0
    assert rate(3, 4) == 75
    assert rate(10, 4) == 100
    assert format_percentage(rate(1, 3)) == "33.3%"


def test_parse_timestamp_variants() -> None:
    expected = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)
    assert parse_timestamp("2026-01-05T10:00:00.000Z") == expected
    assert parse_timestamp("2026-01-05T10:00:00") == expected
    assert parse_timestamp(int(expected.timestamp() * 1000)) == expected
    assert parse_timestamp("2026-01-05") == datetime(2026, 1, 5, tzinfo=UTC)
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp("") is None
