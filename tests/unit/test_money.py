"""Unit tests for currency helpers"""

from obligation_engine.domain.money import format_dollars, round_cents, safe_cents


def test_safe_cents_zeroes_bad_values():
    assert safe_cents(2_500) == 2_500
    assert safe_cents(None) == 0
    assert safe_cents(float("nan")) == 0
    assert safe_cents(-100) == 0
    assert safe_cents("abc") == 0


def test_round_cents():
    assert round_cents(1499.5) == 1500
    assert round_cents(0.15 * 2_500) == 375


def test_format_dollars():
    assert format_dollars(123_456) == "$1,234.56"
    assert format_dollars(50_000, decimals=0) == "$500"
    assert format_dollars(-1_200, decimals=0) == "-$12"
