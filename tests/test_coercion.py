from datetime import date, datetime
from decimal import Decimal

import pytest

from funneldash.parsers.coercion import (
    compute_roi,
    fit_money,
    fit_ratio,
    to_ratio,
    format_date,
    parse_count,
    parse_date,
    parse_decimal,
    percent_to_ratio,
    to_money,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("100.00", Decimal("100.00")),
        ("$1,234.50", Decimal("1234.50")),
        ("R$ 99.9", Decimal("99.9")),
        ("25%", Decimal("25")),
        (" -12.5 ", Decimal("-12.5")),
        (42, Decimal("42")),
        (0.1, Decimal("0.1")),
        ("", Decimal("0")),
        ("abc", Decimal("0")),
        ("1.2.3", Decimal("0")),
        (None, Decimal("0")),
        (float("nan"), Decimal("0")),
        (float("inf"), Decimal("0")),
    ],
)
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == expected


@pytest.mark.parametrize("raw, expected", [("3", 3), ("3.9", 3), ("-2", 0), ("x", 0)])
def test_parse_count(raw, expected):
    assert parse_count(raw) == expected


def test_to_money_rounds_half_up():
    assert to_money(Decimal("8.335")) == Decimal("8.34")
    assert str(to_money(Decimal("100"))) == "100.00"


def test_compute_roi():
    assert compute_roi(Decimal("25.00"), Decimal("100.00")) == Decimal("0.2500")
    assert compute_roi(Decimal("1"), Decimal("3")) == Decimal("0.3333")


def test_compute_roi_is_zero_without_cost():
    roi = compute_roi(Decimal("50.00"), Decimal("0"))
    assert roi == 0
    assert roi.is_finite()


@pytest.mark.parametrize("raw", ["25%", "25", 25])
def test_percent_to_ratio(raw):
    assert percent_to_ratio(raw) == Decimal("0.2500")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-01-15", date(2025, 1, 15)),
        ("15/01/2025", date(2025, 1, 15)),
        ("2025/01/15", date(2025, 1, 15)),
        ("2025-01-15T23:30:00-03:00", date(2025, 1, 15)),
        ("2025-01-15 00:00:00", date(2025, 1, 15)),
        ('"2025-01-15"', date(2025, 1, 15)),
        (datetime(2025, 1, 15, 23, 59), date(2025, 1, 15)),
        ("2025-02-30", None),
        ("yesterday", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("tz", ["UTC", "America/Sao_Paulo", "Pacific/Kiritimati", "Etc/GMT+12"])
def test_date_round_trip_ignores_host_timezone(monkeypatch, tz):
    import time

    monkeypatch.setenv("TZ", tz)
    if hasattr(time, "tzset"):
        time.tzset()
    try:
        for day in (date(2025, 1, 1), date(2024, 2, 29), date(2025, 12, 31)):
            text = format_date(day)
            assert text == day.strftime("%Y-%m-%d")
            assert parse_date(text) == day
    finally:
        monkeypatch.undo()
        if hasattr(time, "tzset"):
            time.tzset()


def test_oversized_values_quantize_to_zero():
    huge = Decimal("12345678901234567890123456789")
    assert to_money(huge) == Decimal("0.00")
    assert to_ratio(huge) == Decimal("0.0000")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("9999999999.99", Decimal("9999999999.99")),
        ("10000000000", Decimal("0.00")),
        ("-10000000000.00", Decimal("0.00")),
        ("12345678901234567890123456789", Decimal("0.00")),
        ("1" * 60, Decimal("0.00")),
        ("$12.345", Decimal("12.35")),
    ],
)
def test_fit_money_keeps_column_range(raw, expected):
    assert fit_money(raw) == expected


def test_fit_ratio_keeps_column_range():
    assert fit_ratio(Decimal("9999.99994")) == Decimal("9999.9999")
    assert fit_ratio(Decimal("10000")) == 0
    assert fit_ratio(compute_roi(Decimal("5000.00"), Decimal("0.01"))) == 0


def test_parse_count_past_column_range_is_zero():
    assert parse_count("9" * 30) == 0
    assert parse_count(str(2**31 - 1)) == 2**31 - 1
