"""FunnelDash — Value Coercion.

Date and decimal parsing shared by the CSV parser and the RedTrack
normalizer. Dates are plain ``datetime.date`` values end to end; monetary
amounts are ``Decimal`` quantized to the column scale.
"""

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

MONEY_SCALE = Decimal("0.01")
RATIO_SCALE = Decimal("0.0001")
ZERO = Decimal("0")

# Exclusive magnitude limits of the Decimal(12, 2) and Decimal(8, 4) columns
MONEY_LIMIT = Decimal(10) ** 10
RATIO_LIMIT = Decimal(10) ** 4
COUNT_LIMIT = 2**31

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d")

# Everything except digits, the decimal point and a sign
_NUMERIC_NOISE = re.compile(r"[^\d.\-]")


def parse_decimal(value: Any) -> Decimal:
    """Parse a decorated number ('$1,234.50', '25%') into a Decimal, 0 on failure."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ZERO
        return Decimal(str(value))
    text = _NUMERIC_NOISE.sub("", str(value))
    if not text:
        return ZERO
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return ZERO
    return parsed if parsed.is_finite() else ZERO


def parse_count(value: Any) -> int:
    """Parse a non-negative integer count, 0 on failure or past the column range."""
    count = max(int(parse_decimal(value)), 0)
    return count if count < COUNT_LIMIT else 0


def _quantize(value: Decimal, scale: Decimal) -> Decimal:
    try:
        return value.quantize(scale, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context holds
        return ZERO.quantize(scale)


def to_money(value: Decimal) -> Decimal:
    return _quantize(value, MONEY_SCALE)


def to_ratio(value: Decimal) -> Decimal:
    return _quantize(value, RATIO_SCALE)


def fit_money(value: Any) -> Decimal:
    """Parse an amount for storage; values the money column cannot hold read as 0."""
    amount = to_money(parse_decimal(value))
    if abs(amount) >= MONEY_LIMIT:
        return to_money(ZERO)
    return amount


def fit_ratio(value: Decimal) -> Decimal:
    """Clamp a ratio for storage; values the ROI column cannot hold read as 0."""
    ratio = to_ratio(value)
    if abs(ratio) >= RATIO_LIMIT:
        return to_ratio(ZERO)
    return ratio


def compute_roi(profit: Decimal, cost: Decimal) -> Decimal:
    """profit / cost at ratio scale; 0 when there is no cost."""
    if cost == 0:
        return to_ratio(ZERO)
    return to_ratio(profit / cost)


def percent_to_ratio(value: Any) -> Decimal:
    """Interpret a source ROI ('25%', 25) as a percentage: 25 → 0.2500."""
    return to_ratio(parse_decimal(value) / Decimal(100))


def parse_date(value: Any) -> Optional[date]:
    """Parse YYYY-MM-DD, DD/MM/YYYY or YYYY/MM/DD into a date, None on failure.

    Any time-of-day suffix ('2025-01-15T00:00:00Z', '2025-01-15 10:00') is
    discarded before parsing, so no timezone conversion ever happens.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    text = str(value).strip().strip('"').strip()
    if not text:
        return None
    text = text.split("T", 1)[0].split(" ", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_date(value: date) -> str:
    return value.isoformat()
