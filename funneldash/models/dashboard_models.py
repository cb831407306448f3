"""FunnelDash — Dashboard & Import Schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


# ─────────────────────────────────────────────
# FILTERS
# ─────────────────────────────────────────────


class FunnelFilters(BaseModel):
    """Optional filters, combined with AND. Date bounds are inclusive."""

    manager: Optional[str] = None
    channel: Optional[str] = None
    niche: Optional[str] = None
    advertiser: Optional[str] = None
    variant: Optional[str] = None
    product: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ─────────────────────────────────────────────
# AGGREGATION VIEWS
# ─────────────────────────────────────────────


class GroupedRow(BaseModel):
    """One funnel on one day."""

    manager: Optional[str] = None
    channel: Optional[str] = None
    niche: Optional[str] = None
    advertiser: Optional[str] = None
    variant: Optional[str] = None
    product: Optional[str] = None
    date: date
    cost: Decimal = Decimal("0.00")
    profit: Decimal = Decimal("0.00")
    roi: Decimal = Decimal("0.0000")
    purchase_count: int = 0


class DayCell(BaseModel):
    """Metrics of one funnel on one day in the matrix."""

    cost: Decimal
    profit: Decimal
    roi: Decimal
    purchase_count: int = 0


class FunnelSeries(BaseModel):
    """One funnel across the matrix dates.

    ``cells[i]`` belongs to ``FunnelMatrix.dates[i]``; ``None`` means the
    funnel has no data that day, which is not the same as a zero cell.
    """

    manager: Optional[str] = None
    channel: Optional[str] = None
    niche: Optional[str] = None
    advertiser: Optional[str] = None
    variant: Optional[str] = None
    product: Optional[str] = None
    total_cost: Decimal = Decimal("0.00")
    total_profit: Decimal = Decimal("0.00")
    cells: List[Optional[DayCell]] = []


class FunnelMatrix(BaseModel):
    """Funnel-by-date table, funnels ordered by descending total cost."""

    identity_fields: List[str] = []
    dates: List[date] = []
    funnels: List[FunnelSeries] = []


class Totals(BaseModel):
    """Scalar totals across every matching record."""

    total_cost: Decimal = Decimal("0.00")
    total_profit: Decimal = Decimal("0.00")
    roi: Decimal = Decimal("0.0000")
    total_purchases: int = 0


class DailyTotal(BaseModel):
    """All funnels collapsed into one day."""

    date: date
    cost: Decimal = Decimal("0.00")
    profit: Decimal = Decimal("0.00")
    roi: Decimal = Decimal("0.0000")


class FilterOptions(BaseModel):
    """Distinct values that populate the dashboard selectors."""

    managers: List[str] = []
    channels: List[str] = []
    niches: List[str] = []
    advertisers: List[str] = []
    variants: List[str] = []
    products: List[str] = []
    dates: List[date] = []


# ─────────────────────────────────────────────
# IMPORT OUTCOMES
# ─────────────────────────────────────────────


class ImportReason:
    """Machine-readable reason codes carried by ``ImportOutcome.reason``."""

    DUPLICATE_DATES = "duplicate_dates"
    EMPTY_CSV = "empty_csv"
    NO_VALID_RECORDS = "no_valid_records"
    MISSING_COLUMNS = "missing_columns"
    PARSE_ERROR = "parse_error"
    UPSTREAM_ERROR = "upstream_error"
    STORAGE_ERROR = "storage_error"
    INVALID_RANGE = "invalid_range"


class ImportOutcome(BaseModel):
    """Result of a CSV upload or a RedTrack import.

    ``success`` tells whether data was committed. On a duplicate-date
    conflict nothing was changed and ``duplicate_dates`` lists the overlap.
    """

    success: bool
    message: str
    reason: Optional[str] = None
    records_imported: int = 0
    dates_imported: List[date] = []
    duplicate_dates: List[date] = []
    skipped_rows: int = 0
    failed_records: int = 0


class InsertResult(BaseModel):
    """Outcome of a chunked bulk insert."""

    inserted: int = 0
    failed: int = 0
