"""FunnelDash — Aggregation Engine.

Reads filtered funnel records and rolls them up into the dashboard views:
grouped (funnel × date) rows, the funnel-by-date matrix, scalar totals and
daily totals. Sums are exact ``Decimal`` arithmetic; ROI is always derived
from the summed profit and cost, never averaged.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from funneldash.config import settings
from funneldash.core.funnel_registry import CATEGORICAL_FIELDS, identity_fields_for
from funneldash.models.dashboard_models import (
    DailyTotal,
    DayCell,
    FunnelFilters,
    FunnelMatrix,
    FunnelSeries,
    GroupedRow,
    Totals,
)
from funneldash.models.funnel_models import FunnelRecord
from funneldash.parsers.coercion import ZERO, compute_roi, to_money
from funneldash.core.logging import get_logger

logger = get_logger("analyzer.aggregation")

FunnelKey = Tuple[Optional[str], ...]


class _Bucket:
    """Running sums for one group."""

    __slots__ = ("cost", "profit", "purchases")

    def __init__(self) -> None:
        self.cost = ZERO
        self.profit = ZERO
        self.purchases = 0

    def add(self, record: FunnelRecord) -> None:
        self.cost += Decimal(record.cost or 0)
        self.profit += Decimal(record.profit or 0)
        self.purchases += record.purchase_count or 0

    @property
    def roi(self) -> Decimal:
        return compute_roi(self.profit, self.cost)


def _resolve_identity(identity_fields: Optional[Sequence[str]]) -> Tuple[str, ...]:
    if identity_fields is None:
        return identity_fields_for(settings.dashboard_schema)
    return tuple(identity_fields)


def _funnel_key(record: FunnelRecord, identity: Sequence[str]) -> FunnelKey:
    return tuple(getattr(record, field) for field in identity)


def _sort_text(value: Optional[str]) -> str:
    return value or ""


# ── Querying ──


def _apply_filters(statement, filters: FunnelFilters):
    for field in CATEGORICAL_FIELDS:
        value = getattr(filters, field)
        if value:
            statement = statement.where(getattr(FunnelRecord, field) == value)
    if filters.start_date:
        statement = statement.where(FunnelRecord.date >= filters.start_date)
    if filters.end_date:
        statement = statement.where(FunnelRecord.date <= filters.end_date)
    return statement


def fetch_records(
    session: Session, filters: Optional[FunnelFilters] = None
) -> List[FunnelRecord]:
    """All records matching the filters (AND-combined, inclusive date bounds)."""
    statement = _apply_filters(select(FunnelRecord), filters or FunnelFilters())
    return list(session.exec(statement).all())


# ── Pure Builders ──


def build_grouped_rows(
    records: Iterable[FunnelRecord], identity_fields: Sequence[str]
) -> List[GroupedRow]:
    """One row per (funnel identity, date), by descending cost."""
    buckets: Dict[Tuple[FunnelKey, date], _Bucket] = defaultdict(_Bucket)
    for record in records:
        buckets[(_funnel_key(record, identity_fields), record.date)].add(record)

    rows = [
        GroupedRow(
            **dict(zip(identity_fields, key)),
            date=day,
            cost=to_money(bucket.cost),
            profit=to_money(bucket.profit),
            roi=bucket.roi,
            purchase_count=bucket.purchases,
        )
        for (key, day), bucket in buckets.items()
    ]
    rows.sort(
        key=lambda r: (
            -r.cost,
            r.date,
            tuple(_sort_text(getattr(r, f)) for f in identity_fields),
        )
    )
    return rows


def build_funnel_matrix(
    records: Iterable[FunnelRecord], identity_fields: Sequence[str]
) -> FunnelMatrix:
    """Funnel-by-date table with ``None`` where a funnel has no data that day."""
    cells: Dict[FunnelKey, Dict[date, _Bucket]] = defaultdict(
        lambda: defaultdict(_Bucket)
    )
    totals: Dict[FunnelKey, _Bucket] = defaultdict(_Bucket)
    all_dates = set()
    for record in records:
        key = _funnel_key(record, identity_fields)
        cells[key][record.date].add(record)
        totals[key].add(record)
        all_dates.add(record.date)

    dates = sorted(all_dates)
    ordered = sorted(
        cells,
        key=lambda k: (-totals[k].cost, tuple(_sort_text(v) for v in k)),
    )

    funnels: List[FunnelSeries] = []
    for key in ordered:
        by_date = cells[key]
        series_cells: List[Optional[DayCell]] = []
        for day in dates:
            bucket = by_date.get(day)
            if bucket is None:
                series_cells.append(None)
                continue
            series_cells.append(
                DayCell(
                    cost=to_money(bucket.cost),
                    profit=to_money(bucket.profit),
                    roi=bucket.roi,
                    purchase_count=bucket.purchases,
                )
            )
        funnels.append(
            FunnelSeries(
                **dict(zip(identity_fields, key)),
                total_cost=to_money(totals[key].cost),
                total_profit=to_money(totals[key].profit),
                cells=series_cells,
            )
        )

    return FunnelMatrix(
        identity_fields=list(identity_fields), dates=dates, funnels=funnels
    )


def build_totals(records: Iterable[FunnelRecord]) -> Totals:
    bucket = _Bucket()
    for record in records:
        bucket.add(record)
    return Totals(
        total_cost=to_money(bucket.cost),
        total_profit=to_money(bucket.profit),
        roi=bucket.roi,
        total_purchases=bucket.purchases,
    )


def build_daily_totals(records: Iterable[FunnelRecord]) -> List[DailyTotal]:
    buckets: Dict[date, _Bucket] = defaultdict(_Bucket)
    for record in records:
        buckets[record.date].add(record)
    return [
        DailyTotal(
            date=day,
            cost=to_money(bucket.cost),
            profit=to_money(bucket.profit),
            roi=bucket.roi,
        )
        for day, bucket in sorted(buckets.items())
    ]


# ── Session-Level Views ──
# Reads degrade to empty results when storage is unavailable.


def compute_grouped(
    session: Session,
    filters: Optional[FunnelFilters] = None,
    identity_fields: Optional[Sequence[str]] = None,
) -> List[GroupedRow]:
    identity = _resolve_identity(identity_fields)
    try:
        records = fetch_records(session, filters)
    except SQLAlchemyError as e:
        logger.error(f"Grouped view unavailable: {e}")
        return []
    rows = build_grouped_rows(records, identity)
    logger.info(f"Grouped {len(records)} records into {len(rows)} rows")
    return rows


def compute_matrix(
    session: Session,
    filters: Optional[FunnelFilters] = None,
    identity_fields: Optional[Sequence[str]] = None,
) -> FunnelMatrix:
    identity = _resolve_identity(identity_fields)
    try:
        records = fetch_records(session, filters)
    except SQLAlchemyError as e:
        logger.error(f"Funnel matrix unavailable: {e}")
        return FunnelMatrix(identity_fields=list(identity))
    return build_funnel_matrix(records, identity)


def compute_totals(
    session: Session, filters: Optional[FunnelFilters] = None
) -> Totals:
    try:
        records = fetch_records(session, filters)
    except SQLAlchemyError as e:
        logger.error(f"Totals unavailable: {e}")
        return Totals()
    return build_totals(records)


def compute_daily_totals(
    session: Session, filters: Optional[FunnelFilters] = None
) -> List[DailyTotal]:
    try:
        records = fetch_records(session, filters)
    except SQLAlchemyError as e:
        logger.error(f"Daily totals unavailable: {e}")
        return []
    return build_daily_totals(records)
