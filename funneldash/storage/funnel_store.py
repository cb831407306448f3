"""FunnelDash — Funnel Store.

Persistence helpers for ``FunnelRecord``: chunked inserts with a
per-record fallback, physical deletion by date set or date range, and the
distinct-value lookups behind the dashboard filters.
"""

from datetime import date
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from funneldash.config import settings
from funneldash.core.funnel_registry import CATEGORICAL_FIELDS
from funneldash.models.dashboard_models import FilterOptions, InsertResult
from funneldash.models.funnel_models import FunnelRecord
from funneldash.core.logging import get_logger

logger = get_logger("storage.funnel")


class BatchInsertError(Exception):
    """Raised when a record fails to insert and fail-fast is enabled."""

    def __init__(self, message: str, inserted: int = 0):
        self.inserted = inserted
        super().__init__(message)


# ── Writes ──


def insert_records(
    session: Session,
    records: Sequence[FunnelRecord],
    batch_size: Optional[int] = None,
    fail_fast: Optional[bool] = None,
) -> InsertResult:
    """Insert records in chunks of ``batch_size``.

    A chunk that fails is retried one record at a time so a single bad row
    does not sink the rest of the chunk. Records that still fail are counted
    in ``InsertResult.failed`` unless ``fail_fast`` is set, in which case
    ``BatchInsertError`` is raised after the rollback.
    """
    batch_size = batch_size or settings.insert_batch_size
    fail_fast = settings.insert_fail_fast if fail_fast is None else fail_fast
    inserted = 0
    failed = 0

    for start in range(0, len(records), batch_size):
        batch = list(records[start : start + batch_size])
        try:
            session.add_all(batch)
            session.commit()
            inserted += len(batch)
            continue
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(
                f"Batch insert failed at offset {start} ({len(batch)} records), "
                f"falling back to single inserts: {e}"
            )

        for record in batch:
            try:
                session.add(record)
                session.commit()
                inserted += 1
            except SQLAlchemyError as e:
                session.rollback()
                failed += 1
                logger.debug(
                    f"Record insert failed for {record.date}: {e}",
                    extra={"campaign": record.campaign},
                )
                if fail_fast:
                    raise BatchInsertError(
                        f"Record insert failed: {e}", inserted=inserted
                    ) from e

    if failed:
        logger.warning(f"Inserted {inserted} records, {failed} failed")
    else:
        logger.info(f"Inserted {inserted} records")
    return InsertResult(inserted=inserted, failed=failed)


def delete_by_dates(session: Session, dates: Iterable[date]) -> int:
    """Physically delete every record on exactly the given dates."""
    dates = sorted(set(dates))
    if not dates:
        return 0
    result = session.exec(delete(FunnelRecord).where(FunnelRecord.date.in_(dates)))
    session.commit()
    deleted = result.rowcount or 0
    logger.info(f"Deleted {deleted} records for {len(dates)} dates")
    return deleted


def delete_by_date_range(session: Session, start_date: date, end_date: date) -> int:
    """Physically delete every record between two dates, inclusive."""
    result = session.exec(
        delete(FunnelRecord).where(
            FunnelRecord.date >= start_date,
            FunnelRecord.date <= end_date,
        )
    )
    session.commit()
    deleted = result.rowcount or 0
    logger.info(f"Deleted {deleted} records from {start_date} to {end_date}")
    return deleted


# ── Reads ──


def dates_with_data(session: Session, dates: Iterable[date]) -> List[date]:
    """Return the subset of ``dates`` that have at least one stored record."""
    dates = sorted(set(dates))
    if not dates:
        return []
    rows = session.exec(
        select(FunnelRecord.date).where(FunnelRecord.date.in_(dates)).distinct()
    ).all()
    return sorted(set(rows))


def get_existing_dates(session: Session) -> List[date]:
    """All distinct stored dates, newest first; empty when storage is unavailable."""
    try:
        rows = session.exec(select(FunnelRecord.date).distinct()).all()
    except SQLAlchemyError as e:
        logger.error(f"Stored dates unavailable: {e}")
        return []
    return sorted(set(rows), reverse=True)


def get_distinct_values(session: Session, field: str) -> List[str]:
    column = getattr(FunnelRecord, field)
    rows = session.exec(
        select(column).where(column.is_not(None)).distinct().order_by(column)
    ).all()
    return [r for r in rows if r]


def get_filter_options(session: Session) -> FilterOptions:
    """Distinct values per categorical field plus the known dates.

    Degrades to empty lists when storage is unavailable.
    """
    try:
        values = {field: get_distinct_values(session, field) for field in CATEGORICAL_FIELDS}
        return FilterOptions(
            managers=values["manager"],
            channels=values["channel"],
            niches=values["niche"],
            advertisers=values["advertiser"],
            variants=values["variant"],
            products=values["product"],
            dates=get_existing_dates(session),
        )
    except SQLAlchemyError as e:
        logger.error(f"Filter options unavailable: {e}")
        return FilterOptions()
