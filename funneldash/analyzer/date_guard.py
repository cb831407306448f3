"""FunnelDash — Duplicate-Date Guard.

An import never silently doubles a day's numbers: if any incoming date
already has stored records, the import is rejected unless the caller asked
to replace, in which case exactly the overlapping dates are deleted first.
"""

from datetime import date
from typing import Iterable, List

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from funneldash.storage.funnel_store import dates_with_data, delete_by_dates
from funneldash.core.logging import get_logger

logger = get_logger("analyzer.date_guard")


class GuardDecision(BaseModel):
    proceed: bool
    conflicts: List[date] = []
    deleted: int = 0


def find_existing_dates(session: Session, dates: Iterable[date]) -> List[date]:
    """The subset of ``dates`` that already has stored records, ascending.

    Read-only lookup for the dashboard; degrades to an empty list when
    storage is unavailable.
    """
    try:
        return dates_with_data(session, dates)
    except SQLAlchemyError as e:
        logger.error(f"Existing-date lookup unavailable: {e}")
        return []


def guard_import(
    session: Session, dates: Iterable[date], replace: bool = False
) -> GuardDecision:
    """Decide whether an import may proceed; storage errors propagate."""
    conflicts = dates_with_data(session, dates)
    if not conflicts:
        return GuardDecision(proceed=True)

    if not replace:
        logger.warning(
            f"Import blocked, dates already stored: {', '.join(d.isoformat() for d in conflicts)}"
        )
        return GuardDecision(proceed=False, conflicts=conflicts)

    deleted = delete_by_dates(session, conflicts)
    logger.info(f"Replacing {len(conflicts)} dates ({deleted} records removed)")
    return GuardDecision(proceed=True, conflicts=conflicts, deleted=deleted)
