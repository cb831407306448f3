"""FunnelDash — Funnel Dashboard API Routes."""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from funneldash.database import get_session
from funneldash.analyzer.aggregation import (
    compute_daily_totals,
    compute_grouped,
    compute_matrix,
    compute_totals,
)
from funneldash.analyzer.date_guard import find_existing_dates
from funneldash.analyzer.importer import import_csv
from funneldash.models.dashboard_models import (
    DailyTotal,
    FilterOptions,
    FunnelFilters,
    FunnelMatrix,
    GroupedRow,
    ImportOutcome,
    Totals,
)
from funneldash.storage.funnel_store import get_existing_dates, get_filter_options
from funneldash.core.logging import get_logger

logger = get_logger("api.funnel")

router = APIRouter(prefix="/funnel", tags=["Funnel"])


# ── Request / Response Models ──


class CheckDatesRequest(BaseModel):
    """Request body for POST /funnel/check-dates."""

    dates: List[date]


class CheckDatesResponse(BaseModel):
    existing_dates: List[date] = []


class UploadCSVRequest(BaseModel):
    """Request body for POST /funnel/upload."""

    csv_content: str
    """Raw CSV text with the Campaign, Prelanding, Landing, Date, ... header."""
    replace_existing: bool = False
    """Delete stored records on the CSV's dates before inserting."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "csv_content": "Campaign,Prelanding,Landing,Date,Cost,Profit,Total ROI,Purchase,InitiateCheckout CPA\n"
                    "NTE | GB | NB | x,ADV 02,VSL 70 (memorylift),2025-01-15,100.00,50.00,50%,3,12.50",
                    "replace_existing": False,
                }
            ]
        }
    }


# ── Read Endpoints ──


@router.get("/data", response_model=List[GroupedRow])
def get_grouped_data(
    filters: FunnelFilters = Depends(),
    session: Session = Depends(get_session),
):
    """Funnel × date rows with summed cost, profit and purchases."""
    return compute_grouped(session, filters)


@router.get("/matrix", response_model=FunnelMatrix)
def get_funnel_matrix(
    filters: FunnelFilters = Depends(),
    session: Session = Depends(get_session),
):
    """Funnel-by-date table; ``null`` cells mean no data that day."""
    return compute_matrix(session, filters)


@router.get("/totals", response_model=Totals)
def get_totals(
    filters: FunnelFilters = Depends(),
    session: Session = Depends(get_session),
):
    return compute_totals(session, filters)


@router.get("/daily", response_model=List[DailyTotal])
def get_daily_totals(
    filters: FunnelFilters = Depends(),
    session: Session = Depends(get_session),
):
    return compute_daily_totals(session, filters)


@router.get("/filters", response_model=FilterOptions)
def get_filters(session: Session = Depends(get_session)):
    """Distinct values for every dashboard selector plus the stored dates."""
    return get_filter_options(session)


@router.get("/dates", response_model=List[date])
def get_dates(session: Session = Depends(get_session)):
    """Every date with stored records, newest first."""
    return get_existing_dates(session)


# ── Import Endpoints ──


@router.post("/check-dates", response_model=CheckDatesResponse)
def check_dates(
    request: CheckDatesRequest,
    session: Session = Depends(get_session),
):
    """Which of the given dates already hold data."""
    return CheckDatesResponse(existing_dates=find_existing_dates(session, request.dates))


@router.post("/upload", response_model=ImportOutcome)
def upload_csv(
    request: UploadCSVRequest,
    session: Session = Depends(get_session),
):
    """Import a funnel CSV.

    A duplicate-date conflict is reported in the outcome (``reason`` =
    ``duplicate_dates``) and leaves storage untouched.
    """
    outcome = import_csv(
        session, request.csv_content, replace_existing=request.replace_existing
    )
    if not outcome.success:
        logger.warning(f"CSV upload rejected: {outcome.reason}")
    return outcome
