"""FunnelDash — RedTrack API Routes."""

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from funneldash.database import get_session
from funneldash.analyzer.importer import import_from_redtrack
from funneldash.connectors.redtrack.client import RedTrackClient
from funneldash.models.dashboard_models import ImportOutcome
from funneldash.core.logging import get_logger

logger = get_logger("api.redtrack")

router = APIRouter(prefix="/redtrack", tags=["RedTrack"])


class RedTrackImportRequest(BaseModel):
    """Request body for POST /redtrack/import."""

    start_date: date
    end_date: date
    replace_existing: bool = False
    """Delete every stored record in the range before inserting."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"start_date": "2025-01-01", "end_date": "2025-01-07", "replace_existing": False}
            ]
        }
    }


@router.post("/import", response_model=ImportOutcome)
async def import_redtrack(
    request: RedTrackImportRequest,
    session: Session = Depends(get_session),
):
    """Fetch campaign reports for the range and store the accepted rows.

    One upstream request per day with a pause in between, so long ranges
    take a while.
    """
    return await import_from_redtrack(
        session,
        request.start_date,
        request.end_date,
        replace_existing=request.replace_existing,
    )


@router.get("/test-connection")
async def check_connection():
    """Check that the configured API key can read reports."""
    client = RedTrackClient()
    try:
        connected = await client.test_connection()
    finally:
        await client.close()
    return {"connected": connected}
