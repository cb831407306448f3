"""FunnelDash — RedTrack Report → FunnelRecord Normalizer.

Validates raw report rows permissively, decomposes campaign names with the
configured schema version's splitter, applies the manager allow-list and
emits canonical ``FunnelRecord`` objects.
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from funneldash.config import settings
from funneldash.core.funnel_registry import (
    DEFAULT_RULES,
    ExtractionRules,
    SchemaProfile,
    get_profile,
)
from funneldash.models.funnel_models import FunnelRecord
from funneldash.parsers.coercion import (
    compute_roi,
    fit_money,
    fit_ratio,
    parse_count,
    parse_date,
    parse_decimal,
    percent_to_ratio,
)
from funneldash.parsers.extractors import CampaignParts, split_campaign
from funneldash.core.logging import get_logger

logger = get_logger("redtrack.transformer")


class RedTrackRow(BaseModel):
    """One report row. Every field defaults; bad values never reject the row."""

    campaign: str = ""
    date: str = ""
    cost: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    roi: Decimal = Decimal("0")
    conversions: int = 0

    model_config = {"extra": "ignore"}

    @field_validator("campaign", "date", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("cost", "profit", "roi", mode="before")
    @classmethod
    def _as_decimal(cls, v: Any) -> Decimal:
        return parse_decimal(v)

    @field_validator("conversions", mode="before")
    @classmethod
    def _as_count(cls, v: Any) -> int:
        return parse_count(v)


def validate_row(raw: Any) -> Optional[RedTrackRow]:
    """Build a ``RedTrackRow``; None only for payloads that are not objects."""
    if not isinstance(raw, dict):
        logger.debug(f"Ignoring non-object report row: {raw!r}")
        return None
    try:
        return RedTrackRow.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Ignoring unreadable report row: {e}")
        return None


def is_allowed(parts: CampaignParts, cost: Decimal, allowed_managers: Iterable[str]) -> bool:
    """Manager token on the allow-list and a positive cost."""
    allowed = {m.strip().upper() for m in allowed_managers}
    return bool(parts.manager) and parts.manager.upper() in allowed and cost > 0


def normalize_rows(
    rows: List[Dict[str, Any]],
    report_date: Optional[date] = None,
    profile: Optional[SchemaProfile] = None,
    rules: ExtractionRules = DEFAULT_RULES,
    allowed_managers: Optional[Iterable[str]] = None,
    roi_mode: Optional[str] = None,
) -> List[FunnelRecord]:
    """Turn raw report rows into funnel records, dropping rejected rows.

    ``report_date`` overrides any date carried by the rows themselves; rows
    that end up without a date are dropped.
    """
    profile = profile or get_profile(settings.redtrack_schema)
    allowed_managers = list(
        settings.redtrack_allowed_managers if allowed_managers is None else allowed_managers
    )
    roi_mode = roi_mode or settings.roi_mode

    records: List[FunnelRecord] = []
    seen: Counter = Counter()
    accepted: Counter = Counter()

    for raw in rows:
        row = validate_row(raw)
        if row is None:
            continue

        row_date = report_date or parse_date(row.date)
        if row_date is None:
            logger.debug("Rejected report row without date", extra={"campaign": row.campaign})
            continue
        seen[row_date] += 1

        parts = split_campaign(row.campaign, profile.naming)
        cost = fit_money(row.cost)
        allowed = is_allowed(parts, cost, allowed_managers)
        logger.debug(
            f"{'Accepted' if allowed else 'Rejected'} - {parts.manager} - {cost}",
            extra={"campaign": row.campaign, "report_date": row_date},
        )
        if not allowed:
            continue
        accepted[row_date] += 1

        profit = fit_money(row.profit)
        if roi_mode == "source":
            roi = fit_ratio(percent_to_ratio(row.roi))
        else:
            roi = fit_ratio(compute_roi(profit, cost))

        records.append(
            FunnelRecord(
                campaign=row.campaign,
                manager=rules.resolve_manager_token(parts.manager) or parts.manager,
                channel=parts.site,
                niche=parts.niche,
                product=parts.product,
                date=row_date,
                cost=cost,
                profit=profit,
                roi=roi,
                purchase_count=row.conversions if profile.tracks_purchases else 0,
                source="redtrack",
            )
        )

    for day in sorted(seen):
        logger.info(
            f"{accepted[day]}/{seen[day]} campaigns accepted",
            extra={"report_date": day, "records": accepted[day]},
        )
    logger.info(f"Normalized {len(records)} of {len(rows)} report rows")
    return records
