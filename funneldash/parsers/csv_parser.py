"""FunnelDash — CSV Record Parser.

Turns an uploaded funnel CSV into ``FunnelRecord`` objects:

  Campaign, Prelanding, Landing, Date, Cost, Profit, Total ROI, Purchase, InitiateCheckout CPA

Tokenizing goes through ``csv.reader``, so quoted fields, embedded commas
and doubled-quote escapes are handled. Header names match case- and
whitespace-insensitively. Rows without a usable date are dropped and counted.
"""

import csv
import io
from decimal import Decimal
from typing import Dict, List, Optional

from dataclasses import dataclass

from funneldash.config import settings
from funneldash.core.funnel_registry import (
    DEFAULT_RULES,
    CampaignNaming,
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
    percent_to_ratio,
)
from funneldash.parsers.extractors import FieldExtractor
from funneldash.core.logging import get_logger

logger = get_logger("parsers.csv")

# Normalized header → canonical field
HEADER_ALIASES: Dict[str, str] = {
    "campaign": "campaign",
    "prelanding": "prelanding",
    "landing": "landing",
    "date": "date",
    "cost": "cost",
    "profit": "profit",
    "totalroi": "roi",
    "roi": "roi",
    "purchase": "purchase_count",
    "purchases": "purchase_count",
    "initiatecheckoutcpa": "cost_per_initiated_checkout",
}

REQUIRED_COLUMNS = ("campaign", "date")

ZERO_MONEY = Decimal("0.00")


class CSVParseError(ValueError):
    """Base class for terminal CSV failures; ``reason`` is a stable code."""

    reason = "parse_error"


class EmptyCSVError(CSVParseError):
    reason = "empty_csv"


class MissingColumnsError(CSVParseError):
    reason = "missing_columns"

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Missing required columns: {', '.join(missing)}")


class NoValidRecordsError(CSVParseError):
    reason = "no_valid_records"

    def __init__(self, total_rows: int = 0, skipped_rows: int = 0):
        self.total_rows = total_rows
        self.skipped_rows = skipped_rows
        super().__init__(f"No valid records in {total_rows} data rows")


@dataclass
class CSVParseResult:
    """Parsed records plus row accounting for the "N of M skipped" message."""

    records: List[FunnelRecord]
    total_rows: int
    skipped_rows: int


def normalize_header(name: str) -> str:
    """'Total ROI' → 'totalroi', ' InitiateCheckout CPA ' → 'initiatecheckoutcpa'."""
    return "".join(name.lower().split())


def tokenize(content: str) -> List[List[str]]:
    """Split CSV text into rows of stripped fields, ignoring blank lines."""
    reader = csv.reader(io.StringIO(content), skipinitialspace=True)
    rows: List[List[str]] = []
    for row in reader:
        fields = [field.strip() for field in row]
        if not any(fields):
            continue
        rows.append(fields)
    return rows


def build_column_map(header: List[str]) -> Dict[str, int]:
    """Map canonical field names to their column index."""
    column_map: Dict[str, int] = {}
    for index, name in enumerate(header):
        canonical = HEADER_ALIASES.get(normalize_header(name))
        if canonical and canonical not in column_map:
            column_map[canonical] = index
    return column_map


def _row_to_record(
    row: List[str],
    column_map: Dict[str, int],
    extractor: FieldExtractor,
    profile: SchemaProfile,
    roi_mode: str,
) -> Optional[FunnelRecord]:
    def get(field: str) -> str:
        index = column_map.get(field)
        if index is None or index >= len(row):
            return ""
        return row[index]

    report_date = parse_date(get("date"))
    if report_date is None:
        return None

    campaign = get("campaign")
    if profile.naming == CampaignNaming.TOKEN_SCAN:
        fields = extractor.extract(campaign, get("prelanding"), get("landing"))
    else:
        fields = extractor.extract_positional(campaign, profile.naming)

    cost = fit_money(get("cost"))
    profit = fit_money(get("profit"))
    if roi_mode == "source":
        roi = fit_ratio(percent_to_ratio(get("roi")))
    else:
        roi = fit_ratio(compute_roi(profit, cost))

    purchases = parse_count(get("purchase_count")) if profile.tracks_purchases else 0
    checkout_cpa = ZERO_MONEY
    if profile.tracks_checkout_cpa:
        checkout_cpa = fit_money(get("cost_per_initiated_checkout"))

    return FunnelRecord(
        campaign=campaign,
        manager=fields.manager,
        channel=fields.channel,
        niche=fields.niche,
        advertiser=fields.advertiser,
        variant=fields.variant,
        product=fields.product,
        date=report_date,
        cost=cost,
        profit=profit,
        roi=roi,
        purchase_count=purchases,
        cost_per_initiated_checkout=checkout_cpa,
        source="csv",
    )


def parse_funnel_csv(
    content: Optional[str],
    rules: ExtractionRules = DEFAULT_RULES,
    roi_mode: Optional[str] = None,
    profile: Optional[SchemaProfile] = None,
) -> CSVParseResult:
    """Parse CSV text into funnel records.

    Raises:
        EmptyCSVError: the input is empty or whitespace only.
        MissingColumnsError: the header lacks Campaign or Date.
        NoValidRecordsError: no data row survived parsing (header-only included).
    """
    if content is None or not content.strip():
        raise EmptyCSVError("CSV is empty")

    roi_mode = roi_mode or settings.roi_mode
    profile = profile or get_profile(settings.dashboard_schema)
    rows = tokenize(content.lstrip("\ufeff"))
    if not rows:
        raise EmptyCSVError("CSV is empty")

    header, data_rows = rows[0], rows[1:]
    column_map = build_column_map(header)
    missing = [c for c in REQUIRED_COLUMNS if c not in column_map]
    if missing:
        raise MissingColumnsError(missing)

    extractor = FieldExtractor(rules)
    records: List[FunnelRecord] = []
    skipped = 0
    for row in data_rows:
        record = _row_to_record(row, column_map, extractor, profile, roi_mode)
        if record is None:
            skipped += 1
            continue
        records.append(record)

    if skipped:
        logger.info(f"Skipped {skipped} of {len(data_rows)} CSV rows")
    if not records:
        raise NoValidRecordsError(total_rows=len(data_rows), skipped_rows=skipped)

    logger.info(f"Parsed {len(records)} funnel records from CSV")
    return CSVParseResult(
        records=records, total_rows=len(data_rows), skipped_rows=skipped
    )
