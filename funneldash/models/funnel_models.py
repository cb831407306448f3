"""FunnelDash — Funnel Data Model.

One row per funnel per day. Rows are inserted in bulk, never updated in
place, and removed only by explicit date-set or date-range deletion.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class FunnelRecord(SQLModel, table=True):
    """Canonical funnel record.

    ``date`` is a date-only column: grouping and filtering never pass through
    a timestamp, so a day cannot shift with the host timezone.
    """

    __tablename__ = "funnel_data"

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign: str = Field(sa_column=Column(Text, nullable=False))

    manager: Optional[str] = Field(default=None, max_length=50, index=True)
    channel: Optional[str] = Field(default=None, max_length=50, index=True)
    niche: Optional[str] = Field(default=None, max_length=100, index=True)
    advertiser: Optional[str] = Field(default=None, max_length=50, index=True)
    variant: Optional[str] = Field(default=None, max_length=50, index=True)
    product: Optional[str] = Field(default=None, max_length=100, index=True)

    date: dt.date = Field(index=True, description="Report day")

    cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    profit: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    roi: Decimal = Field(default=Decimal("0"), max_digits=8, decimal_places=4)
    purchase_count: int = Field(default=0)
    cost_per_initiated_checkout: Decimal = Field(
        default=Decimal("0"), max_digits=12, decimal_places=2
    )

    source: str = Field(default="csv", max_length=20, description="csv | redtrack")
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
