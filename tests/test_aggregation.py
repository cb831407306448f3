from datetime import date
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from conftest import make_record
from funneldash.analyzer.aggregation import (
    build_daily_totals,
    build_funnel_matrix,
    build_grouped_rows,
    build_totals,
    compute_daily_totals,
    compute_grouped,
    compute_matrix,
    compute_totals,
)
from funneldash.models.dashboard_models import FunnelFilters

IDENTITY = ("manager", "channel", "niche", "advertiser", "variant", "product")

D1, D2, D3 = date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)


def _records():
    return [
        make_record(date=D1, cost=Decimal("100.00"), profit=Decimal("50.00"), purchase_count=2),
        make_record(date=D1, cost=Decimal("20.00"), profit=Decimal("-5.00"), purchase_count=1),
        make_record(date=D2, cost=Decimal("80.00"), profit=Decimal("0.00"), purchase_count=0),
        make_record(
            manager="Erick", channel="TB", date=D2,
            cost=Decimal("300.00"), profit=Decimal("90.00"), purchase_count=4,
        ),
        make_record(
            manager="Erick", channel="TB", date=D3,
            cost=Decimal("0.00"), profit=Decimal("10.00"), purchase_count=0,
        ),
    ]


def test_grouped_rows_sum_per_funnel_and_day():
    rows = build_grouped_rows(_records(), IDENTITY)

    assert [(r.manager, r.date, r.cost) for r in rows] == [
        ("Erick", D2, Decimal("300.00")),
        ("Barros", D1, Decimal("120.00")),
        ("Barros", D2, Decimal("80.00")),
        ("Erick", D3, Decimal("0.00")),
    ]
    barros_d1 = rows[1]
    assert barros_d1.profit == Decimal("45.00")
    assert barros_d1.roi == Decimal("0.3750")
    assert barros_d1.purchase_count == 3


def test_zero_cost_roi_is_zero_in_every_view():
    records = _records()
    erick_d3 = [r for r in build_grouped_rows(records, IDENTITY) if r.date == D3][0]
    assert erick_d3.roi == 0

    daily = {d.date: d for d in build_daily_totals(records)}
    assert daily[D3].roi == 0

    totals = build_totals([r for r in records if r.date == D3])
    assert totals.roi == 0
    assert totals.total_profit == Decimal("10.00")


def test_identity_subset_merges_funnels():
    records = _records() + [make_record(variant="vsl99", date=D1, cost=Decimal("5.00"))]
    by_six = build_grouped_rows(records, IDENTITY)
    by_manager = build_grouped_rows(records, ("manager",))
    assert len(by_six) == 5
    assert len(by_manager) == 4
    assert all(r.variant is None for r in by_manager)


def test_totals():
    totals = build_totals(_records())
    assert totals.total_cost == Decimal("500.00")
    assert totals.total_profit == Decimal("145.00")
    assert totals.roi == Decimal("0.2900")
    assert totals.total_purchases == 7


def test_daily_totals_ascending():
    daily = build_daily_totals(_records())
    assert [d.date for d in daily] == [D1, D2, D3]
    assert daily[1].cost == Decimal("380.00")
    assert daily[1].profit == Decimal("90.00")


def test_funnel_matrix_marks_missing_days():
    matrix = build_funnel_matrix(_records(), ("manager",))

    assert matrix.dates == [D1, D2, D3]
    assert [f.manager for f in matrix.funnels] == ["Erick", "Barros"]

    erick, barros = matrix.funnels
    assert erick.total_cost == Decimal("300.00")
    assert erick.cells[0] is None
    assert erick.cells[1].cost == Decimal("300.00")
    assert erick.cells[2] is not None
    assert erick.cells[2].cost == Decimal("0.00")

    assert barros.total_cost == Decimal("200.00")
    assert barros.cells[0].cost == Decimal("120.00")
    assert barros.cells[2] is None


def test_empty_inputs():
    assert build_grouped_rows([], IDENTITY) == []
    assert build_daily_totals([]) == []
    assert build_totals([]).total_cost == 0
    assert build_funnel_matrix([], IDENTITY).funnels == []


# ── Against storage ──


def _store(session):
    session.add_all(_records())
    session.commit()


def test_filters_combine_with_and(session):
    _store(session)
    rows = compute_grouped(
        session, FunnelFilters(manager="Erick", start_date=D3, end_date=D3), IDENTITY
    )
    assert len(rows) == 1
    assert rows[0].date == D3

    assert compute_grouped(session, FunnelFilters(manager="Erick", channel="NB"), IDENTITY) == []


def test_date_bounds_are_inclusive(session):
    _store(session)
    daily = compute_daily_totals(session, FunnelFilters(start_date=D1, end_date=D2))
    assert [d.date for d in daily] == [D1, D2]


def test_grouped_cost_sum_matches_totals(session):
    _store(session)
    for filters in (
        FunnelFilters(),
        FunnelFilters(manager="Barros"),
        FunnelFilters(start_date=D2),
        FunnelFilters(channel="TB", end_date=D2),
        FunnelFilters(niche="nothing"),
    ):
        rows = compute_grouped(session, filters, IDENTITY)
        totals = compute_totals(session, filters)
        assert sum((r.cost for r in rows), Decimal("0")) == totals.total_cost


def test_matrix_uses_configured_identity(session):
    _store(session)
    matrix = compute_matrix(session)
    assert matrix.identity_fields == list(IDENTITY)
    assert len(matrix.funnels) == 2


def test_reads_degrade_to_empty(session, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("no such table"))

    monkeypatch.setattr(session, "exec", broken)
    assert compute_grouped(session) == []
    assert compute_daily_totals(session) == []
    assert compute_totals(session).total_cost == 0
    assert compute_matrix(session).funnels == []
