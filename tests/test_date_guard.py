from datetime import date

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from funneldash.analyzer.date_guard import find_existing_dates, guard_import
from funneldash.models.funnel_models import FunnelRecord
from funneldash.storage.funnel_store import get_existing_dates

JAN = [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]


def _count(session) -> int:
    return len(session.exec(select(FunnelRecord)).all())


def test_no_conflict_proceeds(session, seed):
    seed({"date": date(2024, 12, 31)})
    decision = guard_import(session, JAN)
    assert decision.proceed
    assert decision.conflicts == []
    assert decision.deleted == 0


def test_conflict_without_replace_changes_nothing(session, seed):
    seed({"date": date(2025, 1, 2)}, {"date": date(2025, 1, 2)}, {"date": date(2024, 12, 31)})
    before = _count(session)

    decision = guard_import(session, JAN, replace=False)

    assert not decision.proceed
    assert decision.conflicts == [date(2025, 1, 2)]
    assert _count(session) == before


def test_replace_deletes_exactly_the_overlap(session, seed):
    seed({"date": date(2025, 1, 2)}, {"date": date(2025, 1, 2)}, {"date": date(2024, 12, 31)})

    decision = guard_import(session, JAN, replace=True)

    assert decision.proceed
    assert decision.conflicts == [date(2025, 1, 2)]
    assert decision.deleted == 2
    assert get_existing_dates(session) == [date(2024, 12, 31)]


def test_existing_dates_after_import_are_the_imported_dates(session, seed):
    seed(*({"date": d} for d in JAN))
    assert find_existing_dates(session, JAN) == JAN
    assert find_existing_dates(session, reversed(JAN)) == JAN


def _break_storage(session, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "exec", broken)


def test_existing_date_lookup_degrades_to_empty(session, monkeypatch):
    _break_storage(session, monkeypatch)
    assert find_existing_dates(session, JAN) == []


def test_guard_surfaces_storage_errors(session, monkeypatch):
    _break_storage(session, monkeypatch)
    with pytest.raises(OperationalError):
        guard_import(session, JAN, replace=True)
