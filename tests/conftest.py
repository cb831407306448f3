from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from funneldash.database import get_session
from funneldash.main import app
from funneldash.models.funnel_models import FunnelRecord

CSV_HEADER = "Campaign,Prelanding,Landing,Date,Cost,Profit,Total ROI,Purchase,InitiateCheckout CPA"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_record(**overrides) -> FunnelRecord:
    values = dict(
        campaign="NTE | GB | NB | test",
        manager="Barros",
        channel="NB",
        niche="Memória",
        advertiser="adv02",
        variant="vsl70",
        product="memorylift",
        date=date(2025, 1, 15),
        cost=Decimal("100.00"),
        profit=Decimal("25.00"),
        roi=Decimal("0.2500"),
        purchase_count=3,
    )
    values.update(overrides)
    return FunnelRecord(**values)


@pytest.fixture
def seed(session):
    """Insert records built with ``make_record`` overrides and return them."""

    def _seed(*overrides):
        records = [make_record(**o) for o in overrides]
        session.add_all(records)
        session.commit()
        return records

    return _seed
