from datetime import date
from decimal import Decimal

import httpx
from sqlalchemy.exc import OperationalError

from conftest import CSV_HEADER
from funneldash.api import redtrack_routes
from funneldash.analyzer import importer
from funneldash.connectors.redtrack.client import RedTrackClient

ROW = '"NT | GB | NB | c","ADV 02","VSL 70 (memorylift)",{day},100.00,25.00,25%,3,8.33'


def _csv(*days):
    return "\n".join([CSV_HEADER, *(ROW.format(day=d) for d in days)])


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_upload_then_read_views(client):
    response = client.post(
        "/funnel/upload", json={"csv_content": _csv("2025-01-01", "2025-01-02")}
    )
    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["records_imported"] == 2
    assert body["dates_imported"] == ["2025-01-01", "2025-01-02"]

    data = client.get("/funnel/data").json()
    assert len(data) == 2
    assert data[0]["manager"] == "Barros"
    assert Decimal(data[0]["cost"]) == Decimal("100.00")

    totals = client.get("/funnel/totals").json()
    assert Decimal(totals["total_cost"]) == Decimal("200.00")
    assert Decimal(totals["roi"]) == Decimal("0.25")
    assert totals["total_purchases"] == 6

    daily = client.get("/funnel/daily", params={"start_date": "2025-01-02"}).json()
    assert [d["date"] for d in daily] == ["2025-01-02"]

    matrix = client.get("/funnel/matrix").json()
    assert matrix["dates"] == ["2025-01-01", "2025-01-02"]
    assert len(matrix["funnels"]) == 1

    filters = client.get("/funnel/filters").json()
    assert filters["managers"] == ["Barros"]
    assert filters["niches"] == ["Memória"]
    assert filters["dates"] == ["2025-01-02", "2025-01-01"]

    assert client.get("/funnel/dates").json() == ["2025-01-02", "2025-01-01"]


def test_filters_are_query_params(client, seed):
    seed({"manager": "Barros"}, {"manager": "Erick", "cost": Decimal("7.00")})
    totals = client.get("/funnel/totals", params={"manager": "Erick"}).json()
    assert Decimal(totals["total_cost"]) == Decimal("7.00")


def test_invalid_date_filter_is_rejected(client):
    assert client.get("/funnel/data", params={"start_date": "15-01-2025"}).status_code == 422


def test_check_dates(client, seed):
    seed({"date": date(2025, 1, 2)})
    response = client.post(
        "/funnel/check-dates", json={"dates": ["2025-01-01", "2025-01-02", "2025-01-03"]}
    )
    assert response.json() == {"existing_dates": ["2025-01-02"]}


def test_upload_conflict_and_replace(client, seed):
    seed({"date": date(2025, 1, 2)})
    days = ("2025-01-01", "2025-01-02", "2025-01-03")

    conflict = client.post("/funnel/upload", json={"csv_content": _csv(*days)}).json()
    assert conflict["success"] is False
    assert conflict["reason"] == "duplicate_dates"
    assert conflict["duplicate_dates"] == ["2025-01-02"]
    assert client.get("/funnel/dates").json() == ["2025-01-02"]

    replaced = client.post(
        "/funnel/upload", json={"csv_content": _csv(*days), "replace_existing": True}
    ).json()
    assert replaced["success"] is True
    assert client.get("/funnel/dates").json() == list(reversed(days))


def test_upload_empty_and_header_only(client):
    empty = client.post("/funnel/upload", json={"csv_content": ""}).json()
    assert empty["reason"] == "empty_csv"

    header_only = client.post("/funnel/upload", json={"csv_content": CSV_HEADER}).json()
    assert header_only["reason"] == "no_valid_records"


def _mock_client_factory(handler):
    def factory(*args, **kwargs):
        return RedTrackClient(api_key="key", transport=httpx.MockTransport(handler))

    return factory


def test_redtrack_import_route(client, monkeypatch):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "campaign": "NT | NTE-BARROS | FB | Memória | memorylift | x | s1 | t",
                        "cost": 40,
                        "profit": 10,
                        "conversions": 1,
                    }
                ]
            },
        )

    monkeypatch.setattr(importer, "RedTrackClient", _mock_client_factory(handler))
    response = client.post(
        "/redtrack/import", json={"start_date": "2025-01-05", "end_date": "2025-01-05"}
    )
    body = response.json()
    assert body["success"] is True
    assert body["records_imported"] == 1
    assert client.get("/funnel/filters").json()["managers"] == ["Barros"]


def test_redtrack_import_rejects_bad_body(client):
    response = client.post("/redtrack/import", json={"start_date": "nope"})
    assert response.status_code == 422


def test_redtrack_test_connection_route(client, monkeypatch):
    monkeypatch.setattr(
        redtrack_routes,
        "RedTrackClient",
        _mock_client_factory(lambda request: httpx.Response(200, json=[])),
    )
    assert client.get("/redtrack/test-connection").json() == {"connected": True}


def test_read_endpoints_degrade_when_storage_is_down(client, session, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "exec", broken)

    dates = client.get("/funnel/dates")
    assert dates.status_code == 200
    assert dates.json() == []

    check = client.post("/funnel/check-dates", json={"dates": ["2025-01-01"]})
    assert check.status_code == 200
    assert check.json() == {"existing_dates": []}

    filters = client.get("/funnel/filters")
    assert filters.status_code == 200
    assert filters.json()["managers"] == []

    totals = client.get("/funnel/totals")
    assert totals.status_code == 200
    assert totals.json()["total_purchases"] == 0


def test_upload_reports_storage_error_when_storage_is_down(client, session, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "exec", broken)
    body = client.post("/funnel/upload", json={"csv_content": _csv("2025-01-01")}).json()
    assert body["success"] is False
    assert body["reason"] == "storage_error"
