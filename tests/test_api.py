from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.api.main import app
from app.data_access.database import DataSource, get_data_source, sqlite_url


@pytest.fixture(name="client")
def client_fixture(data_source: DataSource) -> Generator[TestClient, Any, None]:
    app.dependency_overrides[get_data_source] = lambda: data_source
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_read_main(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to the Chinook Business Report API"}


def test_schema_tables(client: TestClient) -> None:
    response = client.get("/v1/schema/tables")
    assert response.status_code == 200
    names = {t["name"] for t in response.json() if t["kind"] == "table"}
    assert "invoice_line" in names

    assert client.get("/v1/schema/missing").json() == []


def test_as_of_date(client: TestClient) -> None:
    response = client.get("/v1/reports/as-of-date")
    assert response.json() == {"as_of_date": "2025-06-30"}


def test_genre_sales_endpoint(client: TestClient) -> None:
    response = client.get("/v1/reports/genre-sales", params={"country": "USA", "top_n": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "genre_sales"
    assert body["columns"]["tracks_sold"] == "integer"
    assert [r["genre_name"] for r in body["rows"]] == ["Rock", "Jazz"]


def test_genre_sales_rejects_bad_top_n(client: TestClient) -> None:
    response = client.get("/v1/reports/genre-sales", params={"top_n": 0})
    assert response.status_code == 422


def test_agent_performance_endpoint(client: TestClient) -> None:
    body = client.get("/v1/reports/agent-performance").json()
    assert [r["employee_name"] for r in body["rows"]] == ["Jane Peacock", "Margaret Park"]
    for row in body["rows"]:
        assert row["sales_per_month"] == pytest.approx(row["sales_per_day"] * 30)


def test_country_sales_endpoint(client: TestClient) -> None:
    body = client.get("/v1/reports/country-sales").json()
    assert [r["country_label"] for r in body["rows"]] == ["USA", "Brazil", "Other"]


def test_purchase_types_raise_policy_conflict(client: TestClient) -> None:
    response = client.get("/v1/reports/purchase-types", params={"multi_album_policy": "raise"})
    assert response.status_code == 409

    response = client.get("/v1/reports/purchase-types")
    assert response.status_code == 200
    assert {r["type_of_purchase"] for r in response.json()["rows"]} == {"album", "single_track"}


def test_full_report_endpoint(client: TestClient) -> None:
    body = client.get("/v1/reports/full").json()
    assert body["as_of_date"] == "2025-06-30"
    assert [s["status"] for s in body["sections"]] == ["ok"] * 4


def test_unreachable_database_is_503(tmp_path) -> None:
    missing = DataSource(sqlite_url(tmp_path / "missing.db"))
    app.dependency_overrides[get_data_source] = lambda: missing
    try:
        with TestClient(app) as client:
            assert client.get("/v1/reports/country-sales").status_code == 503
            assert client.get("/v1/schema/tables").status_code == 503
            # The full report still answers, with every section flagged
            body = client.get("/v1/reports/full").json()
            assert {s["status"] for s in body["sections"]} == {"failed"}
    finally:
        app.dependency_overrides.clear()


def test_data_source_dependency_disposes_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    disposed: list[bool] = []
    dependency = get_data_source()
    data_source = next(dependency)
    monkeypatch.setattr(data_source, "dispose", lambda: disposed.append(True))

    assert isinstance(data_source, DataSource)
    dependency.close()
    assert disposed == [True]
