"""Tests for the FastAPI API endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from superstore_brain.analysis.tools.sql_executor import QueryResult
from superstore_brain.db.connection import get_session


def _mock_session_override():
    session = AsyncMock()
    yield session


def _query_result(rows):
    columns = list(rows[0].keys()) if rows else []
    return QueryResult(rows=rows, columns=columns, row_count=len(rows), query="SELECT", duration_ms=0)


NYC_ROWS = [
    {"customer_name": "A", "city": "New York City", "sales": 80.0},
    {"customer_name": "B", "city": "New York City", "sales": 10.0},
    {"customer_name": "B", "city": "New York City", "sales": 5.0},
    {"customer_name": "C", "city": "New York City", "sales": 5.0},
    {"customer_name": "D", "city": "New York City", "sales": None},
]

ORDER_ROWS = [
    {"country": "United States", "city": "Seattle", "segment": "Consumer", "sales": 10.0,
     "profit": 1.0, "year_": 2014, "product_name": "Pen"},
    {"country": "United States", "city": "New York City", "segment": "Corporate", "sales": 30.0,
     "profit": 4.0, "year_": 2014, "product_name": "Desk"},
]


@pytest.fixture()
def client():
    from superstore_brain.action.api import app

    app.dependency_overrides[get_session] = _mock_session_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": "1.0.0"}


# ---------------------------------------------------------------------------
# POST /pareto
# ---------------------------------------------------------------------------


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_pareto_default_threshold(mock_execute, client):
    mock_execute.return_value = _query_result(NYC_ROWS)

    resp = client.post("/pareto", json={"city": "New York City"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["threshold"] == 80.0
    assert [e["entity_id"] for e in data["entities"]] == ["A"]
    assert data["entities"][0]["cumulative_share"] == 80.0
    assert data["ranked_count"] == 3
    assert data["skipped_rows"] == 1
    assert data["excluded_groups"] == []
    assert data["groups"][0]["vital_few_count"] == 1

    intent = mock_execute.call_args.args[1]
    assert intent.select_columns == ["customer_name", "city", "sales"]
    assert [(f.column, f.value) for f in intent.filters] == [("city", "New York City")]


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_pareto_custom_threshold_and_columns(mock_execute, client):
    rows = [
        {"customer_name": "A", "segment": "Consumer", "sales": 80.0},
        {"customer_name": "B", "segment": "Consumer", "sales": 15.0},
        {"customer_name": "C", "segment": "Consumer", "sales": 5.0},
        {"customer_name": "D", "segment": "Corporate", "sales": 10.0},
    ]
    mock_execute.return_value = _query_result(rows)

    resp = client.post("/pareto", json={
        "city": "New York City",
        "group_column": "segment",
        "threshold": 95,
        "start": "2014-01-01",
    })

    assert resp.status_code == 200
    entities = [(e["group_id"], e["entity_id"]) for e in resp.json()["entities"]]
    assert entities == [("Consumer", "A"), ("Consumer", "B")]
    intent = mock_execute.call_args.args[1]
    assert intent.date_range.column == "order_date"
    assert str(intent.date_range.start) == "2014-01-01"


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_pareto_excludes_zero_groups(mock_execute, client):
    rows = NYC_ROWS + [{"customer_name": "Z", "city": "Ghost Town", "sales": 0.0}]
    mock_execute.return_value = _query_result(rows)

    resp = client.post("/pareto", json={})

    data = resp.json()
    assert data["excluded_groups"][0]["group_id"] == "Ghost Town"
    assert "excluded" in data["summary"]


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_pareto_raise_policy_returns_422(mock_execute, client):
    mock_execute.return_value = _query_result([{"customer_name": "Z", "city": "Ghost Town", "sales": 0.0}])

    resp = client.post("/pareto", json={"empty_group_policy": "raise"})

    assert resp.status_code == 422
    assert "Ghost Town" in resp.json()["detail"]


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_pareto_invalid_threshold(mock_execute, client):
    resp = client.post("/pareto", json={"threshold": 120})
    assert resp.status_code == 422
    mock_execute.assert_not_called()


@patch("superstore_brain.action.routers.reports.stage_ranked_entities", new_callable=AsyncMock)
@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_pareto_stage(mock_execute, mock_stage, client):
    mock_execute.return_value = _query_result(NYC_ROWS)

    resp = client.post("/pareto", json={"stage": True})

    assert resp.status_code == 200
    mock_stage.assert_awaited_once()
    assert mock_stage.call_args.args[2] == "temp_customer_sales"


# ---------------------------------------------------------------------------
# GET /reports/{report_name}
# ---------------------------------------------------------------------------


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_report_totals(mock_execute, client):
    mock_execute.return_value = _query_result(ORDER_ROWS)

    resp = client.get("/reports/totals")

    assert resp.status_code == 200
    assert resp.json() == {"report": "totals", "rows": {"total_sales": 40.0, "total_profit": 5.0}}


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_report_city_sales(mock_execute, client):
    mock_execute.return_value = _query_result(ORDER_ROWS)

    resp = client.get("/reports/city_sales", params={"country": "United States"})

    assert resp.status_code == 200
    assert [r["city"] for r in resp.json()["rows"]] == ["New York City", "Seattle"]
    intent = mock_execute.call_args.args[1]
    assert [(f.column, f.value) for f in intent.filters] == [("country", "United States")]


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
def test_report_top_n(mock_execute, client):
    mock_execute.return_value = _query_result(ORDER_ROWS)

    resp = client.get("/reports/top_product_per_top_countries", params={"top_n": 1})

    assert resp.json()["rows"] == [
        {"country": "United States", "product_name": "Desk", "total_profit": 4.0},
    ]


@patch("superstore_brain.action.routers.reports.execute", new_callable=AsyncMock)
@pytest.mark.parametrize("top_n", [0, -1])
def test_report_top_n_must_be_positive(mock_execute, top_n, client):
    resp = client.get("/reports/top_product_per_top_countries", params={"top_n": top_n})

    assert resp.status_code == 422
    mock_execute.assert_not_called()


def test_scoped_report_needs_scope(client):
    resp = client.get("/reports/segment_sales")
    assert resp.status_code == 422


def test_unknown_report(client):
    resp = client.get("/reports/nonsense")
    assert resp.status_code == 404
