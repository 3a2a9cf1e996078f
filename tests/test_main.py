import pytest
from fastapi.testclient import TestClient

from sheet_insights.analyzer import FAILURE_MESSAGE, Analyzer
from sheet_insights.main import app, get_analyzer

CSV = b"region,amount\nEast,10\nWest,5\n"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _use_source(source):
    app.dependency_overrides[get_analyzer] = lambda: Analyzer(source)


def _post(client, content=CSV, filename="sales.csv", chart_type="pie"):
    return client.post(
        "/api/analyze",
        files={"file": (filename, content, "text/csv")},
        data={"query": "Share of amount by region", "chartType": chart_type},
    )


def test_analyze_returns_chart_payload(client, scripted_source):
    source = scripted_source([
        "<think>group by region</think>",
        '{"data": [{"label": "East", "value": 10}, {"label": "West", "value": 5}], "summary": "East is two thirds."}',
    ])
    _use_source(source)

    response = _post(client)
    assert response.status_code == 200
    assert response.json() == {
        "data": [{"label": "East", "value": 10}, {"label": "West", "value": 5}],
        "summary": "East is two thirds.",
        "reasoning": "group by region",
        "chartType": "pie",
        "error": None,
    }
    assert '"region": "East"' in source.calls[0][1]


def test_chart_type_is_echoed_unchanged(client, scripted_source):
    _use_source(scripted_source(['{"data": [], "summary": ""}']))
    response = _post(client, chart_type="Donut")
    assert response.json()["chartType"] == "Donut"


def test_completion_failure_is_well_formed_empty(client, unreachable_source):
    _use_source(unreachable_source)

    response = _post(client)
    assert response.status_code == 200
    body = response.json()
    assert body["data"] == []
    assert body["summary"] == ""
    assert body["reasoning"] == ""
    assert body["error"] == FAILURE_MESSAGE


def test_unreadable_upload_is_rejected(client, unreachable_source):
    _use_source(unreachable_source)

    response = _post(client, content=b"not a workbook", filename="report.xlsx")
    assert response.status_code == 400
    assert unreachable_source.calls == 0


def test_sheet_without_rows_is_rejected(client, unreachable_source):
    _use_source(unreachable_source)

    response = _post(client, content=b"region,amount\n")
    assert response.status_code == 400


def test_missing_query_is_validation_error(client):
    response = client.post("/api/analyze", files={"file": ("sales.csv", CSV, "text/csv")})
    assert response.status_code == 422
