import pytest
from fastapi.testclient import TestClient

from telemetry_viz.api.routes import app, get_controller
from telemetry_viz.core.session import SessionController

from .fakes import TELEMETRY_CSV, FakeInsightClient


@pytest.fixture
def client():
    controller = SessionController(insight_client=FakeInsightClient())
    app.dependency_overrides[get_controller] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def upload(client, content=TELEMETRY_CSV, name="run.csv"):
    return client.post("/upload?wait=true", files={"file": (name, content, "text/csv")})


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "online"

def test_upload_returns_session(client):
    response = upload(client)
    assert response.status_code == 200

    session = response.json()["session"]
    assert session["dataset_status"] == "ready"
    assert session["dataset"]["numericColumns"] == ["TimeStamp", "D1_Commanded_Torque", "D1_DC_Bus_Voltage"]
    assert session["dataset"]["rows"] == 3
    assert session["axes"] == {"xAxis": "TimeStamp", "yAxis": "D1_Commanded_Torque"}
    assert session["insight"]["status"] == "ready"
    assert session["insight"]["recommendations"][0]["xAxis"] == "TimeStamp"

def test_upload_parse_error(client):
    response = upload(client, content=b"", name="broken.csv")
    assert response.status_code == 400
    assert response.json()["error"] == "ParseError"
    assert client.get("/session").json()["dataset_status"] == "empty"

def test_requests_before_upload_are_rejected(client):
    assert client.get("/chart").status_code == 400
    assert client.put("/axes", json={"axis": "x", "column": "TimeStamp"}).status_code == 400

def test_axis_selection_and_chart(client):
    upload(client)

    response = client.put("/axes", json={"axis": "y", "column": "D1_DC_Bus_Voltage"})
    assert response.status_code == 200
    assert response.json() == {"xAxis": "TimeStamp", "yAxis": "D1_DC_Bus_Voltage"}

    chart = client.get("/chart").json()
    assert chart["yAxis"] == "D1_DC_Bus_Voltage"
    assert "data" in chart["chart"]
    assert "layout" in chart["chart"]

def test_invalid_axis_column(client):
    upload(client)
    response = client.put("/axes", json={"axis": "x", "column": "Nope"})
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidSelectionError"

def test_accept_recommendation(client):
    upload(client)
    response = client.post("/recommendations/accept", json={"xAxis": "TimeStamp", "yAxis": "Unknown_Col"})
    assert response.json() == {"xAxis": "TimeStamp", "yAxis": "Unknown_Col"}

    chart = client.get("/chart")
    assert chart.status_code == 422
    assert chart.json()["error"] == "VisualizationError"

def test_preview(client):
    upload(client)
    body = client.get("/preview?limit=2").json()
    assert body["total"] == 3
    assert len(body["rows"]) == 2
    assert body["headers"][0] == "TimeStamp"
