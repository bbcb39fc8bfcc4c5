from fastapi.testclient import TestClient

from trailcam.app import create_app


def test_service_endpoints(client):
    assert client.get("/").json() == {"service": "trailcam-relay", "status": "running"}
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/ping").text == "pong"

    status = client.get("/status").json()
    assert status["service"] == "trailcam-relay"
    assert status["db_connected"] is False


def test_database_not_ready_returns_503():
    client = TestClient(create_app())
    response = client.get("/live-cam")
    assert response.status_code == 503
    assert response.json()["detail"] == "Database not ready"
