from pathlib import Path

from fastapi.testclient import TestClient

from pipewatch.api.app import create_app
from tests.support.pipewatch_helpers import PipewatchTestClock, make_services


def test_health_endpoint(tmp_path: Path) -> None:
    client = TestClient(create_app(make_services(tmp_path, PipewatchTestClock())))
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
