from fastapi.testclient import TestClient

import component_webhooks.api.main as api_main


def test_health_returns_ok() -> None:
    client = TestClient(api_main.app)
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["env"] == api_main.settings.env


def test_version_endpoint() -> None:
    client = TestClient(api_main.app)
    response = client.get("/version")

    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "component_webhooks"
    assert payload["version"]


def test_request_id_header_is_echoed() -> None:
    client = TestClient(api_main.app)
    response = client.get("/health", headers={"x-request-id": "req-abc"})

    assert response.headers["x-request-id"] == "req-abc"
