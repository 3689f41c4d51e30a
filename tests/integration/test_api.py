"""Integration tests for FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from crusade import __version__
from crusade.api.app import create_app
from crusade.api.runtime import ApiState
from crusade.config import Settings


@pytest.fixture
def client(tmp_path):
    """Create test client with campaign storage under a temporary directory."""

    def factory() -> ApiState:
        return ApiState(settings=Settings(data_dir=tmp_path))

    with TestClient(create_app(state_factory=factory)) as test_client:
        yield test_client


def test_health_endpoint(client):
    """Test /health endpoint returns healthy status."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["edition"] == "10th"
    assert data["autosave_interval_seconds"] == 300.0


def test_api_docs_available(client):
    """Test that OpenAPI documentation is accessible."""
    response = client.get("/docs")
    assert response.status_code == 200

    response = client.get("/openapi.json")
    assert response.status_code == 200
    data = response.json()
    assert data["info"]["title"] == "Crusade Campaign API"


def test_campaign_is_stored_on_disk(client, tmp_path):
    """A campaign created over HTTP is stored as a snapshot ring on disk."""
    response = client.post("/campaigns", json={"name": "Pariah Nexus"})
    assert response.status_code == 201
    campaign_id = response.json()["id"]

    response = client.post(f"/campaigns/{campaign_id}/players", json={"name": "Alice"})
    player_id = response.json()["entity"]["id"]

    response = client.post(
        f"/campaigns/{campaign_id}/players/{player_id}/units",
        json=[{"name": "Knight Paladin", "points_cost": 1200, "keywords": ["VEHICLE", "TITANIC"]}],
    )
    assert response.status_code == 200

    response = client.get(f"/campaigns/{campaign_id}/validate")
    payload = response.json()
    assert payload["is_valid"] is True
    assert [w["code"] for w in payload["warnings"]] == ["supply_limit_exceeded"]

    response = client.post(f"/campaigns/{campaign_id}/save")
    assert response.status_code == 200
    assert (tmp_path / campaign_id / response.json()["filename"]).exists()
