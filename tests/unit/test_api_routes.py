"""Tests for the FastAPI layer."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from crusade.api.app import create_app
from crusade.api.runtime import ApiState
from crusade.config import Settings
from crusade.domain import models as dm
from crusade.persistence import PersistenceCoordinator


def _make_app(tmp_path):
    def factory() -> ApiState:
        settings = Settings(data_dir=tmp_path, autosave_interval_seconds=60.0)
        return ApiState(settings=settings)

    app = create_app(state_factory=factory)
    transport = ASGITransport(app=app)
    return app, transport


async def _create_campaign(client: AsyncClient) -> str:
    response = await client.post(
        "/campaigns",
        json={"name": "Nachmund Gauntlet", "description": "Autumn league"},
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["player_count"] == 0
    assert payload["edition"] == "10th"
    return payload["id"]


async def _add_player(client: AsyncClient, campaign_id: str, name: str) -> str:
    response = await client.post(
        f"/campaigns/{campaign_id}/players", json={"name": name, "faction": "Astra Militarum"}
    )
    assert response.status_code == 201
    return response.json()["entity"]["id"]


@pytest.mark.asyncio
async def test_campaign_lifecycle_via_api(tmp_path):
    app, transport = _make_app(tmp_path)

    async with (
        app.router.lifespan_context(app),
        AsyncClient(transport=transport, base_url="http://test") as client,
    ):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

        campaign_id = await _create_campaign(client)
        player_id = await _add_player(client, campaign_id, "Alice")

        response = await client.post(
            f"/campaigns/{campaign_id}/players/{player_id}/units",
            json=[
                {"name": "Lord Solar", "points_cost": 260, "keywords": ["CHARACTER", "EPIC HERO"]},
                {"points_cost": 60},
                {"name": "Cadian Shock Troops", "points_cost": 65, "keywords": "INFANTRY, BATTLELINE"},
            ],
        )
        assert response.status_code == 200
        report = response.json()["entity"]
        assert [u["name"] for u in report["imported"]] == ["Lord Solar", "Cadian Shock Troops"]
        assert len(report["errors"]) == 1
        troops_id = report["imported"][1]["id"]

        response = await client.post(
            f"/campaigns/{campaign_id}/requisitions/cost",
            json={"player_id": player_id, "requisition": "fresh_recruits", "unit_id": troops_id},
        )
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["data"]["cost"] == 1

        response = await client.post(
            f"/campaigns/{campaign_id}/requisitions",
            json={
                "player_id": player_id,
                "requisition": "fresh_recruits",
                "unit_id": troops_id,
                "points_added": 65,
            },
        )
        assert response.status_code == 200
        assert response.json()["data"]["cost"] == 1

        response = await client.get(f"/campaigns/{campaign_id}")
        assert response.status_code == 200
        detail = response.json()
        (player,) = detail["players"]
        assert player["requisition_points"] == 4
        assert player["supply_used"] == 390
        assert {u["rank_name"] for u in detail["units"]} == {"Battle-Ready"}

        response = await client.get(f"/campaigns/{campaign_id}/validate")
        assert response.status_code == 200
        assert response.json()["is_valid"] is True

        response = await client.post(f"/campaigns/{campaign_id}/save")
        assert response.status_code == 200
        assert response.json()["filename"] == "snapshot-00000002.json"

    stored = PersistenceCoordinator(tmp_path).load(dm.CampaignID(campaign_id))
    assert len(stored.campaign.units) == 2
    assert stored.campaign.players[dm.PlayerID(player_id)].requisition_points == 4


@pytest.mark.asyncio
async def test_requisition_errors_map_to_status_codes(tmp_path):
    app, transport = _make_app(tmp_path)

    async with (
        app.router.lifespan_context(app),
        AsyncClient(transport=transport, base_url="http://test") as client,
    ):
        campaign_id = await _create_campaign(client)
        player_id = await _add_player(client, campaign_id, "Alice")
        body = {"player_id": player_id, "requisition": "increase_supply_limit"}

        for _ in range(5):
            response = await client.post(f"/campaigns/{campaign_id}/requisitions", json=body)
            assert response.status_code == 200

        response = await client.post(f"/campaigns/{campaign_id}/requisitions", json=body)
        assert response.status_code == 409

        response = await client.post(f"/campaigns/{campaign_id}/requisitions/cost", json=body)
        assert response.status_code == 200
        assert response.json()["success"] is False

        response = await client.post(
            f"/campaigns/{campaign_id}/requisitions",
            json={"player_id": "ghost", "requisition": "increase_supply_limit"},
        )
        assert response.status_code == 404

        response = await client.post(
            f"/campaigns/{campaign_id}/players/{player_id}/units", json=[{"points_cost": 1}]
        )
        assert response.status_code == 422
        assert len(response.json()["detail"]["errors"]) == 1


@pytest.mark.asyncio
async def test_backups_restore_and_autosave(tmp_path):
    app, transport = _make_app(tmp_path)

    async with (
        app.router.lifespan_context(app),
        AsyncClient(transport=transport, base_url="http://test") as client,
    ):
        campaign_id = await _create_campaign(client)
        await _add_player(client, campaign_id, "Alice")
        await client.post(f"/campaigns/{campaign_id}/save")

        response = await client.get(f"/campaigns/{campaign_id}/backups")
        assert response.status_code == 200
        backups = response.json()
        assert [b["index"] for b in backups] == [0, 1]

        response = await client.post(f"/campaigns/{campaign_id}/backups/1/restore")
        assert response.status_code == 200
        assert response.json()["player_count"] == 0

        response = await client.post(f"/campaigns/{campaign_id}/backups/9/restore")
        assert response.status_code == 404

        response = await client.post(
            f"/campaigns/{campaign_id}/autosave", json={"enabled": True, "interval_seconds": 30}
        )
        assert response.status_code == 200
        status_payload = response.json()
        assert status_payload == {"enabled": True, "running": True, "interval_seconds": 30.0}

        response = await client.get(f"/campaigns/{campaign_id}/autosave")
        assert response.json()["enabled"] is True

        response = await client.post(f"/campaigns/{campaign_id}/autosave", json={"enabled": False})
        assert response.json()["enabled"] is False
        assert response.json()["running"] is False


@pytest.mark.asyncio
async def test_unknown_campaigns_and_editions(tmp_path):
    app, transport = _make_app(tmp_path)

    async with (
        app.router.lifespan_context(app),
        AsyncClient(transport=transport, base_url="http://test") as client,
    ):
        response = await client.get("/campaigns")
        assert response.status_code == 200
        assert response.json() == []

        assert (await client.get("/campaigns/missing")).status_code == 404
        assert (await client.get("/campaigns/missing/backups")).status_code == 404
        assert (await client.post("/campaigns/missing/save")).status_code == 404

        response = await client.post("/campaigns", json={"name": "Old", "edition": "3rd"})
        assert response.status_code == 422

        response = await client.get("/rules")
        assert response.status_code == 200
        assert response.json()["progression"]["xp_per_crusade_point"] == 5

        response = await client.get("/rules", params={"edition": "9th"})
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_campaigns_survive_restart(tmp_path):
    app, transport = _make_app(tmp_path)
    async with (
        app.router.lifespan_context(app),
        AsyncClient(transport=transport, base_url="http://test") as client,
    ):
        campaign_id = await _create_campaign(client)

    app, transport = _make_app(tmp_path)
    async with (
        app.router.lifespan_context(app),
        AsyncClient(transport=transport, base_url="http://test") as client,
    ):
        response = await client.get("/campaigns")
        assert [c["id"] for c in response.json()] == [campaign_id]
        assert response.json()[0]["name"] == "Nachmund Gauntlet"
