"""Tests for API runtime helpers (campaign service and autosave wiring)."""

from __future__ import annotations

import pytest

from crusade.api.runtime import ApiState, CampaignNotFoundError, CampaignService, entity_to_dict
from crusade.config import Settings
from crusade.domain import models as dm
from crusade.domain.enums import EventType
from crusade.domain.events import events_of_type
from crusade.domain.roster import add_player, add_unit


def _state(tmp_path) -> ApiState:
    return ApiState(settings=Settings(data_dir=tmp_path / "data", autosave_interval_seconds=60.0))


async def _populated(state: ApiState) -> dm.Campaign:
    result = await state.campaigns.create_campaign("Octarius", description="Rising tide")
    campaign = result.entity
    player = add_player(campaign, "Alice", faction="Tyranids").entity
    add_unit(
        campaign,
        player.id,
        {"name": "Hive Tyrant", "points_cost": 230, "keywords": ["MONSTER", "CHARACTER"]},
    )
    return campaign


@pytest.mark.asyncio
async def test_create_persists_first_snapshot(tmp_path):
    state = _state(tmp_path)

    campaign = await _populated(state)

    assert state.coordinator.list_campaigns() == [campaign.id]
    assert len(state.coordinator.list_backups(campaign.id)) == 1
    assert (await state.campaigns.open(campaign.id)).campaign is campaign


@pytest.mark.asyncio
async def test_create_rejects_invalid_rules(tmp_path):
    state = _state(tmp_path)

    result = await state.campaigns.create_campaign("Bad", rules_overrides={"honours": {"nope": 1}})

    assert not result
    assert state.coordinator.list_campaigns() == []


@pytest.mark.asyncio
async def test_open_loads_from_disk_and_logs(tmp_path):
    first = _state(tmp_path)
    campaign = await _populated(first)
    await first.campaigns.save(campaign.id)

    second = _state(tmp_path)
    session = await second.campaigns.open(campaign.id)

    assert session.campaign is not campaign
    assert session.campaign.name == "Octarius"
    assert len(session.campaign.units) == 1
    (loaded,) = events_of_type(session.campaign, EventType.CAMPAIGN_LOADED)
    assert loaded.data == {"source": "snapshot-00000002.json", "fallback": False}


@pytest.mark.asyncio
async def test_open_unknown_campaign(tmp_path):
    state = _state(tmp_path)

    with pytest.raises(CampaignNotFoundError):
        await state.campaigns.open(dm.CampaignID("missing"))
    with pytest.raises(CampaignNotFoundError):
        state.campaigns.list_backups(dm.CampaignID("missing"))


@pytest.mark.asyncio
async def test_list_campaigns_skips_unrecoverable(tmp_path):
    state = _state(tmp_path)
    good = await _populated(state)
    broken = dm.CampaignID("broken")
    (state.settings.data_dir / broken).mkdir()
    (state.settings.data_dir / broken / "snapshot-00000001.json").write_text("{}")

    fresh = _state(tmp_path)
    campaigns = await fresh.campaigns.list_campaigns()

    assert [c.id for c in campaigns] == [good.id]


@pytest.mark.asyncio
async def test_save_records_event(tmp_path):
    state = _state(tmp_path)
    campaign = await _populated(state)

    path = await state.campaigns.save(campaign.id)

    assert path.name == "snapshot-00000002.json"
    assert events_of_type(campaign, EventType.CAMPAIGN_SAVED)


@pytest.mark.asyncio
async def test_export_and_import_archive(tmp_path):
    state = _state(tmp_path)
    campaign = await _populated(state)

    archive = state.campaigns.export_to_file(campaign.id, tmp_path / "octarius.crusade")
    imported = await state.campaigns.import_from_file(archive)

    assert imported.id != campaign.id
    assert imported.name == campaign.name
    assert imported.units.keys() == campaign.units.keys()
    assert events_of_type(imported, EventType.CAMPAIGN_IMPORTED)
    assert sorted(state.coordinator.list_campaigns()) == sorted([campaign.id, imported.id])


def test_export_requires_open_campaign(tmp_path):
    state = _state(tmp_path)

    with pytest.raises(CampaignNotFoundError):
        state.campaigns.export_to_file(dm.CampaignID("closed"), tmp_path / "x.crusade")


@pytest.mark.asyncio
async def test_autosave_toggle_and_shutdown_flush(tmp_path):
    state = _state(tmp_path)
    campaign = await _populated(state)

    await state.campaigns.set_autosave(campaign.id, True)
    assert state.campaigns.autosave_enabled(campaign.id)
    assert state.autosave.running

    await state.shutdown()

    assert not state.autosave.running
    assert len(state.coordinator.list_backups(campaign.id)) == 2


@pytest.mark.asyncio
async def test_restore_replaces_session_campaign(tmp_path):
    state = _state(tmp_path)
    campaign = await _populated(state)
    await state.campaigns.save(campaign.id)

    restored = await state.campaigns.restore(campaign.id, 1)

    assert restored.players == {}
    assert (await state.campaigns.open(campaign.id)).campaign is restored


@pytest.mark.asyncio
async def test_detail_dict_includes_rank_names(tmp_path):
    state = _state(tmp_path)
    campaign = await _populated(state)
    session = await state.campaigns.open(campaign.id)

    detail = CampaignService.to_detail_dict(campaign, session.rules)

    assert detail["player_count"] == 1
    (unit,) = detail["units"]
    assert unit["rank_name"] == "Battle-Ready"
    assert detail["event_count"] == len(campaign.event_log)


def test_entity_to_dict_renders_plain_entities():
    unit = dm.Unit(id=dm.UnitID("u1"), owner_id=dm.PlayerID("p1"), name="Genestealers")
    unit.extras["brood"] = "Delta"

    payload = entity_to_dict(unit)

    assert payload["name"] == "Genestealers"
    assert payload["extras"] == {"brood": "Delta"}
