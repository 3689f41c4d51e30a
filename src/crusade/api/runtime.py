"""Runtime primitives backing the crusade HTTP API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from crusade import savegame
from crusade.config import Settings, get_settings
from crusade.domain import models as dm
from crusade.domain.enums import EventType
from crusade.domain.events import record_event
from crusade.domain.progression import rank_name
from crusade.domain.results import OperationResult, RecoveryFailedError
from crusade.domain.roster import campaign_rules, create_campaign
from crusade.domain.rules_config import RulesConfig
from crusade.persistence import AutosaveScheduler, BackupInfo, PersistenceCoordinator
from crusade.persistence.snapshot import campaign_to_dict

logger = logging.getLogger(__name__)


@lru_cache
def _adapter(cls: type) -> TypeAdapter[Any]:
    return TypeAdapter(cls)


def entity_to_dict(entity: object) -> Any:
    """JSON-compatible rendering of an engine entity or result payload."""

    if isinstance(entity, dm.Campaign):
        return campaign_to_dict(entity)
    return _adapter(type(entity)).dump_python(entity, mode="json")


@dataclass(slots=True)
class CampaignSession:
    """An open campaign, the rules it was resolved with and its mutation lock."""

    campaign: dm.Campaign
    rules: RulesConfig
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class CampaignNotFoundError(LookupError):
    """No snapshot or open session exists for the requested campaign."""


class CampaignService:
    """Keep open campaigns in memory and persist them through the coordinator.

    Every mutation of a campaign must run while holding its session lock so
    operations on the same campaign never interleave.
    """

    def __init__(
        self,
        coordinator: PersistenceCoordinator,
        autosave: AutosaveScheduler,
        *,
        edition: str = "10th",
    ) -> None:
        self._coordinator = coordinator
        self._autosave = autosave
        self._edition = edition
        self._sessions: dict[dm.CampaignID, CampaignSession] = {}
        self._open_lock = asyncio.Lock()

    @property
    def coordinator(self) -> PersistenceCoordinator:
        return self._coordinator

    def known_ids(self) -> list[dm.CampaignID]:
        return sorted(set(self._coordinator.list_campaigns()) | set(self._sessions))

    async def create_campaign(
        self,
        name: str,
        *,
        edition: str | None = None,
        supply_limit: int | None = None,
        rules_overrides: Mapping[str, Mapping[str, Any]] | None = None,
        description: str = "",
    ) -> OperationResult[dm.Campaign]:
        result = create_campaign(
            name,
            edition=edition or self._edition,
            supply_limit=supply_limit,
            rules_overrides=rules_overrides,
            description=description,
        )
        if result and result.entity is not None:
            campaign = result.entity
            self._sessions[campaign.id] = CampaignSession(campaign, campaign_rules(campaign))
            await self._coordinator.save_async(campaign)
        return result

    async def open(self, campaign_id: dm.CampaignID) -> CampaignSession:
        """Return the open session for a campaign, loading it from disk if needed."""

        session = self._sessions.get(campaign_id)
        if session is not None:
            return session
        async with self._open_lock:
            session = self._sessions.get(campaign_id)
            if session is not None:
                return session
            if campaign_id not in self._coordinator.list_campaigns():
                raise CampaignNotFoundError(f"campaign {campaign_id} not found")
            loaded = await asyncio.to_thread(self._coordinator.load, campaign_id)
            session = self._open_loaded(loaded.campaign)
            record_event(
                loaded.campaign,
                EventType.CAMPAIGN_LOADED,
                f"Campaign loaded from {loaded.source.name}",
                rules=session.rules,
                source=loaded.source.name,
                fallback=loaded.used_fallback,
            )
            return session

    def _open_loaded(self, campaign: dm.Campaign) -> CampaignSession:
        session = CampaignSession(campaign, campaign_rules(campaign))
        self._sessions[campaign.id] = session
        return session

    async def list_campaigns(self) -> list[dm.Campaign]:
        """Return every campaign that can be opened, ordered by identifier."""

        campaigns: list[dm.Campaign] = []
        for campaign_id in self.known_ids():
            try:
                session = await self.open(campaign_id)
            except RecoveryFailedError as exc:
                logger.warning("skipping unrecoverable campaign %s: %s", campaign_id, exc)
                continue
            campaigns.append(session.campaign)
        return campaigns

    async def save(self, campaign_id: dm.CampaignID) -> Path:
        session = await self.open(campaign_id)
        async with session.lock:
            record_event(
                session.campaign, EventType.CAMPAIGN_SAVED, "Campaign saved", rules=session.rules
            )
            return await self._coordinator.save_async(session.campaign)

    def list_backups(self, campaign_id: dm.CampaignID) -> list[BackupInfo]:
        if campaign_id not in self.known_ids():
            raise CampaignNotFoundError(f"campaign {campaign_id} not found")
        return self._coordinator.list_backups(campaign_id)

    async def restore(self, campaign_id: dm.CampaignID, index: int) -> dm.Campaign:
        """Reopen a campaign from backup ``index`` (0 = newest)."""

        session = await self.open(campaign_id)
        async with session.lock:
            restored = await asyncio.to_thread(self._coordinator.restore, campaign_id, index)
            session.campaign = restored.campaign
            session.rules = campaign_rules(restored.campaign)
        if self._autosave.is_registered(campaign_id):
            self._autosave.register(restored.campaign)
        return restored.campaign

    def autosave_enabled(self, campaign_id: dm.CampaignID) -> bool:
        return self._autosave.is_registered(campaign_id)

    async def set_autosave(self, campaign_id: dm.CampaignID, enabled: bool) -> None:
        session = await self.open(campaign_id)
        if enabled:
            self._autosave.register(session.campaign)
        else:
            await self._autosave.unregister(campaign_id)

    def export_to_file(self, campaign_id: dm.CampaignID, path: Path | str) -> Path:
        """Write an open campaign to a portable ``.crusade`` archive."""

        session = self._sessions.get(campaign_id)
        if session is None:
            raise CampaignNotFoundError(f"campaign {campaign_id} is not open")
        return savegame.save_manifest(savegame.export_campaign(session.campaign), path)

    async def import_from_file(self, path: Path | str) -> dm.Campaign:
        """Load a ``.crusade`` archive as a new campaign with a fresh id."""

        manifest = savegame.load_manifest(path)
        campaign = savegame.import_campaign_from_manifest(
            manifest, assign_new_id=True, source=str(path)
        )
        session = self._open_loaded(campaign)
        record_event(
            campaign,
            EventType.CAMPAIGN_IMPORTED,
            f"Campaign imported from {Path(path).name}",
            rules=session.rules,
            archive=manifest.metadata.name,
        )
        await self._coordinator.save_async(campaign)
        return campaign

    @staticmethod
    def to_summary_dict(campaign: dm.Campaign) -> dict[str, object]:
        """Return a JSON-friendly overview of a campaign."""

        return {
            "id": campaign.id,
            "name": campaign.name,
            "edition": campaign.config.edition,
            "description": campaign.config.description,
            "created_at": campaign.created_at,
            "modified_at": campaign.modified_at,
            "player_count": len(campaign.players),
            "unit_count": len(campaign.units),
            "battle_count": len(campaign.battles),
        }

    @staticmethod
    def to_detail_dict(campaign: dm.Campaign, rules: RulesConfig) -> dict[str, object]:
        summary = CampaignService.to_summary_dict(campaign)
        summary.update(
            {
                "players": [
                    {
                        "id": player.id,
                        "name": player.name,
                        "faction": player.faction,
                        "requisition_points": player.requisition_points,
                        "supply_used": player.supply_used,
                        "supply_limit": player.supply_limit,
                        "battle_tally": player.battle_tally,
                        "victories": player.victories,
                        "units": list(player.order_of_battle),
                    }
                    for player in campaign.players.values()
                ],
                "units": [
                    {
                        "id": unit.id,
                        "owner_id": unit.owner_id,
                        "name": unit.name,
                        "points_cost": unit.points_cost,
                        "experience_points": unit.experience_points,
                        "rank": unit.rank,
                        "rank_name": rank_name(unit.rank, rules=rules),
                        "crusade_points": unit.crusade_points,
                        "battle_honours": [h.name for h in unit.battle_honours],
                        "battle_scars": [s.name for s in unit.battle_scars],
                    }
                    for unit in campaign.units.values()
                ],
                "event_count": len(campaign.event_log),
            }
        )
        return summary

    async def shutdown(self) -> None:
        await self._autosave.save_now()


class ApiState:
    """Aggregated services shared by the FastAPI layer."""

    def __init__(self, *, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.coordinator = PersistenceCoordinator(
            self.settings.data_dir, ring_size=self.settings.backup_ring_size
        )
        self.autosave = AutosaveScheduler(
            self.coordinator, interval_seconds=self.settings.autosave_interval_seconds
        )
        self.campaigns = CampaignService(
            self.coordinator, self.autosave, edition=self.settings.edition
        )

    async def shutdown(self) -> None:
        await self.campaigns.shutdown()
        await self.autosave.stop()


def build_state() -> ApiState:
    """Factory used by the API to initialize state."""

    return ApiState()
