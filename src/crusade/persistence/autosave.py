"""Periodic background snapshots of in-memory campaigns."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from crusade.domain import models as dm
from crusade.persistence.coordinator import PersistenceCoordinator

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """Save registered campaigns every ``interval_seconds``.

    Campaigns whose ``modified_at`` has not changed since their last
    autosave are skipped.  Snapshots are encoded on the event loop, so they
    never observe a half-applied synchronous operation.
    """

    MIN_INTERVAL_SECONDS = 0.1

    def __init__(self, coordinator: PersistenceCoordinator, *, interval_seconds: float) -> None:
        self._coordinator = coordinator
        self._interval = max(interval_seconds, self.MIN_INTERVAL_SECONDS)
        self._campaigns: dict[dm.CampaignID, dm.Campaign] = {}
        self._last_saved: dict[dm.CampaignID, datetime] = {}
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._save_lock = asyncio.Lock()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def set_interval(self, seconds: float) -> None:
        self._interval = max(seconds, self.MIN_INTERVAL_SECONDS)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def registered(self) -> set[dm.CampaignID]:
        return set(self._campaigns)

    def is_registered(self, campaign_id: dm.CampaignID) -> bool:
        return campaign_id in self._campaigns

    def register(self, campaign: dm.Campaign) -> None:
        self._campaigns[campaign.id] = campaign
        self._ensure_running()

    async def unregister(self, campaign_id: dm.CampaignID) -> None:
        self._campaigns.pop(campaign_id, None)
        self._last_saved.pop(campaign_id, None)
        if not self._campaigns:
            await self.stop()

    def _ensure_running(self) -> None:
        if self._task is None or self._task.done():
            self._stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            self._task = loop.create_task(self._run_loop(), name="crusade-autosave-loop")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        await task
        self._task = None

    async def save_now(self) -> int:
        """Run one autosave cycle immediately; returns the number of snapshots written."""

        return await self._run_cycle()

    async def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                    break
                except TimeoutError:
                    pass
                await self._run_cycle()
        finally:
            self._task = None

    async def _run_cycle(self) -> int:
        saved = 0
        async with self._save_lock:
            for campaign_id, campaign in list(self._campaigns.items()):
                if self._last_saved.get(campaign_id) == campaign.modified_at:
                    continue
                try:
                    await self._coordinator.save_async(campaign)
                except OSError:
                    logger.exception("autosave failed for campaign %s", campaign_id)
                    continue
                self._last_saved[campaign_id] = campaign.modified_at
                saved += 1
        return saved
