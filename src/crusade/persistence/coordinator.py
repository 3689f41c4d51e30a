"""Saving, loading and recovering campaigns from their backup rings."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from crusade.domain import models as dm
from crusade.domain.progression import refresh_derived
from crusade.domain.results import CorruptSnapshotError, RecoveryFailedError
from crusade.domain.roster import campaign_rules
from crusade.domain.validator import ValidationReport, validate_campaign
from crusade.persistence.backups import BackupInfo, BackupRing
from crusade.persistence.snapshot import decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoadResult:
    """A recovered campaign and how it was obtained."""

    campaign: dm.Campaign
    report: ValidationReport
    source: Path
    skipped: list[tuple[str, str]] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return bool(self.skipped)


def prepare_loaded_campaign(campaign: dm.Campaign, *, source: str | None = None) -> ValidationReport:
    """Refresh derived values and validate a campaign read from storage or an archive.

    Negative resources are clamped by the validator's automatic fixes; any
    remaining error raises :class:`CorruptSnapshotError`.
    """

    try:
        rules = campaign_rules(campaign)
    except (TypeError, ValueError) as exc:
        raise CorruptSnapshotError(f"invalid rules configuration: {exc}", source=source) from exc
    refresh_derived(campaign, rules=rules)
    report = validate_campaign(campaign, rules=rules, auto_fix=True)
    if not report.is_valid:
        first = report.errors[0].message
        raise CorruptSnapshotError(
            f"campaign failed validation with {len(report.errors)} error(s): {first}",
            source=source,
        )
    return report


class PersistenceCoordinator:
    """Persist campaigns as rings of JSON snapshots under ``base_path``.

    Each campaign gets its own directory holding at most ``ring_size``
    snapshots.  Saving captures the in-memory state at the moment of the
    call; it is not a transaction boundary.
    """

    def __init__(self, base_path: Path, *, ring_size: int = 10) -> None:
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.ring_size = ring_size

    def _ring(self, campaign_id: dm.CampaignID) -> BackupRing:
        return BackupRing(self.base_path / campaign_id, capacity=self.ring_size)

    def save(self, campaign: dm.Campaign) -> Path:
        """Serialize a campaign into its ring and return the snapshot path."""

        path = self._ring(campaign.id).write(encode_snapshot(campaign))
        logger.info("saved campaign %s to %s", campaign.id, path.name)
        return path

    async def save_async(self, campaign: dm.Campaign) -> Path:
        """Encode now, write off the event loop."""

        payload = encode_snapshot(campaign)
        ring = self._ring(campaign.id)
        path = await asyncio.to_thread(ring.write, payload)
        logger.info("saved campaign %s to %s", campaign.id, path.name)
        return path

    def _load_path(self, path: Path) -> tuple[dm.Campaign, ValidationReport]:
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise CorruptSnapshotError(f"cannot read snapshot: {exc}", source=str(path)) from exc
        campaign = decode_snapshot(payload, source=str(path))
        return campaign, prepare_loaded_campaign(campaign, source=str(path))

    def load(self, campaign_id: dm.CampaignID) -> LoadResult:
        """Load the newest snapshot that decodes and validates.

        Older snapshots are tried in turn; if none succeeds
        :class:`RecoveryFailedError` lists why each one was rejected.
        """

        skipped: list[tuple[str, str]] = []
        for path in self._ring(campaign_id).paths():
            try:
                campaign, report = self._load_path(path)
            except CorruptSnapshotError as exc:
                logger.warning("snapshot %s rejected: %s", path.name, exc)
                skipped.append((path.name, str(exc)))
                continue
            if skipped:
                logger.warning(
                    "campaign %s recovered from older snapshot %s after %d failure(s)",
                    campaign_id,
                    path.name,
                    len(skipped),
                )
            return LoadResult(campaign=campaign, report=report, source=path, skipped=skipped)

        raise RecoveryFailedError(
            f"no usable snapshot for campaign {campaign_id}", failures=skipped
        )

    def list_campaigns(self) -> list[dm.CampaignID]:
        return sorted(
            dm.CampaignID(path.name)
            for path in self.base_path.iterdir()
            if path.is_dir() and len(BackupRing(path)) > 0
        )

    def list_backups(self, campaign_id: dm.CampaignID) -> list[BackupInfo]:
        return self._ring(campaign_id).list()

    def restore(self, campaign_id: dm.CampaignID, index: int) -> LoadResult:
        """Load a specific backup (0 = newest) and save it as the newest snapshot."""

        backups = self.list_backups(campaign_id)
        if not 0 <= index < len(backups):
            raise FileNotFoundError(f"campaign {campaign_id} has no backup #{index}")
        path = backups[index].path
        campaign, report = self._load_path(path)
        self.save(campaign)
        logger.info("restored campaign %s from %s", campaign_id, path.name)
        return LoadResult(campaign=campaign, report=report, source=path)

    def delete(self, campaign_id: dm.CampaignID) -> None:
        """Remove every snapshot of a campaign."""

        directory = self.base_path / campaign_id
        if directory.exists():
            shutil.rmtree(directory)
