"""Import and export helpers for portable ``.crusade`` campaign archives."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4
from zipfile import ZIP_DEFLATED, BadZipFile, ZipFile

from pydantic import BaseModel, Field, ValidationError, model_validator

from crusade import __version__
from crusade.domain import models as dm
from crusade.domain.results import CorruptSnapshotError
from crusade.persistence.coordinator import prepare_loaded_campaign
from crusade.persistence.migrations import CURRENT_VERSION, migrate
from crusade.persistence.snapshot import campaign_from_dict, campaign_to_dict

MANIFEST_PATH = "crusade/manifest.json"
ARCHIVE_SUFFIX = ".crusade"


class SaveMetadata(BaseModel):
    """High-level information about the packaged campaign."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    description: str | None = None
    author: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    edition: str = "10th"
    app_version: str = __version__


class SaveManifest(BaseModel):
    """Top-level manifest stored in a ``.crusade`` archive."""

    format_version: int = 1
    snapshot_version: str = CURRENT_VERSION
    metadata: SaveMetadata
    campaign: dm.Campaign

    @model_validator(mode="before")
    @classmethod
    def _convert_campaign(cls, values: dict[str, Any]) -> dict[str, Any]:
        raw = values.get("campaign")
        if raw is not None and not isinstance(raw, dm.Campaign):
            version = str(values.get("snapshot_version", CURRENT_VERSION))
            values["campaign"] = campaign_from_dict(migrate(dict(raw), version))
            values["snapshot_version"] = CURRENT_VERSION
        return values

    def model_dump(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        data = super().model_dump(*args, **kwargs)
        data["campaign"] = campaign_to_dict(self.campaign)
        return data


def load_manifest(path: Path | str) -> SaveManifest:
    """Load a savegame manifest from a ``.crusade`` archive.

    Raises ``FileNotFoundError`` when the archive has no manifest and
    :class:`CorruptSnapshotError` when the archive or its campaign is damaged.
    """

    zip_path = Path(path)
    try:
        with ZipFile(zip_path, "r") as archive:
            try:
                with archive.open(MANIFEST_PATH) as manifest_file:
                    payload = json.load(manifest_file)
            except KeyError as exc:
                raise FileNotFoundError("manifest.json not found in archive") from exc
    except (BadZipFile, json.JSONDecodeError) as exc:
        raise CorruptSnapshotError(f"unreadable archive: {exc}", source=str(zip_path)) from exc
    try:
        return SaveManifest.model_validate(payload)
    except ValidationError as exc:
        raise CorruptSnapshotError(
            f"manifest failed validation: {exc.error_count()} error(s)", source=str(zip_path)
        ) from exc


def save_manifest(manifest: SaveManifest, path: Path | str) -> Path:
    """Write a manifest to a ``.crusade`` archive."""

    payload = json.dumps(
        manifest.model_dump(mode="json"),
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with ZipFile(target, "w", ZIP_DEFLATED) as archive:
        archive.writestr(MANIFEST_PATH, payload)
    return target


def export_campaign(
    campaign: dm.Campaign,
    *,
    metadata: SaveMetadata | None = None,
) -> SaveManifest:
    """Produce a manifest from an in-memory campaign."""

    return SaveManifest(
        metadata=metadata
        or SaveMetadata(
            name=campaign.name,
            description=campaign.config.description or None,
            edition=campaign.config.edition,
        ),
        campaign=campaign,
    )


def import_campaign_from_manifest(
    manifest: SaveManifest,
    *,
    assign_new_id: bool = False,
    new_id: dm.CampaignID | None = None,
    source: str | None = None,
) -> dm.Campaign:
    """Return the campaign carried by a manifest, refreshed and validated.

    Derived values are recomputed and the validator runs with automatic
    fixes, as for a snapshot loaded from disk; a campaign that still has
    errors raises :class:`CorruptSnapshotError`.

    With ``assign_new_id`` the campaign adopts ``new_id`` (or a freshly
    generated one) so it can sit beside the campaign it was exported from.
    Entity ids inside the campaign are scoped to it and are kept.
    """

    campaign = manifest.campaign
    prepare_loaded_campaign(campaign, source=source)
    if assign_new_id:
        campaign.id = new_id or dm.CampaignID(dm.new_id())
    return campaign
