"""HTTP routes for the crusade API."""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from crusade import __version__
from crusade.api.runtime import (
    ApiState,
    CampaignNotFoundError,
    CampaignService,
    CampaignSession,
    entity_to_dict,
)
from crusade.domain import models as dm
from crusade.domain.enums import RequisitionType
from crusade.domain.requisitions import PurchaseRequest, can_purchase, purchase_requisition
from crusade.domain.results import (
    CorruptSnapshotError,
    ErrorKind,
    OperationResult,
    RecoveryFailedError,
)
from crusade.domain.roster import add_player as roster_add_player
from crusade.domain.roster import import_units as roster_import_units
from crusade.domain.rules_config import resolve_rules
from crusade.domain.validator import render_report, validate_campaign

router = APIRouter()

_ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INSUFFICIENT_RESOURCES: status.HTTP_409_CONFLICT,
    ErrorKind.CAP_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CATEGORY_VIOLATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_state(request: Request) -> ApiState:
    state = getattr(request.app.state, "api_state", None)
    if state is None:  # pragma: no cover - FastAPI should always initialise state
        raise RuntimeError("API state not initialised")
    return state


ApiStateDep = Annotated[ApiState, Depends(get_state)]


class OperationResponse(BaseModel):
    success: bool
    message: str
    entity: Any = None
    data: dict[str, Any] = Field(default_factory=dict)


class CampaignSummary(BaseModel):
    id: str
    name: str
    edition: str
    description: str
    created_at: datetime
    modified_at: datetime
    player_count: int
    unit_count: int
    battle_count: int


class CampaignDetail(CampaignSummary):
    players: list[dict[str, Any]]
    units: list[dict[str, Any]]
    event_count: int


class CreateCampaignRequest(BaseModel):
    name: str = Field(min_length=1)
    edition: str | None = None
    supply_limit: int | None = Field(default=None, ge=0)
    description: str = ""
    rules_overrides: dict[str, dict[str, Any]] = Field(default_factory=dict)


class AddPlayerRequest(BaseModel):
    name: str = Field(min_length=1)
    faction: str = ""
    color: str = ""


class PurchaseRequestBody(BaseModel):
    player_id: str
    requisition: RequisitionType
    unit_id: str | None = None
    enhancement_name: str | None = None
    enhancement_points: int = Field(default=0, ge=0)
    scar: str | None = None
    old_weapon: str | None = None
    new_weapon: str | None = None
    points_added: int = Field(default=0, ge=0)

    def to_request(self) -> PurchaseRequest:
        return PurchaseRequest(
            player_id=dm.PlayerID(self.player_id),
            requisition=self.requisition,
            unit_id=dm.UnitID(self.unit_id) if self.unit_id else None,
            enhancement_name=self.enhancement_name,
            enhancement_points=self.enhancement_points,
            scar=self.scar,
            old_weapon=self.old_weapon,
            new_weapon=self.new_weapon,
            points_added=self.points_added,
        )


class ValidationIssueSummary(BaseModel):
    code: str
    message: str
    entity_id: str | None


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[ValidationIssueSummary]
    warnings: list[ValidationIssueSummary]
    auto_fixed: list[ValidationIssueSummary]
    summary: str


class BackupSummary(BaseModel):
    index: int
    sequence: int
    filename: str
    size: int
    modified_at: datetime


class SaveResponse(BaseModel):
    filename: str


class AutosaveRequest(BaseModel):
    enabled: bool
    interval_seconds: float | None = Field(default=None, gt=0.0)


class AutosaveStatusResponse(BaseModel):
    enabled: bool
    running: bool
    interval_seconds: float


def _respond(result: OperationResult[Any]) -> OperationResponse:
    if not result:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST),
            detail=result.message,
        )
    entity = entity_to_dict(result.entity) if result.entity is not None else None
    return OperationResponse(success=True, message=result.message, entity=entity, data=result.data)


async def _session(state: ApiState, campaign_id: str) -> CampaignSession:
    try:
        return await state.campaigns.open(dm.CampaignID(campaign_id))
    except CampaignNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="campaign not found") from exc
    except RecoveryFailedError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"campaign could not be recovered: {exc}",
        ) from exc


def _autosave_status(state: ApiState, campaign_id: str) -> AutosaveStatusResponse:
    return AutosaveStatusResponse(
        enabled=state.campaigns.autosave_enabled(dm.CampaignID(campaign_id)),
        running=state.autosave.running,
        interval_seconds=state.autosave.interval_seconds,
    )


@router.get("/health")
async def health(state: ApiStateDep) -> dict[str, object]:
    return {
        "status": "ok",
        "version": __version__,
        "edition": state.settings.edition,
        "autosave_interval_seconds": state.autosave.interval_seconds,
    }


@router.get("/rules")
async def rules_summary(
    state: ApiStateDep, edition: Annotated[str | None, Query()] = None
) -> dict[str, Any]:
    try:
        rules = resolve_rules(edition or state.settings.edition)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return dataclasses.asdict(rules)


@router.get("/campaigns", response_model=list[CampaignSummary])
async def list_campaigns(state: ApiStateDep) -> list[CampaignSummary]:
    campaigns = await state.campaigns.list_campaigns()
    return [CampaignSummary.model_validate(CampaignService.to_summary_dict(c)) for c in campaigns]


@router.post("/campaigns", response_model=CampaignDetail, status_code=status.HTTP_201_CREATED)
async def create_campaign(request: CreateCampaignRequest, state: ApiStateDep) -> CampaignDetail:
    result = await state.campaigns.create_campaign(
        request.name,
        edition=request.edition,
        supply_limit=request.supply_limit,
        rules_overrides=request.rules_overrides,
        description=request.description,
    )
    if not result or result.entity is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=result.message)
    session = await state.campaigns.open(result.entity.id)
    return CampaignDetail.model_validate(CampaignService.to_detail_dict(session.campaign, session.rules))


@router.get("/campaigns/{campaign_id}", response_model=CampaignDetail)
async def get_campaign(campaign_id: str, state: ApiStateDep) -> CampaignDetail:
    session = await _session(state, campaign_id)
    return CampaignDetail.model_validate(CampaignService.to_detail_dict(session.campaign, session.rules))


@router.post(
    "/campaigns/{campaign_id}/players",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_player(campaign_id: str, request: AddPlayerRequest, state: ApiStateDep) -> OperationResponse:
    session = await _session(state, campaign_id)
    async with session.lock:
        result = roster_add_player(
            session.campaign,
            request.name,
            faction=request.faction,
            color=request.color,
            rules=session.rules,
        )
    return _respond(result)


@router.post("/campaigns/{campaign_id}/players/{player_id}/units", response_model=OperationResponse)
async def import_units(
    campaign_id: str,
    player_id: str,
    records: list[dict[str, Any]],
    state: ApiStateDep,
) -> OperationResponse:
    """Import normalized unit records; malformed ones are reported individually."""

    session = await _session(state, campaign_id)
    async with session.lock:
        result = roster_import_units(
            session.campaign, dm.PlayerID(player_id), records, rules=session.rules
        )
    if not result and result.entity is not None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": result.message, "errors": result.entity.errors},
        )
    return _respond(result)


@router.post("/campaigns/{campaign_id}/requisitions", response_model=OperationResponse)
async def purchase(campaign_id: str, request: PurchaseRequestBody, state: ApiStateDep) -> OperationResponse:
    session = await _session(state, campaign_id)
    async with session.lock:
        result = purchase_requisition(session.campaign, request.to_request(), rules=session.rules)
    return _respond(result)


@router.post("/campaigns/{campaign_id}/requisitions/cost", response_model=OperationResponse)
async def purchase_preview(
    campaign_id: str, request: PurchaseRequestBody, state: ApiStateDep
) -> OperationResponse:
    """Price and eligibility of a requisition without buying it."""

    session = await _session(state, campaign_id)
    result = can_purchase(session.campaign, request.to_request(), rules=session.rules)
    entity = entity_to_dict(result.entity) if result.entity is not None else None
    return OperationResponse(
        success=result.success, message=result.message, entity=entity, data=result.data
    )


@router.get("/campaigns/{campaign_id}/validate", response_model=ValidationResponse)
async def validate(campaign_id: str, state: ApiStateDep) -> ValidationResponse:
    session = await _session(state, campaign_id)
    report = validate_campaign(session.campaign, rules=session.rules)

    def issues(items) -> list[ValidationIssueSummary]:
        return [
            ValidationIssueSummary(code=i.code, message=i.message, entity_id=i.entity_id) for i in items
        ]

    return ValidationResponse(
        is_valid=report.is_valid,
        errors=issues(report.errors),
        warnings=issues(report.warnings),
        auto_fixed=issues(report.auto_fixed),
        summary=render_report(report),
    )


@router.post("/campaigns/{campaign_id}/save", response_model=SaveResponse)
async def save(campaign_id: str, state: ApiStateDep) -> SaveResponse:
    await _session(state, campaign_id)
    path = await state.campaigns.save(dm.CampaignID(campaign_id))
    return SaveResponse(filename=path.name)


@router.get("/campaigns/{campaign_id}/backups", response_model=list[BackupSummary])
async def list_backups(campaign_id: str, state: ApiStateDep) -> list[BackupSummary]:
    try:
        backups = state.campaigns.list_backups(dm.CampaignID(campaign_id))
    except CampaignNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="campaign not found") from exc
    return [
        BackupSummary(
            index=b.index,
            sequence=b.sequence,
            filename=b.path.name,
            size=b.size,
            modified_at=b.modified_at,
        )
        for b in backups
    ]


@router.post("/campaigns/{campaign_id}/backups/{index}/restore", response_model=CampaignDetail)
async def restore_backup(campaign_id: str, index: int, state: ApiStateDep) -> CampaignDetail:
    await _session(state, campaign_id)
    try:
        campaign = await state.campaigns.restore(dm.CampaignID(campaign_id), index)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except CorruptSnapshotError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    session = await state.campaigns.open(campaign.id)
    return CampaignDetail.model_validate(CampaignService.to_detail_dict(campaign, session.rules))


@router.get("/campaigns/{campaign_id}/autosave", response_model=AutosaveStatusResponse)
async def get_autosave(campaign_id: str, state: ApiStateDep) -> AutosaveStatusResponse:
    await _session(state, campaign_id)
    return _autosave_status(state, campaign_id)


@router.post("/campaigns/{campaign_id}/autosave", response_model=AutosaveStatusResponse)
async def update_autosave(
    campaign_id: str, request: AutosaveRequest, state: ApiStateDep
) -> AutosaveStatusResponse:
    await _session(state, campaign_id)
    if request.interval_seconds is not None:
        state.autosave.set_interval(request.interval_seconds)
    await state.campaigns.set_autosave(dm.CampaignID(campaign_id), request.enabled)
    return _autosave_status(state, campaign_id)
