"""
Sync API endpoints.

Status and schedule of the background catalog sync, a manual trigger,
and a foreground import of a single set.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spots.api.deps import get_reconciler, get_scheduler, import_set_or_fail
from spots.db import get_or_create_sync_settings, sync_settings_to_status, update_sync_schedule
from spots.db.database import get_session
from spots.jobs.sync_scheduler import SyncScheduler
from spots.models.db import SyncSettingsDB
from spots.models.failure import ConflictError
from spots.models.sync import SyncSchedule
from spots.services.reconciliation import Reconciler

router = APIRouter(prefix="/api/sync", tags=["sync"])


class SyncStatusResponse(BaseModel):
    """Current state of the background sync."""

    is_syncing: bool
    sync_status: str | None = None
    last_card_sync: datetime | None = None
    last_price_sync: datetime | None = None
    manual_sync_pending: bool = False


class TriggerResponse(BaseModel):
    """Result of a manual sync request."""

    triggered: bool
    message: str


class SyncSettingsResponse(BaseModel):
    """Stored sync schedules."""

    card_sync_schedule: SyncSchedule
    price_sync_schedule: SyncSchedule
    card_sync_recent_months: int


class UpdateSyncSettingsRequest(BaseModel):
    """Request model for changing schedules. Omitted fields are left unchanged."""

    card_sync_schedule: SyncSchedule | None = None
    price_sync_schedule: SyncSchedule | None = None
    card_sync_recent_months: int | None = Field(default=None, ge=1, le=120)


class ImportSetResponse(BaseModel):
    """Outcome of a foreground set import."""

    set_code: str
    cards_fetched: int
    cards_created: int
    cards_updated: int
    prices_written: int
    complete: bool


def _settings_response(state: SyncSettingsDB) -> SyncSettingsResponse:
    return SyncSettingsResponse(
        card_sync_schedule=state.card_sync_schedule,
        price_sync_schedule=state.price_sync_schedule,
        card_sync_recent_months=state.card_sync_recent_months,
    )


@router.get("/status", response_model=SyncStatusResponse)
async def get_status(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SyncStatusResponse:
    """Read the sync status. The scheduler is the only writer."""
    status = sync_settings_to_status(await get_or_create_sync_settings(session))
    scheduler: SyncScheduler | None = getattr(request.app.state, "scheduler", None)
    return SyncStatusResponse(
        is_syncing=status.is_syncing,
        sync_status=status.sync_status,
        last_card_sync=status.last_card_sync,
        last_price_sync=status.last_price_sync,
        manual_sync_pending=scheduler is not None and scheduler.manual_pending,
    )


@router.post("/status", response_model=TriggerResponse)
async def trigger_sync(
    session: Annotated[AsyncSession, Depends(get_session)],
    scheduler: Annotated[SyncScheduler, Depends(get_scheduler)],
) -> TriggerResponse:
    """
    Wake the scheduler for an immediate check of both schedules.

    Only syncs that are due run. Returns 409 while a sync is running.
    Repeated triggers before the pending one has run are coalesced.
    """
    state = await get_or_create_sync_settings(session)
    if state.is_syncing:
        raise ConflictError(
            "Sync already in progress",
            detail=state.sync_status,
        )

    if scheduler.trigger_manual_sync():
        return TriggerResponse(triggered=True, message="Manual sync triggered")
    return TriggerResponse(triggered=False, message="Manual sync already pending")


@router.get("/settings", response_model=SyncSettingsResponse)
async def get_settings(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SyncSettingsResponse:
    """Get the stored sync schedules."""
    return _settings_response(await get_or_create_sync_settings(session))


@router.put("/settings", response_model=SyncSettingsResponse)
async def put_settings(
    request: UpdateSyncSettingsRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SyncSettingsResponse:
    """Change the sync schedules. Takes effect at the next poll."""
    state = await update_sync_schedule(
        session,
        card_sync_schedule=request.card_sync_schedule.value if request.card_sync_schedule else None,
        price_sync_schedule=(
            request.price_sync_schedule.value if request.price_sync_schedule else None
        ),
        card_sync_recent_months=request.card_sync_recent_months,
    )
    return _settings_response(state)


@router.post("/import-set/{set_code}", response_model=ImportSetResponse)
async def import_set(
    set_code: str,
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> ImportSetResponse:
    """
    Import one set now, cards and prices.

    A partially fetched set is still imported and reported with
    complete=false. Returns 502 if nothing could be fetched.
    """
    result = await import_set_or_fail(reconciler, set_code.strip().lower())
    return ImportSetResponse(
        set_code=result.set_code,
        cards_fetched=result.cards_fetched,
        cards_created=result.cards_created,
        cards_updated=result.cards_updated,
        prices_written=result.prices_written,
        complete=result.complete,
    )
