"""
Tracker API endpoints.

Trackers are collecting goals. A tracker bound to a set is filled with
every card of that set when it is created; the set is imported from the
catalog first so the membership reflects the current printing list.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from spots.api.deps import get_catalog_client, get_reconciler, import_set_or_fail
from spots.db import (
    add_set_cards_to_tracker,
    add_tracker_card,
    create_tracker,
    delete_tracker,
    get_card,
    get_card_by_scryfall_id,
    get_tracker,
    list_trackers,
    remove_tracker_card,
    toggle_tracker_card_exclusion,
    update_tracker,
)
from spots.db.database import get_session
from spots.models.db import CardDB, TrackerDB
from spots.models.failure import NotFoundError
from spots.models.progress import TrackerProgress
from spots.services.catalog_client import CatalogClient
from spots.services.dashboard import (
    export_missing_cards,
    get_tracker_detail,
    get_tracker_progress,
)
from spots.services.reconciliation import Reconciler

router = APIRouter(prefix="/api/trackers", tags=["trackers"])


class TrackerResponse(BaseModel):
    """Response model for a tracker with its completion."""

    id: int
    name: str
    set_code: str | None = None
    track_foil: bool
    track_non_foil: bool
    is_collecting: bool
    is_pinned: bool
    created_at: datetime | None = None
    total_cards: int = 0
    collected_cards: int = 0
    completion_percentage: float = 0.0
    foil_completion_percentage: float = 0.0
    non_foil_completion_percentage: float = 0.0


class CreateTrackerRequest(BaseModel):
    """Request model for creating a tracker."""

    name: str = Field(..., min_length=1, max_length=255)
    set_code: str | None = Field(
        default=None,
        description="Bind the tracker to every card of this set; omit for a custom list",
        examples=["dmu"],
    )
    track_foil: bool = False
    track_non_foil: bool = True


class UpdateTrackerRequest(BaseModel):
    """Request model for updating a tracker. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    track_foil: bool | None = None
    track_non_foil: bool | None = None
    is_collecting: bool | None = None
    is_pinned: bool | None = None


class TrackerCardResponse(BaseModel):
    """A tracker member with its ownership."""

    id: int
    card_id: int
    scryfall_id: str
    card_name: str
    set_code: str
    set_name: str
    collector_number: str
    rarity: str
    image_uri: str | None = None
    image_uri_small: str | None = None
    is_excluded: bool
    owned_quantity: int
    owned_foil_quantity: int
    is_collected: bool
    is_foil_collected: bool


class TrackerDetailResponse(BaseModel):
    """Response model for a tracker with all members."""

    tracker: TrackerResponse
    cards: list[TrackerCardResponse] = Field(default_factory=list)


class AddTrackerCardRequest(BaseModel):
    """Add a card by local id, or by catalog id (imported on demand)."""

    card_id: int | None = None
    scryfall_id: str | None = None

    @model_validator(mode="after")
    def _one_identifier(self) -> "AddTrackerCardRequest":
        if self.card_id is None and not self.scryfall_id:
            raise ValueError("Either card_id or scryfall_id must be provided")
        return self


class ExclusionResponse(BaseModel):
    """Exclusion state after a toggle."""

    card_id: int
    is_excluded: bool


def _to_response(tracker: TrackerDB, progress: TrackerProgress) -> TrackerResponse:
    return TrackerResponse(
        id=tracker.id,
        name=tracker.name,
        set_code=tracker.set_code,
        track_foil=tracker.track_foil,
        track_non_foil=tracker.track_non_foil,
        is_collecting=tracker.is_collecting,
        is_pinned=tracker.is_pinned,
        created_at=tracker.created_at,
        total_cards=progress.total_cards,
        collected_cards=progress.collected_cards,
        completion_percentage=progress.completion_percentage,
        foil_completion_percentage=progress.foil_completion_percentage,
        non_foil_completion_percentage=progress.non_foil_completion_percentage,
    )


async def _require_tracker(session: AsyncSession, tracker_id: int) -> TrackerDB:
    tracker = await get_tracker(session, tracker_id)
    if tracker is None:
        raise NotFoundError("Tracker", tracker_id)
    return tracker


@router.get("", response_model=list[TrackerResponse])
async def get_trackers(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[TrackerResponse]:
    """List all trackers with their completion, pinned first."""
    return [
        _to_response(tracker, await get_tracker_progress(session, tracker))
        for tracker in await list_trackers(session)
    ]


@router.post("", response_model=TrackerResponse, status_code=status.HTTP_201_CREATED)
async def create(
    request: CreateTrackerRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> TrackerResponse:
    """
    Create a tracker.

    For a set-bound tracker the set is imported first; if nothing can be
    fetched the tracker is not created (502).
    """
    set_code = request.set_code.strip().lower() if request.set_code else None
    if set_code:
        await import_set_or_fail(reconciler, set_code)

    tracker = await create_tracker(
        session,
        name=request.name,
        set_code=set_code,
        track_foil=request.track_foil,
        track_non_foil=request.track_non_foil,
    )
    if set_code:
        await add_set_cards_to_tracker(session, tracker, set_code)

    return _to_response(tracker, await get_tracker_progress(session, tracker))


@router.get("/{tracker_id}", response_model=TrackerResponse)
async def get_one(
    tracker_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TrackerResponse:
    """Get a tracker with its completion. Returns 404 if not found."""
    tracker = await _require_tracker(session, tracker_id)
    return _to_response(tracker, await get_tracker_progress(session, tracker))


@router.put("/{tracker_id}", response_model=TrackerResponse)
async def update(
    tracker_id: int,
    request: UpdateTrackerRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TrackerResponse:
    """Rename a tracker or change its flags."""
    tracker = await _require_tracker(session, tracker_id)
    await update_tracker(
        session,
        tracker,
        name=request.name,
        track_foil=request.track_foil,
        track_non_foil=request.track_non_foil,
        is_collecting=request.is_collecting,
        is_pinned=request.is_pinned,
    )
    return _to_response(tracker, await get_tracker_progress(session, tracker))


@router.delete("/{tracker_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(
    tracker_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Delete a tracker and its memberships."""
    if not await delete_tracker(session, tracker_id):
        raise NotFoundError("Tracker", tracker_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tracker_id}/cards", response_model=TrackerDetailResponse)
async def get_cards(
    tracker_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TrackerDetailResponse:
    """Tracker completion plus owned counts and collected flags per member."""
    detail = await get_tracker_detail(session, tracker_id)

    cards = [
        TrackerCardResponse(
            id=row.id,
            card_id=row.card_id,
            scryfall_id=row.card.scryfall_id,
            card_name=row.card.name,
            set_code=row.card.set_code,
            set_name=row.card.set_name,
            collector_number=row.card.collector_number,
            rarity=row.card.rarity,
            image_uri=row.card.image_uri,
            image_uri_small=row.card.image_uri_small,
            is_excluded=member.is_excluded,
            owned_quantity=member.owned_quantity,
            owned_foil_quantity=member.owned_foil_quantity,
            is_collected=member.is_collected,
            is_foil_collected=member.is_foil_collected,
        )
        for row, member in detail.members
    ]

    return TrackerDetailResponse(tracker=_to_response(detail.tracker, detail.progress), cards=cards)


async def _resolve_card(
    request: AddTrackerCardRequest,
    session: AsyncSession,
    client: CatalogClient,
    reconciler: Reconciler,
) -> CardDB:
    if request.card_id is not None:
        card = await get_card(session, request.card_id)
        if card is None:
            raise NotFoundError("Card", request.card_id)
        return card

    scryfall_id = str(request.scryfall_id)
    card = await get_card_by_scryfall_id(session, scryfall_id)
    if card is not None:
        return card

    # Unknown locally: import the whole set the printing belongs to
    remote = await client.get_card_by_id(scryfall_id)
    await import_set_or_fail(reconciler, remote.set_code)

    card = await get_card_by_scryfall_id(session, scryfall_id)
    if card is None:
        raise NotFoundError("Card", scryfall_id)
    return card


@router.post(
    "/{tracker_id}/cards",
    response_model=TrackerCardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_card(
    tracker_id: int,
    request: AddTrackerCardRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    client: Annotated[CatalogClient, Depends(get_catalog_client)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> TrackerCardResponse:
    """
    Add a card to a tracker.

    Returns 409 if the card is already a member.
    """
    await _require_tracker(session, tracker_id)
    card = await _resolve_card(request, session, client, reconciler)
    member = await add_tracker_card(session, tracker_id, card.id)

    return TrackerCardResponse(
        id=member.id,
        card_id=card.id,
        scryfall_id=card.scryfall_id,
        card_name=card.name,
        set_code=card.set_code,
        set_name=card.set_name,
        collector_number=card.collector_number,
        rarity=card.rarity,
        image_uri=card.image_uri,
        image_uri_small=card.image_uri_small,
        is_excluded=False,
        owned_quantity=0,
        owned_foil_quantity=0,
        is_collected=False,
        is_foil_collected=False,
    )


@router.delete("/{tracker_id}/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_card(
    tracker_id: int,
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Remove a card from a tracker."""
    if not await remove_tracker_card(session, tracker_id, card_id):
        raise NotFoundError("Tracker card", f"{tracker_id}/{card_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{tracker_id}/cards/{card_id}/exclude", response_model=ExclusionResponse)
async def toggle_exclude(
    tracker_id: int,
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ExclusionResponse:
    """Flip whether a member counts towards completion."""
    member = await toggle_tracker_card_exclusion(session, tracker_id, card_id)
    if member is None:
        raise NotFoundError("Tracker card", f"{tracker_id}/{card_id}")
    return ExclusionResponse(card_id=card_id, is_excluded=member.is_excluded)


@router.post("/{tracker_id}/export", response_class=PlainTextResponse)
async def export_missing(
    tracker_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> PlainTextResponse:
    """Plain-text list of active cards with no non-foil copy owned."""
    return PlainTextResponse(await export_missing_cards(session, tracker_id))
