"""
Collection API endpoints.

Every owned physical copy is its own entry; quantities are counts of
entries.
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spots.db import (
    add_collection_entry,
    delete_collection_entry,
    get_card,
    get_card_entries,
    get_collection_entry,
    get_collection_groups,
    reset_collection,
    update_collection_entry,
)
from spots.db.database import get_session
from spots.db.operations import get_price_points
from spots.models.collection import CollectionGroup
from spots.models.failure import NotFoundError
from spots.services.progress import latest_prices

router = APIRouter(prefix="/api/collection", tags=["collection"])


class CollectionEntryResponse(BaseModel):
    """One physical copy."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    card_id: int
    is_foil: bool
    spot_id: int | None = None
    for_trade: bool


class AddEntryRequest(BaseModel):
    """Request model for recording a copy."""

    card_id: int
    is_foil: bool = False
    spot_id: int | None = None
    for_trade: bool = False


class UpdateEntryRequest(BaseModel):
    """
    Request model for moving or flagging a copy.

    Sending spot_id explicitly as null removes the copy from its location;
    omitting it leaves the location unchanged.
    """

    spot_id: int | None = None
    for_trade: bool | None = None


class CardEntriesResponse(BaseModel):
    """All copies of one card."""

    card_id: int
    quantity: int
    foil_quantity: int
    entries: list[CollectionEntryResponse] = Field(default_factory=list)


class CollectionCardResponse(BaseModel):
    """One card with all of its matching copies."""

    card_id: int
    name: str
    set_code: str
    set_name: str | None = None
    collector_number: str | None = None
    rarity: str | None = None
    type_line: str | None = None
    mana_cost: str | None = None
    image_uri: str | None = None
    image_uri_small: str | None = None
    price_eur: float | None = None
    price_eur_foil: float | None = None
    standard_count: int
    foil_count: int
    entries: list[CollectionEntryResponse] = Field(default_factory=list)


class ResetResponse(BaseModel):
    """Result of a collection reset."""

    deleted: int


@router.post("", response_model=CollectionEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_entry(
    request: AddEntryRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionEntryResponse:
    """Record one physical copy. Returns 404 if the card is unknown."""
    if await get_card(session, request.card_id) is None:
        raise NotFoundError("Card", request.card_id)

    entry = await add_collection_entry(
        session,
        card_id=request.card_id,
        is_foil=request.is_foil,
        spot_id=request.spot_id,
        for_trade=request.for_trade,
    )
    return CollectionEntryResponse.model_validate(entry)


@router.get("", response_model=list[CollectionCardResponse])
async def list_collection(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    set_code: str | None = None,
    spot_id: int | None = None,
    card_id: int | None = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[CollectionCardResponse]:
    """
    The collection grouped by card, ordered by name then set.

    X-Total-Count carries the number of cards across all pages.
    """
    groups, total = await get_collection_groups(
        session,
        set_code=set_code,
        spot_id=spot_id,
        card_id=card_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    response.headers["X-Total-Count"] = str(total)
    return await _grouped_response(session, groups)


@router.get("/fortrade", response_model=list[CollectionCardResponse])
async def list_for_trade(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=500)] = 60,
) -> list[CollectionCardResponse]:
    """Copies flagged for trade, grouped by card."""
    groups, total = await get_collection_groups(
        session, search=search, for_trade_only=True, page=page, page_size=page_size
    )
    response.headers["X-Total-Count"] = str(total)
    return await _grouped_response(session, groups)


@router.get("/card/{card_id}", response_model=CardEntriesResponse)
async def get_entries_for_card(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardEntriesResponse:
    """All owned copies of a card."""
    entries = await get_card_entries(session, card_id)
    foil = sum(1 for entry in entries if entry.is_foil)
    return CardEntriesResponse(
        card_id=card_id,
        quantity=len(entries) - foil,
        foil_quantity=foil,
        entries=[CollectionEntryResponse.model_validate(entry) for entry in entries],
    )


@router.put("/{entry_id}", response_model=CollectionEntryResponse)
async def update_entry(
    entry_id: int,
    request: UpdateEntryRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionEntryResponse:
    """Move a copy or flag it for trade."""
    entry = await get_collection_entry(session, entry_id)
    if entry is None:
        raise NotFoundError("Collection entry", entry_id)

    await update_collection_entry(
        session,
        entry,
        spot_id=request.spot_id,
        for_trade=request.for_trade,
        clear_spot="spot_id" in request.model_fields_set and request.spot_id is None,
    )
    return CollectionEntryResponse.model_validate(entry)


@router.delete("/reset", response_model=ResetResponse)
async def reset(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ResetResponse:
    """Delete every collection entry. Cards, prices and trackers are kept."""
    return ResetResponse(deleted=await reset_collection(session))


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Delete one copy."""
    if not await delete_collection_entry(session, entry_id):
        raise NotFoundError("Collection entry", entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _grouped_response(
    session: AsyncSession, groups: list[CollectionGroup]
) -> list[CollectionCardResponse]:
    prices = latest_prices(await get_price_points(session, [g.card.id for g in groups]))
    result = []
    for group in groups:
        card = group.card
        price = prices.get(card.id)
        result.append(
            CollectionCardResponse(
                card_id=card.id,
                name=card.name,
                set_code=card.set_code,
                set_name=card.set_name,
                collector_number=card.collector_number,
                rarity=card.rarity,
                type_line=card.type_line,
                mana_cost=card.mana_cost,
                image_uri=card.image_uri,
                image_uri_small=card.image_uri_small,
                price_eur=_as_float(price.eur) if price else None,
                price_eur_foil=_as_float(price.eur_foil) if price else None,
                standard_count=group.standard_count,
                foil_count=group.foil_count,
                entries=[CollectionEntryResponse.model_validate(e) for e in group.entries],
            )
        )
    return result


def _as_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)
