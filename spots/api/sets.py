"""
Set browser endpoints.

Set listings come straight from the catalog service. Set cards are read
from the local store and imported on first access.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spots.api.deps import get_catalog_client, get_reconciler, import_set_or_fail
from spots.config import BROWSABLE_SET_TYPES
from spots.db import get_cards_by_set
from spots.db.database import get_session
from spots.db.operations import get_price_points
from spots.models.catalog import CatalogSet
from spots.models.db import CardDB
from spots.services.catalog_client import CatalogClient
from spots.services.progress import latest_prices
from spots.services.reconciliation import Reconciler

router = APIRouter(prefix="/api/sets", tags=["sets"])

_NUMBER_PARTS = re.compile(r"(\d+)")


class SetResponse(BaseModel):
    """A set summary."""

    code: str
    name: str
    set_type: str
    released_at: date | None = None
    card_count: int = 0
    icon_svg_uri: str | None = None


class SetCardResponse(BaseModel):
    """A printing of a set with its current price."""

    id: int
    scryfall_id: str
    name: str
    collector_number: str
    rarity: str
    type_line: str | None = None
    mana_cost: str | None = None
    image_uri: str | None = None
    image_uri_small: str | None = None
    eur: float | None = None
    eur_foil: float | None = None


class SetCardsResponse(BaseModel):
    """All local printings of a set, ordered by collector number."""

    set_code: str
    total: int
    cards: list[SetCardResponse] = Field(default_factory=list)


def collector_sort_key(number: str) -> tuple:
    """
    Natural ordering for collector numbers.

    "2" sorts before "10", and "12a" right after "12".
    """
    parts = _NUMBER_PARTS.split(number)
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in parts if part)


def _to_set_response(catalog_set: CatalogSet) -> SetResponse:
    return SetResponse(
        code=catalog_set.code,
        name=catalog_set.name,
        set_type=catalog_set.set_type,
        released_at=catalog_set.released_at,
        card_count=catalog_set.card_count,
        icon_svg_uri=catalog_set.icon_svg_uri,
    )


@router.get("", response_model=list[SetResponse])
async def list_sets(
    client: Annotated[CatalogClient, Depends(get_catalog_client)],
) -> list[SetResponse]:
    """Paper sets of the browsable types, newest first."""
    sets = [
        s for s in await client.list_sets() if not s.digital and s.set_type in BROWSABLE_SET_TYPES
    ]
    sets.sort(key=lambda s: s.released_at or date.min, reverse=True)
    return [_to_set_response(s) for s in sets]


@router.get("/{set_code}", response_model=SetResponse)
async def get_set(
    set_code: str,
    client: Annotated[CatalogClient, Depends(get_catalog_client)],
) -> SetResponse:
    """Get one set. Returns 404 if the catalog does not know it."""
    return _to_set_response(await client.get_set(set_code.strip().lower()))


@router.get("/{set_code}/cards", response_model=SetCardsResponse)
async def get_set_cards(
    set_code: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> SetCardsResponse:
    """
    List the cards of a set.

    A set with no local cards is imported first. Returns 502 if the
    import fetched nothing.
    """
    code = set_code.strip().lower()

    cards: list[CardDB] = await get_cards_by_set(session, code)
    if not cards:
        await import_set_or_fail(reconciler, code)
        cards = await get_cards_by_set(session, code)

    cards.sort(key=lambda c: collector_sort_key(c.collector_number))
    prices = latest_prices(await get_price_points(session, [c.id for c in cards]))

    return SetCardsResponse(
        set_code=code,
        total=len(cards),
        cards=[
            SetCardResponse(
                id=card.id,
                scryfall_id=card.scryfall_id,
                name=card.name,
                collector_number=card.collector_number,
                rarity=card.rarity,
                type_line=card.type_line,
                mana_cost=card.mana_cost,
                image_uri=card.image_uri,
                image_uri_small=card.image_uri_small,
                eur=_as_float(prices[card.id].eur) if card.id in prices else None,
                eur_foil=_as_float(prices[card.id].eur_foil) if card.id in prices else None,
            )
            for card in cards
        ],
    )


def _as_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)
