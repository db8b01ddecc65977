"""
Card search endpoints, proxied to the catalog service.

Search failures upstream degrade to empty results rather than errors.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from spots.api.deps import get_catalog_client
from spots.models.catalog import CatalogCard
from spots.models.failure import InvalidInputError
from spots.services.catalog_client import CatalogClient

router = APIRouter(prefix="/api/cards", tags=["cards"])


class CatalogCardResponse(BaseModel):
    """A printing as reported by the catalog."""

    scryfall_id: str
    name: str
    set_code: str
    set_name: str
    collector_number: str
    rarity: str
    type_line: str | None = None
    mana_cost: str | None = None
    image_uri: str | None = None
    image_uri_small: str | None = None
    eur: str | None = None
    eur_foil: str | None = None


class SearchResponse(BaseModel):
    """One page of search results."""

    cards: list[CatalogCardResponse] = Field(default_factory=list)
    total_cards: int = 0
    has_more: bool = False
    page: int = 1


def _to_response(card: CatalogCard) -> CatalogCardResponse:
    return CatalogCardResponse(
        scryfall_id=card.scryfall_id,
        name=card.name,
        set_code=card.set_code,
        set_name=card.set_name,
        collector_number=card.collector_number,
        rarity=card.rarity,
        type_line=card.type_line,
        mana_cost=card.mana_cost,
        image_uri=card.images.normal,
        image_uri_small=card.images.small,
        eur=card.prices.eur,
        eur_foil=card.prices.eur_foil,
    )


@router.get("/search", response_model=SearchResponse)
async def search(
    client: Annotated[CatalogClient, Depends(get_catalog_client)],
    q: str = Query(default="", description="Catalog search query"),
    page: int = Query(default=1, ge=1),
) -> SearchResponse:
    """Free-text search of the catalog."""
    if not q.strip():
        raise InvalidInputError("Search query must not be empty")

    result = await client.search_cards(q.strip(), page=page)
    return SearchResponse(
        cards=[_to_response(card) for card in result.cards],
        total_cards=result.total_cards,
        has_more=result.has_more,
        page=page,
    )


@router.get("/autocomplete", response_model=list[str])
async def autocomplete(
    client: Annotated[CatalogClient, Depends(get_catalog_client)],
    q: str = Query(default=""),
) -> list[str]:
    """Card name suggestions. Blank input gives no suggestions."""
    if not q.strip():
        return []
    return await client.autocomplete(q.strip())
