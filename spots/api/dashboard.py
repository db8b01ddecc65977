"""
Dashboard API endpoint.

Collection totals, tracker completion and the two dashboard rankings.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spots.db.database import get_session
from spots.services.dashboard import get_dashboard

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


class TrackerProgressResponse(BaseModel):
    """Completion of one tracker."""

    model_config = ConfigDict(from_attributes=True)

    tracker_id: int
    tracker_name: str
    set_code: str | None = None
    track_foil: bool
    track_non_foil: bool
    total_cards: int
    collected_cards: int
    completion_percentage: float
    foil_completion_percentage: float
    non_foil_completion_percentage: float


class NearCompleteResponse(BaseModel):
    """One tracked finish of a tracker that is started but not finished."""

    model_config = ConfigDict(from_attributes=True)

    tracker_id: int
    tracker_name: str
    set_code: str | None = None
    is_foil: bool
    completion_percentage: float
    collected: int
    total: int


class TopCardResponse(BaseModel):
    """An owned card and finish with its current unit price."""

    card_id: int
    card_name: str
    set_code: str
    set_name: str
    is_foil: bool
    price: float


class DashboardResponse(BaseModel):
    """Response model for the dashboard."""

    total_cards: int = Field(..., description="Physical copies owned")
    unique_cards: int = Field(..., description="Distinct printings owned")
    approx_value_eur: float = Field(..., description="Sum of current prices per physical copy")
    tracker_progress: list[TrackerProgressResponse] = Field(default_factory=list)
    near_complete_trackers: list[NearCompleteResponse] = Field(default_factory=list)
    top_expensive_cards: list[TopCardResponse] = Field(default_factory=list)


@router.get("", response_model=DashboardResponse)
async def dashboard(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DashboardResponse:
    """
    Get the dashboard.

    Only collecting trackers with at least one active card are listed.
    """
    data = await get_dashboard(session)

    return DashboardResponse(
        total_cards=data.totals.total_cards,
        unique_cards=data.totals.unique_cards,
        approx_value_eur=float(data.totals.approx_value_eur),
        tracker_progress=[TrackerProgressResponse.model_validate(p) for p in data.tracker_progress],
        near_complete_trackers=[NearCompleteResponse.model_validate(n) for n in data.near_complete],
        top_expensive_cards=[
            TopCardResponse(
                card_id=card.card_id,
                card_name=card.card_name,
                set_code=card.set_code,
                set_name=card.set_name,
                is_foil=card.is_foil,
                price=float(card.price),
            )
            for card in data.top_valuable
        ],
    )
