"""
Dashboard and tracker views.

Loads a snapshot of collection entries, memberships and prices from the
database and runs the progress calculations over it.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from spots.db.operations import (
    get_card_infos,
    get_members_by_tracker,
    get_owned_copies,
    get_price_points,
    get_tracker,
    get_tracker_members,
    list_trackers,
    member_to_model,
    tracker_to_info,
)
from spots.models.db import TrackerCardDB, TrackerDB
from spots.models.failure import NotFoundError
from spots.models.progress import (
    DashboardTotals,
    MemberStatus,
    NearCompleteItem,
    TrackerProgress,
    ValuableCard,
)
from spots.services.progress import (
    dashboard_totals,
    latest_prices,
    member_statuses,
    missing_cards_export,
    near_complete,
    top_valuable,
    tracker_progress,
)


@dataclass
class Dashboard:
    """Everything the dashboard page shows."""

    totals: DashboardTotals
    tracker_progress: list[TrackerProgress] = field(default_factory=list)
    near_complete: list[NearCompleteItem] = field(default_factory=list)
    top_valuable: list[ValuableCard] = field(default_factory=list)


@dataclass
class TrackerDetail:
    """A tracker with its completion and per-member ownership."""

    tracker: TrackerDB
    progress: TrackerProgress
    members: list[tuple[TrackerCardDB, MemberStatus]] = field(default_factory=list)


async def get_dashboard(session: AsyncSession) -> Dashboard:
    """
    Build the dashboard.

    Only trackers that are actively collecting and have at least one
    non-excluded member appear in the progress list.
    """
    inventory = await get_owned_copies(session)
    owned_ids = {c.card_id for c in inventory}
    prices = latest_prices(await get_price_points(session, owned_ids))

    trackers = await list_trackers(session, collecting_only=True)
    members = await get_members_by_tracker(session, [t.id for t in trackers])
    progress = [
        tracker_progress(tracker_to_info(t), members.get(t.id, []), inventory) for t in trackers
    ]
    progress = [p for p in progress if p.total_cards > 0]

    card_infos = await get_card_infos(session, owned_ids)

    return Dashboard(
        totals=dashboard_totals(inventory, prices),
        tracker_progress=progress,
        near_complete=near_complete(progress),
        top_valuable=top_valuable(inventory, prices, card_infos),
    )


async def get_tracker_progress(session: AsyncSession, tracker: TrackerDB) -> TrackerProgress:
    """Completion of a single tracker."""
    members = await get_members_by_tracker(session, [tracker.id])
    member_list = members.get(tracker.id, [])
    inventory = await get_owned_copies(session, {m.card_id for m in member_list})
    return tracker_progress(tracker_to_info(tracker), member_list, inventory)


async def get_tracker_detail(session: AsyncSession, tracker_id: int) -> TrackerDetail:
    """
    Tracker completion plus collected flags for every member.

    Raises:
        NotFoundError: If the tracker does not exist
    """
    tracker = await get_tracker(session, tracker_id)
    if tracker is None:
        raise NotFoundError("Tracker", tracker_id)

    rows = await get_tracker_members(session, tracker_id)
    members = [member_to_model(row) for row in rows]
    inventory = await get_owned_copies(session, {m.card_id for m in members})

    return TrackerDetail(
        tracker=tracker,
        progress=tracker_progress(tracker_to_info(tracker), members, inventory),
        members=list(zip(rows, member_statuses(members, inventory), strict=True)),
    )


async def export_missing_cards(session: AsyncSession, tracker_id: int) -> str:
    """
    Text list of the tracker's active cards without a non-foil copy.

    Raises:
        NotFoundError: If the tracker does not exist
    """
    tracker = await get_tracker(session, tracker_id)
    if tracker is None:
        raise NotFoundError("Tracker", tracker_id)

    members = [member_to_model(row) for row in await get_tracker_members(session, tracker_id)]
    inventory = await get_owned_copies(session, {m.card_id for m in members})
    return missing_cards_export(members, inventory)
