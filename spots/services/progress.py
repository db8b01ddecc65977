"""
Completion and value computations.

Pure functions over already-loaded members, owned copies and prices.
Callers are responsible for passing a consistent snapshot.

Completion rules:
- Excluded members count in neither numerator nor denominator.
- Tracking both finishes doubles the denominator; a card owned in both
  finishes contributes 2, in one finish 1.
- Tracking a single finish counts only copies of that finish.
- A tracker with neither finish tracked collects nothing.
- A zero denominator reports 0.0, never an error.
"""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from spots.config import NEAR_COMPLETE_LIMIT, TOP_VALUABLE_LIMIT
from spots.models.progress import (
    CardInfo,
    DashboardTotals,
    Member,
    MemberStatus,
    NearCompleteItem,
    OwnedCopy,
    PricePoint,
    TrackerInfo,
    TrackerProgress,
    ValuableCard,
)


def percentage(numerator: int, denominator: int) -> float:
    """Percentage rounded half-up to one decimal; 0.0 for an empty denominator."""
    if denominator <= 0:
        return 0.0
    value = Decimal(numerator) * 100 / Decimal(denominator)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _owned_sets(inventory: Iterable[OwnedCopy]) -> tuple[set[int], set[int]]:
    non_foil: set[int] = set()
    foil: set[int] = set()
    for copy in inventory:
        (foil if copy.is_foil else non_foil).add(copy.card_id)
    return non_foil, foil


def tracker_progress(
    tracker: TrackerInfo,
    members: Iterable[Member],
    inventory: Iterable[OwnedCopy],
) -> TrackerProgress:
    """Completion of one tracker."""
    active_ids = {m.card_id for m in members if not m.is_excluded}
    owned_non_foil, owned_foil = _owned_sets(inventory)

    total = len(active_ids)
    collected_non_foil = len(active_ids & owned_non_foil)
    collected_foil = len(active_ids & owned_foil)

    if tracker.track_foil and tracker.track_non_foil:
        denominator = total * 2
        collected = collected_non_foil + collected_foil
    elif tracker.track_foil:
        denominator = total
        collected = collected_foil
    elif tracker.track_non_foil:
        denominator = total
        collected = collected_non_foil
    else:
        denominator = total
        collected = 0

    return TrackerProgress(
        tracker_id=tracker.id,
        tracker_name=tracker.name,
        set_code=tracker.set_code,
        track_foil=tracker.track_foil,
        track_non_foil=tracker.track_non_foil,
        total_cards=total,
        collected_cards=collected,
        collected_non_foil=collected_non_foil,
        collected_foil=collected_foil,
        completion_percentage=percentage(collected, denominator),
        non_foil_completion_percentage=percentage(collected_non_foil, total),
        foil_completion_percentage=percentage(collected_foil, total),
    )


def near_complete(
    progress: Iterable[TrackerProgress],
    limit: int = NEAR_COMPLETE_LIMIT,
) -> list[NearCompleteItem]:
    """
    Tracked finishes closest to completion.

    Each tracked finish of each tracker is ranked on its own. Finishes at
    0% (not started) and 100% (done) are left out.
    """
    items: list[NearCompleteItem] = []
    for p in progress:
        if p.track_non_foil:
            items.append(
                NearCompleteItem(
                    tracker_id=p.tracker_id,
                    tracker_name=p.tracker_name,
                    set_code=p.set_code,
                    is_foil=False,
                    completion_percentage=p.non_foil_completion_percentage,
                    collected=p.collected_non_foil,
                    total=p.total_cards,
                )
            )
        if p.track_foil:
            items.append(
                NearCompleteItem(
                    tracker_id=p.tracker_id,
                    tracker_name=p.tracker_name,
                    set_code=p.set_code,
                    is_foil=True,
                    completion_percentage=p.foil_completion_percentage,
                    collected=p.collected_foil,
                    total=p.total_cards,
                )
            )

    in_progress = [i for i in items if 0 < i.completion_percentage < 100]
    # sorted() is stable: ties keep tracker order
    in_progress.sort(key=lambda i: i.completion_percentage, reverse=True)
    return in_progress[:limit]


def latest_prices(snapshots: Iterable[PricePoint]) -> dict[int, PricePoint]:
    """Reduce price history to the most recent snapshot per card."""
    latest: dict[int, PricePoint] = {}
    for snapshot in snapshots:
        current = latest.get(snapshot.card_id)
        if current is None or snapshot.updated_at > current.updated_at:
            latest[snapshot.card_id] = snapshot
    return latest


def top_valuable(
    inventory: Iterable[OwnedCopy],
    prices: Mapping[int, PricePoint],
    cards: Mapping[int, CardInfo],
    limit: int = TOP_VALUABLE_LIMIT,
) -> list[ValuableCard]:
    """
    Most valuable owned (card, finish) combinations by unit price.

    Combinations without a positive price for their finish are left out;
    a missing price is never ranked as zero.
    """
    ranked: list[ValuableCard] = []
    for card_id, is_foil in sorted({(c.card_id, c.is_foil) for c in inventory}):
        point = prices.get(card_id)
        price = point.for_finish(is_foil) if point else None
        if price is None or price <= 0:
            continue
        info = cards.get(card_id) or CardInfo(name="", set_code="", set_name="")
        ranked.append(
            ValuableCard(
                card_id=card_id,
                card_name=info.name,
                set_code=info.set_code,
                set_name=info.set_name,
                is_foil=is_foil,
                price=price,
            )
        )

    ranked.sort(key=lambda v: v.price, reverse=True)
    return ranked[:limit]


def dashboard_totals(
    inventory: Sequence[OwnedCopy],
    prices: Mapping[int, PricePoint],
) -> DashboardTotals:
    """
    Physical count, distinct card count and approximate value.

    Value is summed per physical copy. A foil copy without a foil price
    falls back to the non-foil price; a copy with no price adds nothing.
    """
    value = Decimal("0")
    for copy in inventory:
        point = prices.get(copy.card_id)
        if point is None:
            continue
        if copy.is_foil and point.eur_foil is not None:
            value += point.eur_foil
        elif point.eur is not None:
            value += point.eur

    return DashboardTotals(
        total_cards=len(inventory),
        unique_cards=len({c.card_id for c in inventory}),
        approx_value_eur=value,
    )


def member_statuses(
    members: Iterable[Member],
    inventory: Iterable[OwnedCopy],
) -> list[MemberStatus]:
    """Per-member copy counts, excluded members included."""
    counts = Counter((c.card_id, c.is_foil) for c in inventory)
    return [
        MemberStatus(
            card_id=m.card_id,
            is_excluded=m.is_excluded,
            owned_quantity=counts[(m.card_id, False)],
            owned_foil_quantity=counts[(m.card_id, True)],
        )
        for m in members
    ]


def missing_cards_export(members: Iterable[Member], inventory: Iterable[OwnedCopy]) -> str:
    """
    Shopping list of active members without a non-foil copy.

    One line per card: "1 {name} (V.{collector number}) ({set name})".
    """
    owned_non_foil, _owned_foil = _owned_sets(inventory)
    lines = [
        f"1 {m.name} (V.{m.collector_number}) ({m.set_name})"
        for m in members
        if not m.is_excluded and m.card_id not in owned_non_foil
    ]
    return "\n".join(lines)
