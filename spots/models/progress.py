from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class OwnedCopy:
    """One physical copy as seen by the progress calculator."""

    card_id: int
    is_foil: bool


@dataclass(frozen=True, slots=True)
class Member:
    """
    A tracker member as seen by the progress calculator.

    Display fields are optional so pure completion math can be
    exercised with ids alone.
    """

    card_id: int
    is_excluded: bool = False
    name: str = ""
    set_code: str = ""
    set_name: str = ""
    collector_number: str = ""


@dataclass(frozen=True, slots=True)
class TrackerInfo:
    """The tracker fields that completion math depends on."""

    id: int
    name: str
    set_code: str | None = None
    track_foil: bool = False
    track_non_foil: bool = True


@dataclass(frozen=True, slots=True)
class PricePoint:
    """A price snapshot reduced to what valuation needs."""

    card_id: int
    eur: Decimal | None
    eur_foil: Decimal | None
    updated_at: datetime

    def for_finish(self, is_foil: bool) -> Decimal | None:
        """Price of the matching finish, None when not quoted."""
        return self.eur_foil if is_foil else self.eur


@dataclass(frozen=True, slots=True)
class CardInfo:
    """Card display fields used by the valuable-card ranking."""

    name: str
    set_code: str
    set_name: str


@dataclass
class TrackerProgress:
    """
    Completion figures for one tracker.

    completion_percentage follows the tracked finishes; the foil and
    non-foil percentages are always reported for display.
    """

    tracker_id: int
    tracker_name: str
    set_code: str | None
    track_foil: bool
    track_non_foil: bool
    total_cards: int
    collected_cards: int
    collected_non_foil: int
    collected_foil: int
    completion_percentage: float
    non_foil_completion_percentage: float
    foil_completion_percentage: float


@dataclass(frozen=True, slots=True)
class NearCompleteItem:
    """One finish of one tracker in the nearest-to-complete ranking."""

    tracker_id: int
    tracker_name: str
    set_code: str | None
    is_foil: bool
    completion_percentage: float
    collected: int
    total: int


@dataclass(frozen=True, slots=True)
class ValuableCard:
    """An owned (card, finish) combination with its current unit price."""

    card_id: int
    card_name: str
    set_code: str
    set_name: str
    is_foil: bool
    price: Decimal


@dataclass(frozen=True, slots=True)
class DashboardTotals:
    """Collection-wide counts and approximate value."""

    total_cards: int
    unique_cards: int
    approx_value_eur: Decimal


@dataclass(frozen=True, slots=True)
class MemberStatus:
    """Ownership of a single tracker member."""

    card_id: int
    is_excluded: bool
    owned_quantity: int
    owned_foil_quantity: int

    @property
    def is_collected(self) -> bool:
        return self.owned_quantity > 0

    @property
    def is_foil_collected(self) -> bool:
        return self.owned_foil_quantity > 0
