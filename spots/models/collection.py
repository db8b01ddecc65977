from dataclasses import dataclass, field

from spots.models.db import CardDB, CollectionEntryDB


@dataclass
class CollectionGroup:
    """All owned copies of one card, consolidated for display."""

    card: CardDB
    entries: list[CollectionEntryDB] = field(default_factory=list)

    @property
    def standard_count(self) -> int:
        return sum(1 for entry in self.entries if not entry.is_foil)

    @property
    def foil_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_foil)
