from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True, slots=True)
class ImageUris:
    """Image URLs for a printing. Any of them may be missing."""

    normal: str | None = None
    small: str | None = None
    art_crop: str | None = None


@dataclass(frozen=True, slots=True)
class CardPrices:
    """
    Raw price strings as reported by the catalog.

    Kept as strings so that "absent" and "unparsable" stay distinguishable
    from a real value until reconciliation parses them.
    """

    eur: str | None = None
    eur_foil: str | None = None


@dataclass(frozen=True, slots=True)
class CatalogSet:
    """
    A set summary from the catalog service.

    Attributes:
        code: Set code (e.g., "dmu")
        name: Display name
        set_type: Catalog category (core, expansion, masters, ...)
        released_at: Release date, None when unknown or unparsable
        digital: True for online-only sets
        card_count: Number of printings in the set
    """

    code: str
    name: str
    set_type: str = ""
    released_at: date | None = None
    digital: bool = False
    card_count: int = 0
    icon_svg_uri: str | None = None


@dataclass(frozen=True, slots=True)
class CatalogCard:
    """
    One printing as reported by the catalog service.

    Attributes:
        scryfall_id: Stable external identifier
        collector_number: Kept as a string, may be non-numeric ("12a", "★")
        images: Top-level images, or the first face's for multi-faced cards
        prices: Raw price strings
    """

    scryfall_id: str
    name: str
    set_code: str
    set_name: str = ""
    collector_number: str = ""
    rarity: str = ""
    type_line: str | None = None
    mana_cost: str | None = None
    oracle_text: str | None = None
    language: str = "en"
    images: ImageUris = field(default_factory=ImageUris)
    prices: CardPrices = field(default_factory=CardPrices)


@dataclass
class SearchResult:
    """One page of free-text search results."""

    cards: list[CatalogCard] = field(default_factory=list)
    total_cards: int = 0
    has_more: bool = False
