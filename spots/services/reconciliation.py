"""
Catalog reconciliation.

Mirrors catalog sets into the local store. Importing a set is idempotent:
cards are matched by catalog id and overwritten in place, and each card's
latest price snapshot is overwritten (or created on first import).

Cards are written in a first pass and committed before any price is
touched, since price rows reference the cards' local ids.
"""

import calendar
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spots.config import RECENT_SYNC_SET_TYPES
from spots.db.operations import (
    get_cards_by_scryfall_ids,
    get_distinct_set_codes,
    upsert_card,
    upsert_latest_price,
)
from spots.models.catalog import CatalogCard, CatalogSet
from spots.services.catalog_client import CatalogClient

logger = logging.getLogger(__name__)


def parse_price(raw: Any) -> Decimal | None:
    """
    Parse a catalog price string.

    Locale-invariant ("1.50", never "1,50"). Missing, empty, unparsable
    and non-finite values become None so that "no price" is never
    mistaken for a price of zero.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def months_before(day: date, months: int) -> date:
    """The same day `months` calendar months earlier, clamped to month end."""
    total = day.year * 12 + (day.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def select_recent_sets(
    sets: Iterable[CatalogSet], months_back: int, today: date
) -> list[CatalogSet]:
    """
    Physical sets of the collectible categories released since the cutoff.

    Sets with a release date after today (previews) are kept.
    """
    cutoff = months_before(today, months_back)
    return [
        s
        for s in sets
        if not s.digital
        and s.set_type in RECENT_SYNC_SET_TYPES
        and s.released_at is not None
        and s.released_at >= cutoff
    ]


@dataclass
class ImportResult:
    """
    Outcome of importing one set.

    Attributes:
        complete: False when pagination stopped early on an upstream failure
    """

    set_code: str
    cards_fetched: int = 0
    cards_created: int = 0
    cards_updated: int = 0
    prices_written: int = 0
    complete: bool = True

    @property
    def failed(self) -> bool:
        """True when nothing could be fetched because the first page failed."""
        return not self.complete and self.cards_fetched == 0


@dataclass
class SyncReport:
    """Outcome of syncing a list of sets."""

    imported: list[ImportResult] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def partial(self) -> list[str]:
        """Set codes whose card fetch was cut short."""
        return [r.set_code for r in self.imported if not r.complete]

    def summary(self) -> str:
        """Short human-readable outcome."""
        text = f"{len(self.imported)} sets imported"
        if self.failed:
            text += f", failed: {', '.join(self.failed)}"
        if self.partial:
            text += f", incomplete: {', '.join(self.partial)}"
        if self.skipped:
            text += f", {len(self.skipped)} skipped"
        return text


class Reconciler:
    """
    Imports catalog sets into the local database.

    Each import opens its own session from `session_factory`, so imports
    can run from request handlers and from the background scheduler.
    """

    def __init__(
        self,
        client: CatalogClient,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.client = client
        self.session_factory = session_factory

    async def import_set(self, set_code: str) -> ImportResult:
        """
        Fetch a set and upsert its cards and prices.

        Safe to call repeatedly. A partial fetch still commits the cards
        that were retrieved; re-running the import fills the gap.
        """
        fetched, complete = await self.client.fetch_set_cards(set_code)
        # Same printing twice in one fetch: last occurrence wins
        cards: dict[str, CatalogCard] = {card.scryfall_id: card for card in fetched}
        result = ImportResult(set_code=set_code, cards_fetched=len(cards), complete=complete)

        logger.info("Importing %d cards for set %s", len(cards), set_code)
        if not cards:
            return result

        now = datetime.now(UTC)

        async with self.session_factory() as session:
            local = await get_cards_by_scryfall_ids(session, list(cards))

            # Pass 1: cards
            for scryfall_id, card in cards.items():
                db_card, created = await upsert_card(
                    session, card, existing=local.get(scryfall_id), now=now
                )
                local[scryfall_id] = db_card
                if created:
                    result.cards_created += 1
                else:
                    result.cards_updated += 1
            await session.commit()

            # Pass 2: prices, now that every card has a local id
            for scryfall_id, card in cards.items():
                db_card = local[scryfall_id]
                await upsert_latest_price(
                    session,
                    db_card.id,
                    eur=parse_price(card.prices.eur),
                    eur_foil=parse_price(card.prices.eur_foil),
                    now=now,
                )
                result.prices_written += 1
            await session.commit()

        logger.info(
            "Finished importing set %s (%d new, %d updated%s)",
            set_code,
            result.cards_created,
            result.cards_updated,
            "" if complete else ", incomplete",
        )
        return result

    async def _import_each(
        self,
        set_codes: list[str],
        should_stop: Callable[[], bool] | None,
    ) -> SyncReport:
        report = SyncReport()
        for index, set_code in enumerate(set_codes):
            if should_stop is not None and should_stop():
                report.skipped = set_codes[index:]
                logger.info("Stop requested, skipping %d remaining sets", len(report.skipped))
                break
            try:
                result = await self.import_set(set_code)
            except Exception as e:
                logger.error("Error syncing set %s: %s", set_code, e)
                report.failed.append(set_code)
                continue
            if result.failed:
                report.failed.append(set_code)
            else:
                report.imported.append(result)
        return report

    async def sync_recent_sets(
        self,
        months_back: int,
        should_stop: Callable[[], bool] | None = None,
        today: date | None = None,
    ) -> SyncReport:
        """
        Import every recent physical set.

        Raises:
            UpstreamError: If the set list itself cannot be fetched
        """
        sets = await self.client.list_sets()
        recent = select_recent_sets(sets, months_back, today or datetime.now(UTC).date())
        logger.info("Syncing %d recent sets", len(recent))
        return await self._import_each([s.code for s in recent], should_stop)

    async def sync_prices(self, should_stop: Callable[[], bool] | None = None) -> SyncReport:
        """
        Refresh prices for every set present locally.

        There is no price-only endpoint; each set is fully re-imported.
        """
        async with self.session_factory() as session:
            set_codes = await get_distinct_set_codes(session)
        logger.info("Syncing prices for %d sets", len(set_codes))
        return await self._import_each(set_codes, should_stop)
