"""
Database CRUD operations.

Provides async functions for cards, prices, collection entries,
trackers and the sync settings row. Functions flush but never commit;
committing is the caller's decision.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload

from spots.models.catalog import CatalogCard
from spots.models.collection import CollectionGroup
from spots.models.db import (
    CardDB,
    CardPriceDB,
    CollectionEntryDB,
    SyncSettingsDB,
    TrackerCardDB,
    TrackerDB,
)
from spots.models.failure import ConflictError
from spots.models.progress import CardInfo, Member, OwnedCopy, PricePoint, TrackerInfo
from spots.models.sync import SyncStatus, as_utc

# Keeps IN (...) lists under SQLite's bound-parameter limit
_IN_CHUNK_SIZE = 500


def _chunks(values: Sequence[str] | Sequence[int], size: int = _IN_CHUNK_SIZE):
    for start in range(0, len(values), size):
        yield values[start : start + size]


# --- Card Operations ---


async def get_card(session: AsyncSession, card_id: int) -> CardDB | None:
    """Get a card by local id."""
    return await session.get(CardDB, card_id)


async def get_card_by_scryfall_id(session: AsyncSession, scryfall_id: str) -> CardDB | None:
    """Get a card by its catalog id."""
    result = await session.execute(select(CardDB).where(CardDB.scryfall_id == scryfall_id))
    return result.scalar_one_or_none()


async def get_cards_by_scryfall_ids(
    session: AsyncSession, scryfall_ids: Sequence[str]
) -> dict[str, CardDB]:
    """Load all known cards for the given catalog ids, keyed by catalog id."""
    found: dict[str, CardDB] = {}
    for chunk in _chunks(list(dict.fromkeys(scryfall_ids))):
        result = await session.execute(select(CardDB).where(CardDB.scryfall_id.in_(chunk)))
        for card in result.scalars():
            found[card.scryfall_id] = card
    return found


async def get_cards_by_set(session: AsyncSession, set_code: str) -> list[CardDB]:
    """Get all local cards of a set (set codes compare case-insensitively)."""
    result = await session.execute(
        select(CardDB)
        .where(func.lower(CardDB.set_code) == set_code.lower())
        .order_by(CardDB.id)
    )
    return list(result.scalars().all())


async def get_distinct_set_codes(session: AsyncSession) -> list[str]:
    """Set codes that have at least one local card, sorted."""
    result = await session.execute(select(distinct(CardDB.set_code)).order_by(CardDB.set_code))
    return [code for code in result.scalars().all() if code]


def apply_catalog_card(db_card: CardDB, card: CatalogCard, now: datetime) -> None:
    """Overwrite every mirrored field of a local card with catalog data."""
    db_card.scryfall_id = card.scryfall_id
    db_card.name = card.name
    db_card.set_code = card.set_code
    db_card.set_name = card.set_name
    db_card.collector_number = card.collector_number
    db_card.rarity = card.rarity
    db_card.type_line = card.type_line
    db_card.mana_cost = card.mana_cost
    db_card.oracle_text = card.oracle_text
    db_card.language = card.language or "en"
    db_card.image_uri = card.images.normal
    db_card.image_uri_small = card.images.small
    db_card.image_uri_art_crop = card.images.art_crop
    db_card.updated_at = now


async def upsert_card(
    session: AsyncSession,
    card: CatalogCard,
    existing: CardDB | None = None,
    now: datetime | None = None,
) -> tuple[CardDB, bool]:
    """
    Insert or update a card keyed by catalog id.

    Pass `existing` when the caller already looked the card up.

    Returns:
        Tuple of (card, created) where created is True if new.
    """
    now = now or datetime.now(UTC)
    if existing is None:
        existing = await get_card_by_scryfall_id(session, card.scryfall_id)

    if existing is not None:
        apply_catalog_card(existing, card, now)
        return existing, False

    db_card = CardDB()
    apply_catalog_card(db_card, card, now)
    session.add(db_card)
    return db_card, True


# --- Price Operations ---


async def get_latest_price(session: AsyncSession, card_id: int) -> CardPriceDB | None:
    """The most recent price snapshot of a card."""
    result = await session.execute(
        select(CardPriceDB)
        .where(CardPriceDB.card_id == card_id)
        .order_by(CardPriceDB.updated_at.desc(), CardPriceDB.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_latest_price(
    session: AsyncSession,
    card_id: int,
    eur: Decimal | None,
    eur_foil: Decimal | None,
    now: datetime | None = None,
) -> CardPriceDB:
    """
    Overwrite the latest snapshot of a card, or insert its first one.

    Both price fields are replaced, including with None.
    """
    now = now or datetime.now(UTC)
    latest = await get_latest_price(session, card_id)

    if latest is not None:
        latest.eur = eur
        latest.eur_foil = eur_foil
        latest.updated_at = now
        return latest

    snapshot = CardPriceDB(card_id=card_id, eur=eur, eur_foil=eur_foil, updated_at=now)
    session.add(snapshot)
    return snapshot


async def get_price_points(
    session: AsyncSession, card_ids: Iterable[int] | None = None
) -> list[PricePoint]:
    """
    Load price snapshots as PricePoints.

    All snapshots are returned; reduce with progress.latest_prices().
    """
    stmt = select(CardPriceDB)
    rows: list[CardPriceDB] = []
    if card_ids is None:
        rows = list((await session.execute(stmt)).scalars().all())
    else:
        for chunk in _chunks(sorted(set(card_ids))):
            result = await session.execute(stmt.where(CardPriceDB.card_id.in_(chunk)))
            rows.extend(result.scalars().all())

    return [
        PricePoint(
            card_id=row.card_id,
            eur=row.eur,
            eur_foil=row.eur_foil,
            updated_at=as_utc(row.updated_at),  # type: ignore[arg-type]
        )
        for row in rows
    ]


async def get_card_infos(session: AsyncSession, card_ids: Iterable[int]) -> dict[int, CardInfo]:
    """Display fields for the given cards."""
    infos: dict[int, CardInfo] = {}
    for chunk in _chunks(sorted(set(card_ids))):
        result = await session.execute(select(CardDB).where(CardDB.id.in_(chunk)))
        for card in result.scalars():
            infos[card.id] = CardInfo(
                name=card.name, set_code=card.set_code, set_name=card.set_name
            )
    return infos


# --- Collection Operations ---


async def add_collection_entry(
    session: AsyncSession,
    card_id: int,
    is_foil: bool = False,
    spot_id: int | None = None,
    for_trade: bool = False,
) -> CollectionEntryDB:
    """Record one physical copy of a card."""
    entry = CollectionEntryDB(
        card_id=card_id, is_foil=is_foil, spot_id=spot_id, for_trade=for_trade
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_collection_entry(session: AsyncSession, entry_id: int) -> CollectionEntryDB | None:
    """Get a single physical copy by id."""
    return await session.get(CollectionEntryDB, entry_id)


async def get_card_entries(session: AsyncSession, card_id: int) -> list[CollectionEntryDB]:
    """All physical copies of one card."""
    result = await session.execute(
        select(CollectionEntryDB)
        .where(CollectionEntryDB.card_id == card_id)
        .order_by(CollectionEntryDB.id)
    )
    return list(result.scalars().all())


async def get_collection_groups(
    session: AsyncSession,
    *,
    set_code: str | None = None,
    spot_id: int | None = None,
    card_id: int | None = None,
    search: str | None = None,
    for_trade_only: bool = False,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[CollectionGroup], int]:
    """
    Collection entries grouped by card, ordered by card name then set.

    Filters apply to entries, so a card appears with only its matching
    copies. Paging counts groups, not entries.

    Returns:
        Tuple of (groups on the requested page, total number of groups)
    """
    stmt = (
        select(CollectionEntryDB)
        .join(CollectionEntryDB.card)
        .options(contains_eager(CollectionEntryDB.card))
    )
    if set_code:
        stmt = stmt.where(func.lower(CardDB.set_code) == set_code.lower())
    if spot_id is not None:
        stmt = stmt.where(CollectionEntryDB.spot_id == spot_id)
    if card_id is not None:
        stmt = stmt.where(CollectionEntryDB.card_id == card_id)
    if search:
        stmt = stmt.where(CardDB.name.ilike(f"%{search}%"))
    if for_trade_only:
        stmt = stmt.where(CollectionEntryDB.for_trade.is_(True))
    stmt = stmt.order_by(CardDB.name, CardDB.set_code, CollectionEntryDB.id)

    groups: dict[int, CollectionGroup] = {}
    for entry in (await session.execute(stmt)).scalars().all():
        group = groups.get(entry.card_id)
        if group is None:
            group = groups[entry.card_id] = CollectionGroup(card=entry.card)
        group.entries.append(entry)

    start = (page - 1) * page_size
    return list(groups.values())[start : start + page_size], len(groups)


async def get_owned_copies(
    session: AsyncSession, card_ids: Iterable[int] | None = None
) -> list[OwnedCopy]:
    """Load collection entries reduced to (card, finish) pairs."""
    stmt = select(CollectionEntryDB.card_id, CollectionEntryDB.is_foil)
    if card_ids is None:
        result = await session.execute(stmt)
        return [OwnedCopy(card_id=row.card_id, is_foil=row.is_foil) for row in result]

    copies: list[OwnedCopy] = []
    for chunk in _chunks(sorted(set(card_ids))):
        result = await session.execute(stmt.where(CollectionEntryDB.card_id.in_(chunk)))
        copies.extend(OwnedCopy(card_id=row.card_id, is_foil=row.is_foil) for row in result)
    return copies


async def update_collection_entry(
    session: AsyncSession,
    entry: CollectionEntryDB,
    spot_id: int | None = None,
    for_trade: bool | None = None,
    clear_spot: bool = False,
) -> CollectionEntryDB:
    """Move a copy to another location and/or flag it for trade."""
    if clear_spot:
        entry.spot_id = None
    elif spot_id is not None:
        entry.spot_id = spot_id
    if for_trade is not None:
        entry.for_trade = for_trade
    await session.flush()
    return entry


async def delete_collection_entry(session: AsyncSession, entry_id: int) -> bool:
    """
    Delete one physical copy.

    Returns True if deleted, False if not found.
    """
    entry = await get_collection_entry(session, entry_id)
    if entry is None:
        return False
    await session.delete(entry)
    return True


async def reset_collection(session: AsyncSession) -> int:
    """
    Delete every collection entry.

    Returns the number of deleted records.
    """
    result = await session.execute(delete(CollectionEntryDB))
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


# --- Tracker Operations ---


async def create_tracker(
    session: AsyncSession,
    name: str,
    set_code: str | None = None,
    track_foil: bool = False,
    track_non_foil: bool = True,
) -> TrackerDB:
    """Create a tracker without members."""
    tracker = TrackerDB(
        name=name,
        set_code=set_code or None,
        track_foil=track_foil,
        track_non_foil=track_non_foil,
        is_collecting=True,
        is_pinned=False,
        created_at=datetime.now(UTC),
    )
    session.add(tracker)
    await session.flush()
    return tracker


async def get_tracker(session: AsyncSession, tracker_id: int) -> TrackerDB | None:
    """Get a tracker by id."""
    return await session.get(TrackerDB, tracker_id)


async def list_trackers(session: AsyncSession, collecting_only: bool = False) -> list[TrackerDB]:
    """All trackers, pinned first, then oldest first."""
    stmt = select(TrackerDB).order_by(TrackerDB.is_pinned.desc(), TrackerDB.id)
    if collecting_only:
        stmt = stmt.where(TrackerDB.is_collecting.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_tracker(
    session: AsyncSession,
    tracker: TrackerDB,
    name: str | None = None,
    track_foil: bool | None = None,
    track_non_foil: bool | None = None,
    is_collecting: bool | None = None,
    is_pinned: bool | None = None,
) -> TrackerDB:
    """Apply the provided (non-None) changes to a tracker."""
    if name is not None:
        tracker.name = name
    if track_foil is not None:
        tracker.track_foil = track_foil
    if track_non_foil is not None:
        tracker.track_non_foil = track_non_foil
    if is_collecting is not None:
        tracker.is_collecting = is_collecting
    if is_pinned is not None:
        tracker.is_pinned = is_pinned
    await session.flush()
    return tracker


async def delete_tracker(session: AsyncSession, tracker_id: int) -> bool:
    """
    Delete a tracker and its memberships.

    Returns True if deleted, False if not found.
    """
    tracker = await get_tracker(session, tracker_id)
    if tracker is None:
        return False
    await session.delete(tracker)
    return True


async def add_set_cards_to_tracker(session: AsyncSession, tracker: TrackerDB, set_code: str) -> int:
    """
    Make every local card of a set a member of the tracker.

    Cards that are already members are skipped. Returns the number added.
    """
    existing = {member.card_id for member in await get_tracker_members(session, tracker.id)}
    added = 0
    for card in await get_cards_by_set(session, set_code):
        if card.id in existing:
            continue
        session.add(TrackerCardDB(tracker_id=tracker.id, card_id=card.id, is_excluded=False))
        added += 1
    await session.flush()
    return added


async def get_tracker_member(
    session: AsyncSession, tracker_id: int, card_id: int
) -> TrackerCardDB | None:
    """Membership row of one card in one tracker."""
    result = await session.execute(
        select(TrackerCardDB).where(
            TrackerCardDB.tracker_id == tracker_id,
            TrackerCardDB.card_id == card_id,
        )
    )
    return result.scalar_one_or_none()


async def add_tracker_card(session: AsyncSession, tracker_id: int, card_id: int) -> TrackerCardDB:
    """
    Add a card to a tracker.

    Raises ConflictError if the card is already a member.
    """
    if await get_tracker_member(session, tracker_id, card_id) is not None:
        raise ConflictError(
            "Card already in tracker",
            detail=f"tracker={tracker_id} card={card_id}",
        )

    member = TrackerCardDB(tracker_id=tracker_id, card_id=card_id, is_excluded=False)
    session.add(member)
    await session.flush()
    return member


async def remove_tracker_card(session: AsyncSession, tracker_id: int, card_id: int) -> bool:
    """
    Remove a card from a tracker.

    Returns True if removed, False if it was not a member.
    """
    member = await get_tracker_member(session, tracker_id, card_id)
    if member is None:
        return False
    await session.delete(member)
    return True


async def toggle_tracker_card_exclusion(
    session: AsyncSession, tracker_id: int, card_id: int
) -> TrackerCardDB | None:
    """Flip the exclusion flag of a membership. Returns None if not a member."""
    member = await get_tracker_member(session, tracker_id, card_id)
    if member is None:
        return None
    member.is_excluded = not member.is_excluded
    await session.flush()
    return member


async def get_tracker_members(session: AsyncSession, tracker_id: int) -> list[TrackerCardDB]:
    """Memberships of a tracker with their cards loaded."""
    result = await session.execute(
        select(TrackerCardDB)
        .where(TrackerCardDB.tracker_id == tracker_id)
        .options(selectinload(TrackerCardDB.card))
        .order_by(TrackerCardDB.id)
    )
    return list(result.scalars().all())


async def get_members_by_tracker(
    session: AsyncSession, tracker_ids: Sequence[int]
) -> dict[int, list[Member]]:
    """Members of several trackers, keyed by tracker id."""
    grouped: dict[int, list[Member]] = defaultdict(list)
    for chunk in _chunks(list(tracker_ids)):
        result = await session.execute(
            select(TrackerCardDB).where(TrackerCardDB.tracker_id.in_(chunk))
        )
        for row in result.scalars():
            grouped[row.tracker_id].append(
                Member(card_id=row.card_id, is_excluded=row.is_excluded)
            )
    return grouped


def tracker_to_info(tracker: TrackerDB) -> TrackerInfo:
    """Convert a database tracker to the fields completion math uses."""
    return TrackerInfo(
        id=tracker.id,
        name=tracker.name,
        set_code=tracker.set_code,
        track_foil=tracker.track_foil,
        track_non_foil=tracker.track_non_foil,
    )


def member_to_model(member: TrackerCardDB) -> Member:
    """Convert a loaded membership row (card included) to a domain member."""
    card = member.card
    return Member(
        card_id=member.card_id,
        is_excluded=member.is_excluded,
        name=card.name,
        set_code=card.set_code,
        set_name=card.set_name,
        collector_number=card.collector_number,
    )


# --- Sync Settings Operations ---


async def get_or_create_sync_settings(session: AsyncSession) -> SyncSettingsDB:
    """
    Get the singleton sync settings row, creating it with defaults if missing.
    """
    result = await session.execute(select(SyncSettingsDB).order_by(SyncSettingsDB.id).limit(1))
    sync_settings = result.scalar_one_or_none()
    if sync_settings is not None:
        return sync_settings

    sync_settings = SyncSettingsDB(
        card_sync_schedule="daily",
        price_sync_schedule="weekly",
        card_sync_recent_months=3,
        is_syncing=False,
    )
    session.add(sync_settings)
    await session.flush()
    return sync_settings


async def update_sync_schedule(
    session: AsyncSession,
    card_sync_schedule: str | None = None,
    price_sync_schedule: str | None = None,
    card_sync_recent_months: int | None = None,
) -> SyncSettingsDB:
    """Change the schedule fields. Status fields are left to the scheduler."""
    sync_settings = await get_or_create_sync_settings(session)
    if card_sync_schedule is not None:
        sync_settings.card_sync_schedule = card_sync_schedule
    if price_sync_schedule is not None:
        sync_settings.price_sync_schedule = price_sync_schedule
    if card_sync_recent_months is not None:
        sync_settings.card_sync_recent_months = card_sync_recent_months
    await session.flush()
    return sync_settings


async def clear_interrupted_sync(session: AsyncSession) -> bool:
    """
    Reset a syncing flag left behind by a process that died mid-sync.

    Only valid at startup, before any sync of this process has begun.

    Returns:
        True if a stale flag was cleared
    """
    sync_settings = await get_or_create_sync_settings(session)
    if not sync_settings.is_syncing:
        return False
    sync_settings.is_syncing = False
    sync_settings.sync_status = None
    await session.flush()
    return True


def sync_settings_to_status(sync_settings: SyncSettingsDB) -> SyncStatus:
    """Convert the settings row to a read-only status view."""
    return SyncStatus(
        is_syncing=sync_settings.is_syncing,
        sync_status=sync_settings.sync_status,
        last_card_sync=as_utc(sync_settings.last_card_sync),
        last_price_sync=as_utc(sync_settings.last_price_sync),
    )
