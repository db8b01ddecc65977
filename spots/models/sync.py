from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum


class SyncSchedule(str, Enum):
    """How often a kind of catalog data is refreshed."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MANUAL = "manual"


SYNC_PERIODS: dict[SyncSchedule, timedelta] = {
    SyncSchedule.DAILY: timedelta(days=1),
    SyncSchedule.WEEKLY: timedelta(days=7),
}


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def is_sync_due(schedule: str, last_sync: datetime | None, now: datetime | None = None) -> bool:
    """
    Decide whether a sync kind should run.

    Manual schedules are never due. Otherwise a sync is due when it has
    never run, or when more than one period has elapsed since it last did.
    Unknown schedule names are treated as manual.
    """
    try:
        parsed = SyncSchedule(schedule)
    except ValueError:
        return False

    if parsed is SyncSchedule.MANUAL:
        return False
    if last_sync is None:
        return True

    now = now or datetime.now(UTC)
    return now - as_utc(last_sync) > SYNC_PERIODS[parsed]  # type: ignore[operator]


@dataclass(frozen=True, slots=True)
class SyncStatus:
    """Read-only view of the sync state for status callers."""

    is_syncing: bool
    sync_status: str | None
    last_card_sync: datetime | None
    last_price_sync: datetime | None
