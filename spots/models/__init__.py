from spots.models.catalog import CardPrices, CatalogCard, CatalogSet, ImageUris, SearchResult
from spots.models.failure import (
    ConflictError,
    FailureDetail,
    FailureKind,
    InvalidInputError,
    KnownError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
)
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
from spots.models.sync import SyncSchedule, SyncStatus, is_sync_due

__all__ = [
    "CardInfo",
    "CardPrices",
    "CatalogCard",
    "CatalogSet",
    "ConflictError",
    "DashboardTotals",
    "FailureDetail",
    "FailureKind",
    "ImageUris",
    "InvalidInputError",
    "KnownError",
    "Member",
    "MemberStatus",
    "NearCompleteItem",
    "NotFoundError",
    "OwnedCopy",
    "PricePoint",
    "SearchResult",
    "ServiceUnavailableError",
    "SyncSchedule",
    "SyncStatus",
    "TrackerInfo",
    "TrackerProgress",
    "UpstreamError",
    "ValuableCard",
    "is_sync_due",
]
