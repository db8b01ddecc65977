"""
Spots services.

Catalog access, reconciliation into the local store, and progress math.
"""

from spots.services.catalog_client import CatalogClient, parse_card, parse_set
from spots.services.progress import (
    dashboard_totals,
    latest_prices,
    member_statuses,
    missing_cards_export,
    near_complete,
    percentage,
    top_valuable,
    tracker_progress,
)
from spots.services.rate_limiter import RateLimiter
from spots.services.reconciliation import (
    ImportResult,
    Reconciler,
    SyncReport,
    parse_price,
    select_recent_sets,
)

__all__ = [
    "CatalogClient",
    "ImportResult",
    "RateLimiter",
    "Reconciler",
    "SyncReport",
    "dashboard_totals",
    "latest_prices",
    "member_statuses",
    "missing_cards_export",
    "near_complete",
    "parse_card",
    "parse_price",
    "parse_set",
    "percentage",
    "select_recent_sets",
    "top_valuable",
    "tracker_progress",
]
