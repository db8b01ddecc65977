"""
Shared API dependencies.

The catalog client, reconciler and scheduler are created once in the
application lifespan and kept on app.state. Tests override these
dependencies instead of running the lifespan.
"""

from fastapi import Request

from spots.jobs.sync_scheduler import SyncScheduler
from spots.models.failure import ServiceUnavailableError, UpstreamError
from spots.services.catalog_client import CatalogClient
from spots.services.reconciliation import ImportResult, Reconciler


def get_catalog_client(request: Request) -> CatalogClient:
    """The process-wide catalog client."""
    client: CatalogClient | None = getattr(request.app.state, "catalog_client", None)
    if client is None:
        raise ServiceUnavailableError("Catalog client is not initialized")
    return client


def get_reconciler(request: Request) -> Reconciler:
    """The process-wide reconciler."""
    reconciler: Reconciler | None = getattr(request.app.state, "reconciler", None)
    if reconciler is None:
        raise ServiceUnavailableError("Catalog sync is not initialized")
    return reconciler


def get_scheduler(request: Request) -> SyncScheduler:
    """The background sync scheduler, if it is running."""
    scheduler: SyncScheduler | None = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise ServiceUnavailableError(
            "Background sync is disabled",
            suggestion="Set SYNC_ENABLED=true and restart, or import sets manually.",
        )
    return scheduler


async def import_set_or_fail(reconciler: Reconciler, set_code: str) -> ImportResult:
    """
    Import a set on behalf of a request.

    Raises:
        UpstreamError: If no card of the set could be fetched at all
    """
    result = await reconciler.import_set(set_code)
    if result.failed:
        raise UpstreamError(f"Could not fetch cards for set {set_code}")
    return result
