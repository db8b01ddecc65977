from spots.api.cards import router as cards_router
from spots.api.collection import router as collection_router
from spots.api.dashboard import router as dashboard_router
from spots.api.health import router as health_router
from spots.api.sets import router as sets_router
from spots.api.sync import router as sync_router
from spots.api.trackers import router as trackers_router

__all__ = [
    "cards_router",
    "collection_router",
    "dashboard_router",
    "health_router",
    "sets_router",
    "sync_router",
    "trackers_router",
]
