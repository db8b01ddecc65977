from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "Spots"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./spots.db"

    catalog_base_url: str = "https://api.scryfall.com/"
    catalog_user_agent: str = "Spots/1.0"
    catalog_timeout: float = 30.0

    # Minimum spacing between two outbound catalog requests (Scryfall asks for 50-100ms)
    catalog_min_interval_ms: int = 75

    # Background sync loop
    sync_enabled: bool = True
    sync_poll_interval_seconds: float = 3600.0
    sync_error_cooldown_seconds: float = 300.0


settings = Settings()


# =============================================================================
# CATALOG SYNC CONSTANTS
# =============================================================================

# Set types picked up by the "recent sets" card sync
RECENT_SYNC_SET_TYPES = frozenset({"core", "expansion", "draft_innovation", "masters", "commander"})

# Set types listed by the set browser (recent sync types plus un-sets)
BROWSABLE_SET_TYPES = RECENT_SYNC_SET_TYPES | {"funny"}

DEFAULT_RECENT_MONTHS = 3

# Dashboard ranking sizes
NEAR_COMPLETE_LIMIT = 10
TOP_VALUABLE_LIMIT = 10
