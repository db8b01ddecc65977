from spots.db.database import async_session_factory, get_session, init_db
from spots.db.operations import (
    add_collection_entry,
    add_set_cards_to_tracker,
    add_tracker_card,
    clear_interrupted_sync,
    create_tracker,
    delete_collection_entry,
    delete_tracker,
    get_card,
    get_card_by_scryfall_id,
    get_card_entries,
    get_cards_by_set,
    get_collection_entry,
    get_collection_groups,
    get_distinct_set_codes,
    get_latest_price,
    get_or_create_sync_settings,
    get_tracker,
    get_tracker_member,
    get_tracker_members,
    list_trackers,
    remove_tracker_card,
    reset_collection,
    sync_settings_to_status,
    toggle_tracker_card_exclusion,
    update_collection_entry,
    update_sync_schedule,
    update_tracker,
    upsert_card,
    upsert_latest_price,
)

__all__ = [
    "add_collection_entry",
    "add_set_cards_to_tracker",
    "add_tracker_card",
    "async_session_factory",
    "clear_interrupted_sync",
    "create_tracker",
    "delete_collection_entry",
    "delete_tracker",
    "get_card",
    "get_card_by_scryfall_id",
    "get_card_entries",
    "get_cards_by_set",
    "get_collection_entry",
    "get_collection_groups",
    "get_distinct_set_codes",
    "get_latest_price",
    "get_or_create_sync_settings",
    "get_session",
    "get_tracker",
    "get_tracker_member",
    "get_tracker_members",
    "init_db",
    "list_trackers",
    "remove_tracker_card",
    "reset_collection",
    "sync_settings_to_status",
    "toggle_tracker_card_exclusion",
    "update_collection_entry",
    "update_sync_schedule",
    "update_tracker",
    "upsert_card",
    "upsert_latest_price",
]
