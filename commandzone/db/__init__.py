from commandzone.db.database import get_session, init_db
from commandzone.db.operations import (
    apply_effects,
    create_deck,
    create_zone,
    deck_to_model,
    delete_deck,
    entry_to_model,
    get_deck,
    list_decks,
    list_entries,
    list_zones,
    load_zone_model,
    zone_to_model,
)

__all__ = [
    "apply_effects",
    "create_deck",
    "create_zone",
    "deck_to_model",
    "delete_deck",
    "entry_to_model",
    "get_deck",
    "get_session",
    "init_db",
    "list_decks",
    "list_entries",
    "list_zones",
    "load_zone_model",
    "zone_to_model",
]
