from commandzone.api.cards import router as cards_router
from commandzone.api.decks import router as decks_router
from commandzone.api.health import router as health_router

__all__ = [
    "cards_router",
    "decks_router",
    "health_router",
]
