"""
Job to refresh stored card snapshots from the catalog.

Snapshots are captured when a card is added and never change on their
own; prices and rules text drift. This job re-fetches every entry of the
given decks (or of every deck) and saves the fresh snapshots, keeping
user tags. Cards the catalog cannot answer for keep their stored data.
"""

import argparse
import asyncio
import logging

import httpx

from commandzone.config import settings
from commandzone.db.database import async_session_factory
from commandzone.db.operations import list_decks
from commandzone.db.store import DeckStore, SqlDeckStore
from commandzone.models.failure import KnownError
from commandzone.services.catalog import CardCatalog, ScryfallCatalog
from commandzone.services.deck_session import DeckSession

logger = logging.getLogger(__name__)


async def refresh_deck(store: DeckStore, deck_id: str, catalog: CardCatalog) -> int:
    """
    Refresh every snapshot of one deck.

    Returns:
        Number of entries whose snapshot changed
    """
    logger.info("Refreshing snapshots for deck %s...", deck_id)
    session = await DeckSession.open(store, deck_id, subscribe=False)
    return await session.refresh_all(catalog)


async def run_refresh(deck_ids: list[str] | None = None) -> dict[str, int]:
    """
    Refresh snapshots for the given decks, or for every deck when None.

    A deck that fails is logged and reported with -1; the others still run.

    Returns:
        Dict mapping deck id to number of refreshed entries
    """
    store = SqlDeckStore(async_session_factory)

    if deck_ids is None:
        async with async_session_factory() as session:
            deck_ids = [deck.id for deck in await list_decks(session, limit=10_000)]

    results: dict[str, int] = {}

    async with httpx.AsyncClient(
        headers={"User-Agent": settings.scryfall_user_agent, "Accept": "application/json"},
        timeout=settings.catalog_timeout_seconds,
        follow_redirects=True,
    ) as client:
        catalog = ScryfallCatalog(client=client)
        for deck_id in deck_ids:
            try:
                results[deck_id] = await refresh_deck(store, deck_id, catalog)
            except KnownError as e:
                logger.error("Error refreshing deck %s: %s", deck_id, e.message)
                results[deck_id] = -1

    total = sum(count for count in results.values() if count > 0)
    logger.info("Snapshot refresh complete. Total entries refreshed: %d", total)
    return results


def main() -> None:
    """CLI entry point for refreshing card snapshots."""
    parser = argparse.ArgumentParser(description="Refresh stored card snapshots from Scryfall")
    parser.add_argument(
        "--deck",
        dest="deck_ids",
        action="append",
        help="Deck id to refresh (repeatable; default: every deck)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_refresh(args.deck_ids))


if __name__ == "__main__":
    main()
