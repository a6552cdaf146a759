"""
Card catalog client (Scryfall).

Wraps the Scryfall REST API behind a small async interface: search,
named lookup and lookup by id. Results come back as CardSnapshot values.

A 404 from the catalog means "no such card" and yields an empty result.
Every other transport or HTTP failure raises CatalogLookupFailure; callers
treat that as non-fatal and keep using stored snapshots.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, Protocol

import httpx

from commandzone.config import settings
from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry
from commandzone.models.failure import CatalogLookupFailure

logger = logging.getLogger(__name__)


class CardCatalog(Protocol):
    """Read-only card lookup service."""

    async def search(self, query: str) -> list[CardSnapshot]: ...

    async def named(self, name: str, fuzzy: bool = False) -> CardSnapshot | None: ...

    async def get(self, card_id: str) -> CardSnapshot | None: ...


def build_search_query(query: str) -> str:
    """Restrict a search to paper printings unless the query picks a game itself."""
    query = query.strip()
    if "game:" in query.lower():
        return query
    return f"{query} game:paper"


class ScryfallCatalog:
    """
    CardCatalog backed by the Scryfall API.

    Args:
        base_url: API root (defaults to settings.scryfall_api_url)
        client: Shared httpx client; when omitted a client is opened per request
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.scryfall_api_url).rstrip("/")
        self._client = client
        self._timeout = timeout if timeout is not None else settings.catalog_timeout_seconds

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            headers={"User-Agent": settings.scryfall_user_agent, "Accept": "application/json"},
            timeout=self._timeout,
            follow_redirects=True,
        ) as client:
            yield client

    async def _get_json(
        self, path: str, params: dict[str, str] | None = None
    ) -> dict[str, Any] | None:
        """GET a catalog resource. Returns None on 404."""
        url = f"{self.base_url}{path}"
        try:
            async with self._session() as client:
                response = await client.get(url, params=params)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                data: dict[str, Any] = response.json()
                return data
        except httpx.HTTPError as e:
            logger.warning("Catalog request %s failed: %s", path, e)
            raise CatalogLookupFailure(detail=str(e)) from e
        except ValueError as e:
            logger.warning("Catalog request %s returned invalid JSON: %s", path, e)
            raise CatalogLookupFailure(detail="Invalid catalog response") from e

    async def search(self, query: str) -> list[CardSnapshot]:
        """
        Full-text catalog search (first page of results).

        Returns:
            Matching cards ordered by name; empty when nothing matches
        """
        if not query or not query.strip():
            return []
        data = await self._get_json(
            "/cards/search",
            {"q": build_search_query(query), "unique": "cards", "order": "name"},
        )
        if data is None:
            return []
        return [CardSnapshot.from_scryfall(card) for card in data.get("data", [])]

    async def named(self, name: str, fuzzy: bool = False) -> CardSnapshot | None:
        """Look up one card by exact (or fuzzy) name."""
        if not name or not name.strip():
            return None
        data = await self._get_json("/cards/named", {"fuzzy" if fuzzy else "exact": name.strip()})
        return CardSnapshot.from_scryfall(data) if data else None

    async def get(self, card_id: str) -> CardSnapshot | None:
        """Look up one card by catalog id."""
        if not card_id:
            return None
        data = await self._get_json(f"/cards/{card_id}")
        return CardSnapshot.from_scryfall(data) if data else None


async def resolve_card(catalog: CardCatalog, name: str) -> CardSnapshot | None:
    """Exact name lookup, falling back to fuzzy matching."""
    card = await catalog.named(name)
    if card is None:
        card = await catalog.named(name, fuzzy=True)
    return card


async def refresh_snapshot(catalog: CardCatalog, entry: Entry) -> CardSnapshot:
    """
    Re-fetch an entry's card, keeping the user's tags.

    Falls back to the stored snapshot when the card is gone from the
    catalog or the catalog cannot be reached.
    """
    try:
        if entry.card.id:
            fresh = await catalog.get(entry.card.id)
        else:
            fresh = await catalog.named(entry.name)
    except CatalogLookupFailure as e:
        logger.warning("Keeping stored snapshot for %s: %s", entry.name, e.detail)
        return entry.card

    if fresh is None:
        logger.warning("Card %s no longer found in catalog, keeping stored snapshot", entry.name)
        return entry.card
    return replace(fresh, tags=entry.card.tags)
