"""
Database CRUD operations.

Provides async functions for decks, zones and entries, plus the writer
that turns board effects into rows and the loader that rebuilds a
ZoneModel from storage.
"""

from collections.abc import Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from commandzone.config import DEFAULT_FORMAT, DEFAULT_ZONE_NAMES
from commandzone.models.card import CardSnapshot
from commandzone.models.db import DeckDB, EntryDB, ZoneDB
from commandzone.models.deck import Deck, Entry, Zone, new_id
from commandzone.models.mutations import CreateZone, DeleteEntry, Effect, InsertEntry, UpdateEntry
from commandzone.models.zone_model import ZoneModel

# --- Deck Operations ---


async def create_deck(
    session: AsyncSession,
    name: str,
    format_name: str = DEFAULT_FORMAT,
    deck_id: str | None = None,
) -> DeckDB:
    """
    Create a deck seeded with the default zones.

    Zones are created in DEFAULT_ZONE_NAMES order with display orders 0..n-1.
    """
    deck = DeckDB(id=deck_id or new_id(), name=name, format=format_name)
    session.add(deck)
    for order, zone_name in enumerate(DEFAULT_ZONE_NAMES):
        session.add(ZoneDB(id=new_id(), deck_id=deck.id, name=zone_name, order=order))
    await session.flush()
    # Load server-side timestamps
    await session.refresh(deck)
    return deck


async def get_deck(session: AsyncSession, deck_id: str) -> DeckDB | None:
    """Returns None if the deck does not exist."""
    result = await session.execute(select(DeckDB).where(DeckDB.id == deck_id))
    return result.scalar_one_or_none()


async def list_decks(session: AsyncSession, limit: int = 100) -> list[DeckDB]:
    """All decks, most recently created first."""
    result = await session.execute(
        select(DeckDB).order_by(DeckDB.created_at.desc(), DeckDB.name).limit(limit)
    )
    return list(result.scalars().all())


async def delete_deck(session: AsyncSession, deck_id: str) -> bool:
    """
    Delete a deck with all of its zones and entries.

    Returns True if deleted, False if not found.
    """
    deck = await get_deck(session, deck_id)
    if not deck:
        return False

    await session.execute(delete(EntryDB).where(EntryDB.deck_id == deck_id))
    await session.execute(delete(ZoneDB).where(ZoneDB.deck_id == deck_id))
    await session.execute(delete(DeckDB).where(DeckDB.id == deck_id))
    return True


def deck_to_model(deck: DeckDB) -> Deck:
    """Convert a database deck to a domain model."""
    return Deck(
        id=deck.id,
        name=deck.name,
        format=deck.format,
        created_at=deck.created_at,
        updated_at=deck.updated_at,
    )


# --- Zone Operations ---


async def list_zones(session: AsyncSession, deck_id: str) -> list[ZoneDB]:
    """Zones of a deck in display order."""
    result = await session.execute(
        select(ZoneDB).where(ZoneDB.deck_id == deck_id).order_by(ZoneDB.order)
    )
    return list(result.scalars().all())


async def create_zone(
    session: AsyncSession, deck_id: str, name: str, zone_id: str | None = None
) -> ZoneDB:
    """Append a zone after the deck's last one."""
    result = await session.execute(
        select(func.max(ZoneDB.order)).where(ZoneDB.deck_id == deck_id)
    )
    last_order = result.scalar_one_or_none()
    zone = ZoneDB(
        id=zone_id or new_id(),
        deck_id=deck_id,
        name=name,
        order=0 if last_order is None else last_order + 1,
    )
    session.add(zone)
    await session.flush()
    return zone


def zone_to_model(zone: ZoneDB) -> Zone:
    return Zone(id=zone.id, deck_id=zone.deck_id, name=zone.name, order=zone.order)


# --- Entry Operations ---


async def list_entries(session: AsyncSession, deck_id: str) -> list[EntryDB]:
    """Entries of a deck ordered by zone display order, then position."""
    result = await session.execute(
        select(EntryDB)
        .join(ZoneDB, EntryDB.zone_id == ZoneDB.id)
        .where(EntryDB.deck_id == deck_id)
        .order_by(ZoneDB.order, EntryDB.position)
    )
    return list(result.scalars().all())


def entry_to_model(entry: EntryDB) -> Entry:
    return Entry(
        id=entry.id,
        deck_id=entry.deck_id,
        zone_id=entry.zone_id,
        qty=entry.qty,
        position=entry.position,
        card=CardSnapshot.from_dict(entry.card or {}),
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


async def load_zone_model(session: AsyncSession, deck_id: str) -> ZoneModel | None:
    """
    Rebuild a deck's board from storage.

    Returns None if the deck does not exist.
    """
    if await get_deck(session, deck_id) is None:
        return None
    zones = [zone_to_model(z) for z in await list_zones(session, deck_id)]
    entries = [entry_to_model(e) for e in await list_entries(session, deck_id)]
    return ZoneModel.build(deck_id, zones, entries)


async def apply_effects(session: AsyncSession, deck_id: str, effects: Iterable[Effect]) -> int:
    """
    Write board effects in order and touch the deck's updated_at.

    The caller owns the transaction; either every effect lands or none does.

    Returns:
        Number of effects written

    Raises:
        NoResultFound: If an update targets an entry that no longer exists
    """
    count = 0
    for effect in effects:
        if isinstance(effect, CreateZone):
            zone = effect.zone
            session.add(ZoneDB(id=zone.id, deck_id=deck_id, name=zone.name, order=zone.order))
        elif isinstance(effect, InsertEntry):
            entry = effect.entry
            session.add(
                EntryDB(
                    id=entry.id,
                    deck_id=deck_id,
                    zone_id=entry.zone_id,
                    qty=entry.qty,
                    position=entry.position,
                    card=entry.card.to_dict(),
                )
            )
        elif isinstance(effect, UpdateEntry):
            entry = effect.entry
            row = await session.get(EntryDB, entry.id)
            if row is None or row.deck_id != deck_id:
                raise NoResultFound(f"Entry {entry.id} not found in deck {deck_id}")
            row.zone_id = entry.zone_id
            row.qty = entry.qty
            row.position = entry.position
            row.card = entry.card.to_dict()
        elif isinstance(effect, DeleteEntry):
            await session.execute(
                delete(EntryDB).where(EntryDB.id == effect.entry_id, EntryDB.deck_id == deck_id)
            )
        else:
            raise TypeError(f"Unsupported effect: {type(effect).__name__}")
        # Keep write order so zone rows exist before entries reference them
        await session.flush()
        count += 1

    if count:
        await session.execute(
            update(DeckDB)
            .where(DeckDB.id == deck_id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
    return count
