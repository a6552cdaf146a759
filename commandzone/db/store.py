"""
Deck store: the persistence collaborator seen by deck sessions.

A store loads a deck's board, commits batches of effects atomically and
tells subscribers when a deck changed. SqlDeckStore is the SQLAlchemy
implementation; ChangeFeed is the in-process notification channel it
publishes to after every committed write.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from commandzone.db.operations import apply_effects, load_zone_model
from commandzone.models.failure import PersistenceFailure
from commandzone.models.mutations import Effect
from commandzone.models.zone_model import ZoneModel

logger = logging.getLogger(__name__)

# listener(deck_id, origin): origin identifies the writer, None when unknown
ChangeListener = Callable[[str, str | None], Awaitable[None]]


class DeckStore(Protocol):
    """Persistence operations a deck session needs."""

    async def load(self, deck_id: str) -> ZoneModel | None: ...

    async def commit(
        self, deck_id: str, effects: Sequence[Effect], origin: str | None = None
    ) -> None: ...

    def subscribe(self, deck_id: str, listener: ChangeListener) -> Callable[[], None]: ...


class ChangeFeed:
    """Per-deck change notifications within one process."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeListener]] = defaultdict(list)

    def subscribe(self, deck_id: str, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners[deck_id].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(deck_id, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(deck_id, None)

        return unsubscribe

    def listener_count(self, deck_id: str) -> int:
        return len(self._listeners.get(deck_id, ()))

    async def notify(self, deck_id: str, origin: str | None = None) -> None:
        """Call every listener of a deck. A failing listener does not stop the others."""
        for listener in list(self._listeners.get(deck_id, ())):
            try:
                await listener(deck_id, origin)
            except Exception as e:
                logger.error("Change listener for deck %s failed: %s", deck_id, e)


class SqlDeckStore:
    """
    DeckStore backed by the SQLAlchemy async session factory.

    Each commit runs in its own transaction. Database and connection errors roll back and
    surface as PersistenceFailure.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed | None = None,
    ):
        self.session_factory = session_factory
        self.feed = feed or ChangeFeed()

    async def load(self, deck_id: str) -> ZoneModel | None:
        try:
            async with self.session_factory() as session:
                return await load_zone_model(session, deck_id)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Loading deck %s failed: %s", deck_id, e)
            raise PersistenceFailure(detail=str(e)) from e

    async def commit(
        self, deck_id: str, effects: Sequence[Effect], origin: str | None = None
    ) -> None:
        if not effects:
            return
        async with self.session_factory() as session:
            try:
                await apply_effects(session, deck_id, effects)
                await session.commit()
            except (SQLAlchemyError, OSError) as e:
                await session.rollback()
                logger.error("Saving %d changes to deck %s failed: %s", len(effects), deck_id, e)
                raise PersistenceFailure(detail=str(e)) from e
        await self.feed.notify(deck_id, origin)

    def subscribe(self, deck_id: str, listener: ChangeListener) -> Callable[[], None]:
        return self.feed.subscribe(deck_id, listener)
