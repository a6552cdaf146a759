"""
DeckSession: the live, optimistically updated board of one deck.

A session holds two boards:

- `model`: what the user sees. Every allowed mutation is installed here
  immediately, before it is saved.
- the confirmed board: what the store is known to hold.

Writes are committed one at a time in the order the mutations were made.
Each write is recomputed against the confirmed board, so effects are
always relative to what is really stored. When a write fails the mutation
is dropped and `model` is rebuilt as confirmed board + still-pending
mutations, which reverts exactly the failed change.

Reloads (explicit, or triggered by a remote change notification) never
overwrite local work: a reload is deferred while mutations are in flight,
and a loaded snapshot is discarded if a mutation started while it was
being fetched. Deferred reloads run once the pending writes drain.
"""

import asyncio
import logging
from collections.abc import Callable

from commandzone.db.store import DeckStore
from commandzone.models.card import CardSnapshot
from commandzone.models.deck import new_id
from commandzone.models.failure import (
    FailureKind,
    InvariantViolation,
    KnownError,
    PersistenceFailure,
    ValidationDenied,
)
from commandzone.models.mutations import (
    AddCard,
    ChangeQuantity,
    CreateZone,
    DeleteEntry,
    Effect,
    MoveEntry,
    Mutation,
    RemoveEntry,
    ReplaceSnapshot,
    SetCommander,
    SetTags,
)
from commandzone.models.zone_model import ZoneModel
from commandzone.parsers.decklist import build_decklist_text
from commandzone.services.catalog import CardCatalog, refresh_snapshot
from commandzone.services.deck_import import ImportLineError, ImportResult, import_decklist
from commandzone.services.deck_stats import DeckStats, compute_deck_stats
from commandzone.services.legality import DeckAudit, audit_deck
from commandzone.services.reorder import drop_index
from commandzone.services.transitions import (
    CommanderPolicy,
    Transition,
    apply_mutation,
    placement_zone,
)

logger = logging.getLogger(__name__)


def deck_not_found(deck_id: str) -> KnownError:
    return KnownError(
        kind=FailureKind.NOT_FOUND,
        message=f"Deck {deck_id} not found.",
        status_code=404,
    )


class DeckSession:
    """
    Optimistic driver for one deck's board.

    Args:
        store: Persistence collaborator
        model: Board as last loaded from the store
        policy: Commander replacement policy (None: from settings)
        fallback_zone_name: Zone receiving displaced commanders (None: from settings)
    """

    def __init__(
        self,
        store: DeckStore,
        model: ZoneModel,
        *,
        policy: CommanderPolicy | None = None,
        fallback_zone_name: str | None = None,
    ):
        self.store = store
        self.deck_id = model.deck_id
        self.session_id = new_id()
        self.model = model
        self.version = 0
        self._policy = policy
        self._fallback_zone_name = fallback_zone_name
        self._confirmed = model
        self._pending: dict[int, Mutation] = {}
        self._touched: dict[str, int] = {}
        self._write_lock = asyncio.Lock()
        self._reload_requested = False
        self._unsubscribe: Callable[[], None] | None = None

    @classmethod
    async def open(
        cls,
        store: DeckStore,
        deck_id: str,
        *,
        subscribe: bool = True,
        policy: CommanderPolicy | None = None,
        fallback_zone_name: str | None = None,
    ) -> "DeckSession":
        """
        Load a deck and start a session on it.

        Raises:
            KnownError: NOT_FOUND if the deck does not exist
        """
        model = await store.load(deck_id)
        if model is None:
            raise deck_not_found(deck_id)
        session = cls(store, model, policy=policy, fallback_zone_name=fallback_zone_name)
        if subscribe:
            session._unsubscribe = store.subscribe(deck_id, session._on_change)
        return session

    def close(self) -> None:
        """Stop listening for remote changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # --- Mutation pipeline ---

    def _transition(self, model: ZoneModel, mutation: Mutation) -> Transition:
        return apply_mutation(
            model, mutation, policy=self._policy, fallback_zone_name=self._fallback_zone_name
        )

    def _touch(self, effects: list[Effect], version: int) -> None:
        for effect in effects:
            if isinstance(effect, CreateZone):
                continue
            if isinstance(effect, DeleteEntry):
                self._touched[effect.entry_id] = version
            else:
                self._touched[effect.entry.id] = version

    def _rebuild(self) -> None:
        """Recompute the visible board from the confirmed one plus pending mutations."""
        model = self._confirmed
        for mutation in self._pending.values():
            try:
                model = self._transition(model, mutation).model
            except (ValidationDenied, InvariantViolation) as e:
                # The mutation depended on a reverted one; its own write will fail too
                logger.info(
                    "Deck %s: pending %s no longer applies: %s",
                    self.deck_id,
                    type(mutation).__name__,
                    e,
                )
        self.model = model

    async def apply(self, mutation: Mutation) -> ZoneModel:
        """
        Apply a mutation optimistically and save it.

        Returns:
            The visible board after the mutation

        Raises:
            ValidationDenied: If a legality rule refuses the mutation (nothing changes)
            PersistenceFailure: If the write failed (the change has been reverted)
        """
        transition = self._transition(self.model, mutation)

        self.version += 1
        version = self.version
        self._pending[version] = mutation
        self.model = transition.model
        self._touch(transition.effects, version)

        try:
            async with self._write_lock:
                await self._commit(mutation)
        except BaseException:
            # Cancellation reverts the mutation too
            if self._pending.pop(version, None) is not None:
                logger.warning(
                    "Deck %s: reverting unsaved %s", self.deck_id, type(mutation).__name__
                )
                self._rebuild()
            raise
        self._pending.pop(version, None)

        if not self._pending and self._reload_requested:
            await self.reload()
        return self.model

    async def _commit(self, mutation: Mutation) -> None:
        committed = self._transition(self._confirmed, mutation)

        try:
            await self.store.commit(self.deck_id, committed.effects, origin=self.session_id)
        except KnownError:
            raise
        except Exception as e:
            logger.error(
                "Deck %s: saving %s failed: %s", self.deck_id, type(mutation).__name__, e
            )
            raise PersistenceFailure(detail=str(e)) from e

        self._confirmed = committed.model

    # --- Reload ---

    async def reload(self) -> bool:
        """
        Replace the board with the stored one.

        Returns:
            True if the stored board was installed, False if the reload was
            deferred or its result discarded because of local mutations

        Raises:
            KnownError: NOT_FOUND if the deck was deleted
        """
        if self._pending:
            self._reload_requested = True
            return False

        started_at = self.version
        fresh = await self.store.load(self.deck_id)
        if fresh is None:
            raise deck_not_found(self.deck_id)

        if self.version != started_at or self._pending:
            logger.info("Deck %s: discarding stale reload", self.deck_id)
            self._reload_requested = True
            return False

        self._confirmed = fresh
        self.model = fresh
        self._reload_requested = False
        return True

    async def _on_change(self, deck_id: str, origin: str | None) -> None:
        if origin == self.session_id:
            return
        logger.debug("Deck %s changed remotely, reloading", deck_id)
        await self.reload()

    # --- Board actions ---

    async def add_card(
        self, card: CardSnapshot, zone_id: str | None = None, qty: int = 1
    ) -> ZoneModel:
        """Add a card to a zone, or to its default zone when none is given."""
        if zone_id is None:
            zone_id = placement_zone(self.model, card).id
        return await self.apply(AddCard(card=card, zone_id=zone_id, qty=qty))

    async def set_commander(self, card: CardSnapshot) -> ZoneModel:
        return await self.apply(SetCommander(card=card))

    async def increment(self, entry_id: str) -> ZoneModel:
        return await self.apply(ChangeQuantity(entry_id=entry_id, delta=1))

    async def decrement(self, entry_id: str) -> ZoneModel:
        return await self.apply(ChangeQuantity(entry_id=entry_id, delta=-1))

    async def remove(self, entry_id: str) -> ZoneModel:
        return await self.apply(RemoveEntry(entry_id=entry_id))

    async def move(
        self,
        entry_id: str,
        to_zone_id: str,
        *,
        index: int | None = None,
        over_entry_id: str | None = None,
    ) -> ZoneModel:
        """
        Drag an entry into a zone.

        The drop position is `index`, or the index of `over_entry_id` in the
        destination; with neither the entry goes to the end.
        """
        if index is None and over_entry_id is not None:
            index = drop_index(self.model.lists(), to_zone_id, over_entry_id)
        return await self.apply(MoveEntry(entry_id=entry_id, to_zone_id=to_zone_id, index=index))

    async def set_tags(self, entry_id: str, tags: frozenset[str]) -> ZoneModel:
        return await self.apply(SetTags(entry_id=entry_id, tags=frozenset(tags)))

    # --- Read-only views ---

    def stats(self) -> DeckStats:
        return compute_deck_stats(self.model.entries)

    def audit(self) -> DeckAudit:
        return audit_deck(self.model)

    def export_text(self) -> str:
        return build_decklist_text(self.model.entries)

    # --- Catalog-backed actions ---

    async def import_text(self, text: str, catalog: CardCatalog) -> ImportResult:
        """
        Import a decklist, saving each accepted line.

        Lines rejected while planning, or refused when applied, are reported
        in the result's errors.
        """
        plan = await import_decklist(self.model, text, catalog)
        result = ImportResult(model=self.model, errors=list(plan.errors))
        for mutation in plan.mutations:
            try:
                result.model = await self.apply(mutation)
            except ValidationDenied as e:
                result.errors.append(
                    ImportLineError(0, mutation.card.name, mutation.qty, e.kind, e.message)
                )
                continue
            result.mutations.append(mutation)
        return result

    async def refresh_entry(self, entry_id: str, catalog: CardCatalog) -> bool:
        """
        Re-fetch one entry's card from the catalog.

        The fresh snapshot is only applied if the entry was not changed
        locally while the fetch was running.

        Returns:
            True if a new snapshot was saved
        """
        entry = self.model.entry(entry_id)
        started_at = self.version

        card = await refresh_snapshot(catalog, entry)
        if card is entry.card or card == entry.card:
            return False

        if self.model.find_entry(entry_id) is None or self._touched.get(entry_id, 0) > started_at:
            logger.info("Deck %s: dropping stale refresh of %s", self.deck_id, entry.name)
            return False

        await self.apply(ReplaceSnapshot(entry_id=entry_id, card=card))
        return True

    async def refresh_all(self, catalog: CardCatalog) -> int:
        """Refresh every entry's snapshot. Returns how many changed."""
        refreshed = 0
        for entry in list(self.model.entries):
            if self.model.find_entry(entry.id) is None:
                continue
            if await self.refresh_entry(entry.id, catalog):
                refreshed += 1
        logger.info(
            "Deck %s: refreshed %d of %d snapshots",
            self.deck_id,
            refreshed,
            len(self.model.entries),
        )
        return refreshed
