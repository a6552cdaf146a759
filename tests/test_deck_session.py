"""Tests for the optimistic deck session."""

import asyncio
from collections.abc import Sequence
from dataclasses import replace

import pytest
from conftest import DECK_ID, FakeCatalog, build_card, zone_id

from commandzone.db.store import ChangeFeed
from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry
from commandzone.models.failure import (
    FailureKind,
    KnownError,
    PersistenceFailure,
    ValidationDenied,
)
from commandzone.models.mutations import CreateZone, DeleteEntry, Effect
from commandzone.models.zone_model import ZoneModel
from commandzone.services.deck_session import DeckSession
from commandzone.services.transitions import CommanderPolicy

ARTIFACTS = zone_id("Artifacts")
LANDS = zone_id("Lands")


class FakeStore:
    """
    In-memory DeckStore.

    `commit_gate` and `load_gate` hold writes and loads until set.
    Commits containing a card named in `fail_names` raise PersistenceFailure.
    When `error` is set every commit raises it instead.
    """

    def __init__(self, model: ZoneModel | None):
        self.model = model
        self.feed = ChangeFeed()
        self.commit_gate = asyncio.Event()
        self.commit_gate.set()
        self.load_gate = asyncio.Event()
        self.load_gate.set()
        self.fail_names: set[str] = set()
        self.error: BaseException | None = None
        self.commits: list[list[Effect]] = []
        self.loads = 0

    async def load(self, deck_id: str) -> ZoneModel | None:
        self.loads += 1
        await self.load_gate.wait()
        return self.model

    async def commit(
        self, deck_id: str, effects: Sequence[Effect], origin: str | None = None
    ) -> None:
        await self.commit_gate.wait()
        if self.error is not None:
            raise self.error
        for effect in effects:
            entry = getattr(effect, "entry", None)
            if entry is not None and entry.name in self.fail_names:
                raise PersistenceFailure(detail="disk full")
        self.model = self.write(self.model, effects)
        self.commits.append(list(effects))
        await self.feed.notify(deck_id, origin)

    def subscribe(self, deck_id, listener):
        return self.feed.subscribe(deck_id, listener)

    @staticmethod
    def write(model: ZoneModel, effects: Sequence[Effect]) -> ZoneModel:
        for effect in effects:
            if isinstance(effect, CreateZone):
                model = model.with_zone(effect.zone)
            elif isinstance(effect, DeleteEntry):
                model = model.with_entries([], removed={effect.entry_id})
            else:
                model = model.with_entries([effect.entry])
        return model


class GatedCatalog(FakeCatalog):
    """Catalog whose lookups wait until `gate` is set."""

    def __init__(self, cards):
        super().__init__(cards)
        self.gate = asyncio.Event()

    async def get(self, card_id: str) -> CardSnapshot | None:
        await self.gate.wait()
        return await super().get(card_id)


@pytest.fixture
def store(empty_board: ZoneModel) -> FakeStore:
    return FakeStore(empty_board)


@pytest.fixture
async def session(store: FakeStore) -> DeckSession:
    session = await DeckSession.open(store, DECK_ID, policy=CommanderPolicy.DISPLACE)
    yield session
    session.close()


async def settle() -> None:
    """Let started tasks run up to their next blocking await."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestOpen:
    async def test_missing_deck(self) -> None:
        with pytest.raises(KnownError) as exc_info:
            await DeckSession.open(FakeStore(None), "nope")
        assert exc_info.value.kind is FailureKind.NOT_FOUND
        assert exc_info.value.status_code == 404

    async def test_subscribes_until_closed(self, store: FakeStore) -> None:
        session = await DeckSession.open(store, DECK_ID)
        assert store.feed.listener_count(DECK_ID) == 1

        session.close()

        assert store.feed.listener_count(DECK_ID) == 0

    async def test_without_subscription(self, store: FakeStore) -> None:
        await DeckSession.open(store, DECK_ID, subscribe=False)
        assert store.feed.listener_count(DECK_ID) == 0


class TestApply:
    async def test_add_card_saves(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        model = await session.add_card(sol_ring)

        assert [e.name for e in model.entries_in(ARTIFACTS)] == ["Sol Ring"]
        assert store.model.lists() == model.lists()
        assert session.pending_count == 0

    async def test_denied_mutation_changes_nothing(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        await session.add_card(sol_ring)
        version = session.version

        with pytest.raises(ValidationDenied):
            await session.add_card(sol_ring)

        assert session.version == version
        assert len(store.commits) == 1
        assert session.model.copies_of(sol_ring.key) == 1

    async def test_failed_save_reverts(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        store.fail_names.add("Sol Ring")

        with pytest.raises(PersistenceFailure):
            await session.add_card(sol_ring)

        assert session.model.entries == ()
        assert store.model.entries == ()
        assert session.pending_count == 0

    async def test_connection_error_reverts(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        store.error = ConnectionRefusedError("connection refused")

        with pytest.raises(PersistenceFailure) as exc_info:
            await session.add_card(sol_ring)

        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
        assert session.model.entries == ()
        assert session.pending_count == 0

    async def test_cancelled_save_reverts(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        store.commit_gate.clear()
        task = asyncio.create_task(session.add_card(sol_ring))
        await settle()
        assert session.model.copies_of(sol_ring.key) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.model.entries == ()
        assert store.model.entries == ()
        assert session.pending_count == 0

        # The write lock was released
        store.commit_gate.set()
        model = await session.add_card(sol_ring)
        assert store.model.lists() == model.lists()

    async def test_failure_reverts_only_failed_write(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot, forest: CardSnapshot
    ) -> None:
        store.commit_gate.clear()
        store.fail_names.add("Sol Ring")

        first = asyncio.create_task(session.add_card(sol_ring))
        await settle()
        second = asyncio.create_task(session.add_card(forest))
        await settle()

        # Both changes are visible while the writes are held
        assert session.model.copies_of(sol_ring.key) == 1
        assert session.model.copies_of(forest.key) == 1
        assert session.pending_count == 2

        store.commit_gate.set()
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert isinstance(results[0], PersistenceFailure)
        assert isinstance(results[1], ZoneModel)
        assert session.model.copies_of(sol_ring.key) == 0
        assert session.model.copies_of(forest.key) == 1
        assert store.model.lists() == session.model.lists()

    async def test_writes_commit_in_order(self, session: DeckSession, store: FakeStore) -> None:
        store.commit_gate.clear()
        cards = [build_card(f"Rock {n}") for n in range(4)]
        tasks = [asyncio.create_task(session.add_card(card)) for card in cards]
        await settle()

        store.commit_gate.set()
        await asyncio.gather(*tasks)

        committed = [commit[0].entry.name for commit in store.commits]
        assert committed == ["Rock 0", "Rock 1", "Rock 2", "Rock 3"]
        assert [e.position for e in store.model.entries_in(ARTIFACTS)] == [0, 1, 2, 3]

    async def test_quantity_actions(
        self, session: DeckSession, store: FakeStore, forest: CardSnapshot
    ) -> None:
        model = await session.add_card(forest, qty=3)
        entry_id = model.entries_in(LANDS)[0].id

        await session.increment(entry_id)
        await session.decrement(entry_id)
        model = await session.decrement(entry_id)
        assert model.entry(entry_id).qty == 2

        model = await session.remove(entry_id)
        assert model.entries_in(LANDS) == []
        assert store.model.entries == ()

    async def test_move_over_entry(self, session: DeckSession) -> None:
        for name in ("A", "B", "C"):
            await session.add_card(build_card(name))
        ids = [e.id for e in session.model.entries_in(ARTIFACTS)]

        model = await session.move(ids[2], ARTIFACTS, over_entry_id=ids[0])

        assert [e.name for e in model.entries_in(ARTIFACTS)] == ["C", "A", "B"]

    async def test_set_commander_and_tags(
        self, session: DeckSession, lazav: CardSnapshot
    ) -> None:
        model = await session.set_commander(lazav)
        commander = model.commanders[0]

        model = await session.set_tags(commander.id, frozenset({"foil"}))

        assert model.entry(commander.id).card.tags == frozenset({"foil"})


class TestReload:
    async def test_remote_change_reloads(
        self, session: DeckSession, store: FakeStore, forest: CardSnapshot
    ) -> None:
        remote = Entry(
            id="remote", deck_id=DECK_ID, zone_id=LANDS, qty=5, position=0, card=forest
        )
        store.model = store.model.with_entries([remote])

        await store.feed.notify(DECK_ID, "another-session")

        assert session.model.find_entry("remote") is not None

    async def test_own_changes_do_not_reload(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        loads = store.loads
        await session.add_card(sol_ring)
        assert store.loads == loads

    async def test_reload_deferred_while_writes_pending(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot, forest: CardSnapshot
    ) -> None:
        store.commit_gate.clear()
        write = asyncio.create_task(session.add_card(sol_ring))
        await settle()

        remote = Entry(
            id="remote", deck_id=DECK_ID, zone_id=LANDS, qty=5, position=0, card=forest
        )
        store.model = store.model.with_entries([remote])
        assert await session.reload() is False
        assert session.model.find_entry("remote") is None

        store.commit_gate.set()
        await write

        assert session.model.find_entry("remote") is not None
        assert session.model.copies_of(sol_ring.key) == 1

    async def test_stale_reload_discarded(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        stale = store.model
        store.load_gate.clear()
        reload = asyncio.create_task(session.reload())
        await settle()

        await session.add_card(sol_ring)
        store.model = stale
        store.load_gate.set()

        assert await reload is False
        assert session.model.copies_of(sol_ring.key) == 1

    async def test_deleted_deck(self, session: DeckSession, store: FakeStore) -> None:
        store.model = None
        with pytest.raises(KnownError) as exc_info:
            await session.reload()
        assert exc_info.value.kind is FailureKind.NOT_FOUND


class TestViews:
    async def test_stats_audit_export(
        self, session: DeckSession, sol_ring: CardSnapshot, forest: CardSnapshot
    ) -> None:
        await session.add_card(sol_ring)
        await session.add_card(forest, qty=10)

        assert session.stats().total_cards == 11
        assert session.audit().is_clean
        assert session.export_text() == "1 Sol Ring\n10 Forest"


class TestCatalogActions:
    async def test_import_text(
        self, session: DeckSession, store: FakeStore, catalog: FakeCatalog
    ) -> None:
        result = await session.import_text("1 Sol Ring\n5 Forest\n1 Mystery Card", catalog)

        assert result.imported_cards == 6
        assert [e.name for e in result.errors] == ["Mystery Card"]
        assert store.model.lists() == session.model.lists()
        assert result.model is session.model

    async def test_refresh_entry_keeps_tags(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        model = await session.add_card(replace(sol_ring, tags=frozenset({"own"})))
        entry_id = model.entries[0].id
        repriced = replace(sol_ring, prices={"usd": "3.00"})

        assert await session.refresh_entry(entry_id, FakeCatalog([repriced])) is True

        card = store.model.entry(entry_id).card
        assert card.prices == {"usd": "3.00"}
        assert card.tags == frozenset({"own"})

    async def test_refresh_unchanged_card(
        self, session: DeckSession, store: FakeStore, sol_ring: CardSnapshot
    ) -> None:
        model = await session.add_card(sol_ring)
        commits = len(store.commits)

        assert await session.refresh_entry(model.entries[0].id, FakeCatalog([sol_ring])) is False
        assert len(store.commits) == commits

    async def test_refresh_dropped_when_entry_changed_meanwhile(
        self, session: DeckSession, store: FakeStore, forest: CardSnapshot
    ) -> None:
        model = await session.add_card(forest, qty=2)
        entry_id = model.entries[0].id
        catalog = GatedCatalog([replace(forest, prices={"usd": "9.99"})])

        refresh = asyncio.create_task(session.refresh_entry(entry_id, catalog))
        await settle()
        await session.increment(entry_id)
        catalog.gate.set()

        assert await refresh is False
        entry = store.model.entry(entry_id)
        assert entry.qty == 3
        assert entry.card.prices == forest.prices

    async def test_refresh_all_counts_changes(
        self, session: DeckSession, sol_ring: CardSnapshot, forest: CardSnapshot
    ) -> None:
        await session.add_card(sol_ring)
        await session.add_card(forest)
        catalog = FakeCatalog([replace(sol_ring, prices={"usd": "5.00"}), forest])

        assert await session.refresh_all(catalog) == 1

    async def test_refresh_all_survives_catalog_outage(
        self, session: DeckSession, sol_ring: CardSnapshot
    ) -> None:
        await session.add_card(sol_ring)
        assert await session.refresh_all(FakeCatalog(fail=True)) == 0
