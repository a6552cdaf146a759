"""Tests for board transitions."""

import pytest
from conftest import DECK_ID, build_card, default_zones, zone_id

from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Zone
from commandzone.models.failure import (
    FailureKind,
    InvariantViolation,
    KnownError,
    ValidationDenied,
)
from commandzone.models.legality import DenyReason
from commandzone.models.mutations import (
    AddCard,
    ChangeQuantity,
    CreateZone,
    DeleteEntry,
    InsertEntry,
    MoveEntry,
    ReplaceSnapshot,
    SetCommander,
    SetTags,
    UpdateEntry,
)
from commandzone.models.zone_model import ZoneModel
from commandzone.services.transitions import (
    CommanderPolicy,
    add_card,
    apply_mutation,
    change_quantity,
    move_entry,
    placement_zone,
    remove_entry,
    set_commander,
)

COMMANDER = zone_id("Commander")
ARTIFACTS = zone_id("Artifacts")
INSTANTS = zone_id("Instants")
LANDS = zone_id("Lands")
CREATURES = zone_id("Creatures")


def positions(model: ZoneModel, zone: str) -> list[int]:
    return [e.position for e in model.entries_in(zone)]


def names(model: ZoneModel, zone: str) -> list[str]:
    return [e.name for e in model.entries_in(zone)]


class TestAddCard:
    def test_adds_entry_at_end_of_zone(
        self, empty_board: ZoneModel, sol_ring: CardSnapshot
    ) -> None:
        mind_stone = build_card("Mind Stone")

        board = add_card(empty_board, sol_ring, ARTIFACTS).model
        result = apply_mutation(board, AddCard(card=mind_stone, zone_id=ARTIFACTS, entry_id="ms"))

        assert names(result.model, ARTIFACTS) == ["Sol Ring", "Mind Stone"]
        assert positions(result.model, ARTIFACTS) == [0, 1]
        assert len(result.effects) == 1
        assert isinstance(result.effects[0], InsertEntry)
        assert result.effects[0].entry.id == "ms"

    def test_same_card_increments_existing_row(
        self, empty_board: ZoneModel, forest: CardSnapshot
    ) -> None:
        board = add_card(empty_board, forest, LANDS, qty=5).model

        result = add_card(board, forest, LANDS, qty=3)

        [entry] = result.model.entries_in(LANDS)
        assert entry.qty == 8
        assert isinstance(result.effects[0], UpdateEntry)

    def test_second_sol_ring_denied(self, empty_board: ZoneModel, sol_ring: CardSnapshot) -> None:
        board = add_card(empty_board, sol_ring, ARTIFACTS).model

        with pytest.raises(ValidationDenied) as exc_info:
            add_card(board, sol_ring, ARTIFACTS)

        decision = exc_info.value.decision
        assert decision.reason is DenyReason.COPY_LIMIT_EXCEEDED
        assert (decision.limit, decision.attempted_total) == (1, 2)
        assert board.copies_of(sol_ring.key) == 1

    def test_tenth_forest_allowed(self, empty_board: ZoneModel, forest: CardSnapshot) -> None:
        board = add_card(empty_board, forest, LANDS, qty=9).model
        assert add_card(board, forest, LANDS).model.copies_of(forest.key) == 10

    def test_off_color_card_denied(
        self, empty_board: ZoneModel, lazav: CardSnapshot, grixis_charm: CardSnapshot
    ) -> None:
        board = set_commander(empty_board, lazav).model

        with pytest.raises(ValidationDenied) as exc_info:
            add_card(board, grixis_charm, INSTANTS)

        assert exc_info.value.decision.reason is DenyReason.COLOR_IDENTITY_VIOLATION
        assert board.entries_in(INSTANTS) == []

    def test_unknown_zone(self, empty_board: ZoneModel, sol_ring: CardSnapshot) -> None:
        with pytest.raises(InvariantViolation):
            add_card(empty_board, sol_ring, "z-nowhere")

    def test_non_positive_quantity(self, empty_board: ZoneModel, sol_ring: CardSnapshot) -> None:
        with pytest.raises(ValueError):
            add_card(empty_board, sol_ring, ARTIFACTS, qty=0)


class TestSetCommander:
    def test_sets_commander(self, empty_board: ZoneModel, lazav: CardSnapshot) -> None:
        result = set_commander(empty_board, lazav)

        assert [c.name for c in result.model.commanders] == [lazav.name]
        assert result.model.deck_colors() == frozenset({"U", "B"})

    def test_already_commander_is_noop(self, empty_board: ZoneModel, lazav: CardSnapshot) -> None:
        board = set_commander(empty_board, lazav).model

        result = set_commander(board, lazav)

        assert result.model is board
        assert result.effects == []

    def test_background_becomes_second_commander(self, empty_board: ZoneModel) -> None:
        wilson = build_card(
            "Wilson, Refined Grizzly",
            type_line="Legendary Creature — Bear Warrior",
            oracle_text="Choose a Background",
            color_identity=("G",),
        )
        background = build_card(
            "Raised by Giants",
            type_line="Legendary Enchantment — Background",
            color_identity=("G",),
        )
        board = set_commander(empty_board, wilson).model

        result = apply_mutation(
            board, SetCommander(card=background), policy=CommanderPolicy.DISPLACE
        )

        assert [c.name for c in result.model.commanders] == [wilson.name, background.name]
        assert [type(e) for e in result.effects] == [InsertEntry]

    def test_displace_moves_old_commander_to_new_sideboard(
        self, empty_board: ZoneModel, lazav: CardSnapshot, atraxa: CardSnapshot
    ) -> None:
        board = set_commander(empty_board, lazav).model

        result = apply_mutation(
            board,
            SetCommander(card=atraxa, fallback_zone_id="z-side"),
            policy=CommanderPolicy.DISPLACE,
            fallback_zone_name="Sideboard",
        )

        sideboard = result.model.zone_named("Sideboard")
        assert sideboard is not None
        assert sideboard.id == "z-side"
        assert sideboard.order == len(default_zones())
        assert names(result.model, "z-side") == [lazav.name]
        assert [c.name for c in result.model.commanders] == [atraxa.name]
        assert [type(e) for e in result.effects] == [CreateZone, UpdateEntry, InsertEntry]

    def test_displace_appends_to_existing_fallback_zone(
        self, lazav: CardSnapshot, atraxa: CardSnapshot, sol_ring: CardSnapshot
    ) -> None:
        zones = [*default_zones(), Zone(id="z-side", deck_id=DECK_ID, name="Sideboard", order=9)]
        board = ZoneModel.build(DECK_ID, zones, [])
        board = add_card(board, sol_ring, "z-side").model
        board = set_commander(board, lazav).model

        result = apply_mutation(board, SetCommander(card=atraxa), policy=CommanderPolicy.DISPLACE)

        assert names(result.model, "z-side") == ["Sol Ring", lazav.name]
        assert positions(result.model, "z-side") == [0, 1]
        assert not any(isinstance(e, CreateZone) for e in result.effects)

    def test_deny_policy_refuses(
        self, empty_board: ZoneModel, lazav: CardSnapshot, atraxa: CardSnapshot
    ) -> None:
        board = set_commander(empty_board, lazav).model

        with pytest.raises(ValidationDenied) as exc_info:
            set_commander(board, atraxa, policy=CommanderPolicy.DENY)

        assert exc_info.value.decision.reason is DenyReason.COMMANDER_SLOT_OCCUPIED

    def test_partner_added_alongside(
        self, empty_board: ZoneModel, thrasios: CardSnapshot, tymna: CardSnapshot
    ) -> None:
        board = set_commander(empty_board, thrasios).model

        result = set_commander(board, tymna, policy=CommanderPolicy.DENY)

        assert [c.name for c in result.model.commanders] == [thrasios.name, tymna.name]
        assert positions(result.model, COMMANDER) == [0, 1]
        assert result.model.deck_colors() == frozenset({"W", "U", "B", "G"})

    def test_ineligible_card(self, empty_board: ZoneModel, counterspell: CardSnapshot) -> None:
        with pytest.raises(ValidationDenied) as exc_info:
            set_commander(empty_board, counterspell)
        assert exc_info.value.decision.reason is DenyReason.NOT_COMMANDER_ELIGIBLE

    def test_card_already_in_deck_hits_copy_limit(
        self, empty_board: ZoneModel, atraxa: CardSnapshot
    ) -> None:
        board = add_card(empty_board, atraxa, CREATURES).model

        with pytest.raises(ValidationDenied) as exc_info:
            set_commander(board, atraxa)

        assert exc_info.value.decision.reason is DenyReason.COPY_LIMIT_EXCEEDED

    def test_missing_commander_zone(self, lazav: CardSnapshot) -> None:
        zones = [z for z in default_zones() if z.name != "Commander"]
        board = ZoneModel.build(DECK_ID, zones, [])

        with pytest.raises(KnownError) as exc_info:
            set_commander(board, lazav)

        assert exc_info.value.kind is FailureKind.INVALID_INPUT


class TestChangeQuantity:
    def test_decrement_from_three(self, empty_board: ZoneModel, forest: CardSnapshot) -> None:
        board = add_card(empty_board, forest, LANDS, qty=3).model
        entry_id = board.entries_in(LANDS)[0].id

        result = change_quantity(board, entry_id, -1)

        assert result.model.entry(entry_id).qty == 2

    def test_decrement_at_one_deletes(
        self, empty_board: ZoneModel, sol_ring: CardSnapshot
    ) -> None:
        board = add_card(empty_board, sol_ring, ARTIFACTS).model
        board = add_card(board, build_card("Mind Stone"), ARTIFACTS).model
        sol_ring_id = board.entries_in(ARTIFACTS)[0].id

        result = change_quantity(board, sol_ring_id, -1)

        assert result.model.find_entry(sol_ring_id) is None
        assert names(result.model, ARTIFACTS) == ["Mind Stone"]
        assert positions(result.model, ARTIFACTS) == [0]
        assert isinstance(result.effects[0], DeleteEntry)
        assert isinstance(result.effects[1], UpdateEntry)

    def test_increment_past_limit_denied(
        self, empty_board: ZoneModel, sol_ring: CardSnapshot
    ) -> None:
        board = add_card(empty_board, sol_ring, ARTIFACTS).model
        with pytest.raises(ValidationDenied):
            change_quantity(board, board.entries[0].id, 1)

    def test_zero_delta_is_noop(self, empty_board: ZoneModel, forest: CardSnapshot) -> None:
        board = add_card(empty_board, forest, LANDS).model
        result = apply_mutation(board, ChangeQuantity(entry_id=board.entries[0].id, delta=0))
        assert result.effects == []

    def test_unknown_entry(self, empty_board: ZoneModel) -> None:
        with pytest.raises(InvariantViolation):
            change_quantity(empty_board, "missing", 1)


class TestRemoveAndMove:
    def test_rapid_mutations_keep_positions_dense(self, empty_board: ZoneModel) -> None:
        board = empty_board
        for index in range(6):
            board = add_card(board, build_card(f"Rock {index}"), ARTIFACTS).model
        ids = [e.id for e in board.entries_in(ARTIFACTS)]

        board = remove_entry(board, ids[1]).model
        board = move_entry(board, ids[4], ARTIFACTS, 0).model
        board = change_quantity(board, ids[3], -1).model
        board = move_entry(board, ids[0], zone_id("Maybe")).model
        board = remove_entry(board, ids[5]).model

        assert names(board, ARTIFACTS) == ["Rock 4", "Rock 2"]
        assert positions(board, ARTIFACTS) == [0, 1]
        assert positions(board, zone_id("Maybe")) == [0]
        board.check_invariants()

    def test_move_to_other_zone_at_index(self, empty_board: ZoneModel) -> None:
        board = empty_board
        for name in ("A", "B"):
            board = add_card(board, build_card(name), ARTIFACTS).model
        for name in ("X", "Y"):
            board = add_card(board, build_card(name), zone_id("Maybe")).model
        moving = board.entries_in(ARTIFACTS)[0].id

        result = move_entry(board, moving, zone_id("Maybe"), 1)

        assert names(result.model, zone_id("Maybe")) == ["X", "A", "Y"]
        assert names(result.model, ARTIFACTS) == ["B"]
        assert all(isinstance(e, UpdateEntry) for e in result.effects)

    def test_counterspell_onto_commander_zone_refused(
        self, empty_board: ZoneModel, counterspell: CardSnapshot
    ) -> None:
        board = add_card(empty_board, counterspell, INSTANTS).model
        entry_id = board.entries[0].id

        with pytest.raises(ValidationDenied) as exc_info:
            apply_mutation(board, MoveEntry(entry_id=entry_id, to_zone_id=COMMANDER))

        assert exc_info.value.decision.reason is DenyReason.NOT_COMMANDER_ELIGIBLE
        assert board.entry(entry_id).zone_id == INSTANTS

    def test_drag_legend_into_commander_zone(
        self, empty_board: ZoneModel, atraxa: CardSnapshot
    ) -> None:
        board = add_card(empty_board, atraxa, CREATURES).model

        result = move_entry(board, board.entries[0].id, COMMANDER)

        assert [c.name for c in result.model.commanders] == [atraxa.name]
        assert result.model.entries_in(CREATURES) == []

    def test_move_to_same_place_changes_nothing(
        self, empty_board: ZoneModel, sol_ring: CardSnapshot
    ) -> None:
        board = add_card(empty_board, sol_ring, ARTIFACTS).model
        result = move_entry(board, board.entries[0].id, ARTIFACTS, 0)
        assert result.effects == []


class TestSnapshotMutations:
    def test_replace_snapshot_keeps_tags(self, empty_board: ZoneModel) -> None:
        stale = build_card("Sol Ring", prices={"usd": "1.00"})
        board = add_card(empty_board, stale, ARTIFACTS).model
        entry_id = board.entries[0].id
        board = apply_mutation(board, SetTags(entry_id=entry_id, tags=frozenset({"proxy"}))).model

        fresh = build_card("Sol Ring", prices={"usd": "2.00"})
        result = apply_mutation(board, ReplaceSnapshot(entry_id=entry_id, card=fresh))

        card = result.model.entry(entry_id).card
        assert card.prices == {"usd": "2.00"}
        assert card.tags == frozenset({"proxy"})


class TestPlacementZone:
    def test_type_line_default(self, empty_board: ZoneModel, counterspell: CardSnapshot) -> None:
        assert placement_zone(empty_board, counterspell).name == "Instants"

    def test_vehicle_without_vehicles_zone_goes_to_artifacts(
        self, empty_board: ZoneModel
    ) -> None:
        vehicle = build_card("Smuggler's Copter", type_line="Artifact — Vehicle")
        assert empty_board.zone_named("Vehicles") is None
        assert placement_zone(empty_board, vehicle).name == "Artifacts"

    def test_vehicles_zone_preferred_when_present(self) -> None:
        zones = [*default_zones(), Zone(id="z-veh", deck_id=DECK_ID, name="Vehicles", order=20)]
        board = ZoneModel.build(DECK_ID, zones, [])
        vehicle = build_card("Smuggler's Copter", type_line="Artifact — Vehicle")
        assert placement_zone(board, vehicle).id == "z-veh"

    def test_unknown_type_goes_to_maybe(self, empty_board: ZoneModel) -> None:
        battle = build_card("Invasion", type_line="Battle — Siege")
        assert placement_zone(empty_board, battle).name == "Maybe"

    def test_never_commander_zone(self, lazav: CardSnapshot) -> None:
        zones = [
            Zone(id="z-commander", deck_id=DECK_ID, name="Commander", order=0),
            Zone(id="z-pile", deck_id=DECK_ID, name="Pile", order=1),
        ]
        board = ZoneModel.build(DECK_ID, zones, [])
        assert placement_zone(board, lazav).id == "z-pile"

    def test_no_zone_available(self, lazav: CardSnapshot) -> None:
        zones = [Zone(id="z-commander", deck_id=DECK_ID, name="Commander", order=0)]
        board = ZoneModel.build(DECK_ID, zones, [])
        with pytest.raises(InvariantViolation):
            placement_zone(board, lazav)
