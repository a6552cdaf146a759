from collections.abc import Callable, Iterable
from typing import Any

import pytest

from commandzone.config import DEFAULT_ZONE_NAMES
from commandzone.models.card import CardSnapshot, normalize_name
from commandzone.models.deck import Zone
from commandzone.models.failure import CatalogLookupFailure
from commandzone.models.zone_model import ZoneModel

DECK_ID = "deck-1"


def build_card(
    name: str,
    type_line: str = "Artifact",
    color_identity: Iterable[str] = (),
    oracle_text: str = "",
    mana_cost: str = "",
    cmc: Any = 0.0,
    prices: dict[str, Any] | None = None,
    card_id: str | None = None,
) -> CardSnapshot:
    """Minimal snapshot with a stable id derived from the name."""
    return CardSnapshot(
        id=card_id if card_id is not None else "id-" + normalize_name(name).replace(" ", "-"),
        name=name,
        mana_cost=mana_cost,
        cmc=cmc,
        type_line=type_line,
        oracle_text=oracle_text,
        color_identity=frozenset(color_identity),
        prices=prices or {},
    )


def zone_id(name: str) -> str:
    """Zone id used by the board fixtures, e.g. "z-lands"."""
    return "z-" + name.lower()


def default_zones(deck_id: str = DECK_ID) -> list[Zone]:
    return [
        Zone(id=zone_id(name), deck_id=deck_id, name=name, order=order)
        for order, name in enumerate(DEFAULT_ZONE_NAMES)
    ]


@pytest.fixture
def make_card() -> Callable[..., CardSnapshot]:
    return build_card


@pytest.fixture
def empty_board() -> ZoneModel:
    """A freshly created deck: default zones, no entries."""
    return ZoneModel.build(DECK_ID, default_zones(), [])


# --- Sample cards ---


@pytest.fixture
def sol_ring() -> CardSnapshot:
    return build_card(
        "Sol Ring",
        type_line="Artifact",
        oracle_text="{T}: Add {C}{C}.",
        mana_cost="{1}",
        cmc=1.0,
        prices={"usd": "1.50"},
    )


@pytest.fixture
def forest() -> CardSnapshot:
    return build_card(
        "Forest",
        type_line="Basic Land — Forest",
        oracle_text="({T}: Add {G}.)",
        color_identity=("G",),
        prices={"usd": "0.10"},
    )


@pytest.fixture
def counterspell() -> CardSnapshot:
    return build_card(
        "Counterspell",
        type_line="Instant",
        oracle_text="Counter target spell.",
        color_identity=("U",),
        mana_cost="{U}{U}",
        cmc=2.0,
    )


@pytest.fixture
def lazav() -> CardSnapshot:
    """Legendary UB creature without partner."""
    return build_card(
        "Lazav, the Multifarious",
        type_line="Legendary Creature — Shapeshifter",
        oracle_text="When Lazav enters, surveil 1.",
        color_identity=("U", "B"),
        mana_cost="{U}{B}",
        cmc=2.0,
    )


@pytest.fixture
def atraxa() -> CardSnapshot:
    return build_card(
        "Atraxa, Praetors' Voice",
        type_line="Legendary Creature — Phyrexian Angel Horror",
        oracle_text="Flying, vigilance, deathtouch, lifelink\n"
        "At the beginning of your end step, proliferate.",
        color_identity=("W", "U", "B", "G"),
        mana_cost="{G}{W}{U}{B}",
        cmc=4.0,
    )


@pytest.fixture
def grixis_charm() -> CardSnapshot:
    return build_card(
        "Grixis Charm",
        type_line="Instant",
        oracle_text="Choose one —\n• Return target permanent to its owner's hand.",
        color_identity=("U", "B", "R"),
        mana_cost="{U}{B}{R}",
        cmc=3.0,
    )


@pytest.fixture
def thrasios() -> CardSnapshot:
    return build_card(
        "Thrasios, Triton Hero",
        type_line="Legendary Creature — Merfolk Wizard",
        oracle_text="{4}: Scry 1, then reveal the top card of your library. "
        "If it's a land card, put it onto the battlefield tapped. "
        "Otherwise, draw a card.\nPartner",
        color_identity=("G", "U"),
        mana_cost="{G}{U}",
        cmc=2.0,
    )


@pytest.fixture
def tymna() -> CardSnapshot:
    return build_card(
        "Tymna the Weaver",
        type_line="Legendary Creature — Human Cleric",
        oracle_text="Lifelink\nAt the beginning of your postcombat main phase, "
        "you may pay X life. When you do, draw X cards.\nPartner",
        color_identity=("W", "B"),
        mana_cost="{1}{W}{B}",
        cmc=3.0,
    )


@pytest.fixture
def relentless_rats() -> CardSnapshot:
    return build_card(
        "Relentless Rats",
        type_line="Creature — Rat",
        oracle_text="Relentless Rats gets +1/+1 for each other creature on the battlefield "
        "named Relentless Rats.\nA deck can have any number of cards named Relentless Rats.",
        color_identity=("B",),
        mana_cost="{1}{B}{B}",
        cmc=3.0,
    )


# --- Catalog double ---


class FakeCatalog:
    """In-memory CardCatalog. Names resolve exactly (case-insensitive) or by prefix when fuzzy."""

    def __init__(self, cards: Iterable[CardSnapshot] = (), fail: bool = False):
        self.cards = {c.key: c for c in cards}
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def _check(self) -> None:
        if self.fail:
            raise CatalogLookupFailure(detail="catalog down")

    async def search(self, query: str) -> list[CardSnapshot]:
        self.calls.append(("search", query))
        self._check()
        needle = normalize_name(query)
        return [c for key, c in sorted(self.cards.items()) if needle in key]

    async def named(self, name: str, fuzzy: bool = False) -> CardSnapshot | None:
        self.calls.append(("fuzzy" if fuzzy else "exact", name))
        self._check()
        key = normalize_name(name)
        if key in self.cards:
            return self.cards[key]
        if fuzzy:
            for card_key, card in sorted(self.cards.items()):
                if card_key.startswith(key):
                    return card
        return None

    async def get(self, card_id: str) -> CardSnapshot | None:
        self.calls.append(("get", card_id))
        self._check()
        for card in self.cards.values():
            if card.id == card_id:
                return card
        return None


@pytest.fixture
def catalog(sol_ring, forest, counterspell, lazav, atraxa, grixis_charm) -> FakeCatalog:
    return FakeCatalog([sol_ring, forest, counterspell, lazav, atraxa, grixis_charm])
