"""
Stateless derivations from a card snapshot.

Color identity, mana value, pip counts, type classification, commander
eligibility and copy limits all come from here, so every caller reads a
card the same way.

The ramp/draw/partner detectors are HEURISTICS: substring matches over
free-form rules text. They are best-effort and will both miss cards and
flag cards that do not really belong. They are used for statistics and
pairing hints only, never as authoritative rules.
"""

import math
import re

from commandzone.models.card import CardSnapshot, normalize_name

# Color symbols that appear in pips (C = colorless mana symbol)
PIP_SYMBOLS = ("W", "U", "B", "R", "G", "C")

MANA_SYMBOL_PATTERN = re.compile(r"\{([^}]+)\}")

# Type-line substring -> default zone, checked in this order.
# Vehicle precedes Artifact because every vehicle is an artifact.
ZONE_BY_TYPE: tuple[tuple[str, str], ...] = (
    ("land", "Lands"),
    ("creature", "Creatures"),
    ("instant", "Instants"),
    ("sorcery", "Sorceries"),
    ("vehicle", "Vehicles"),
    ("artifact", "Artifacts"),
    ("enchantment", "Enchantments"),
    ("planeswalker", "Planeswalkers"),
)
DEFAULT_ZONE = "Maybe"

# Named exceptions to the singleton rule: normalized name -> max copies
NAMED_COPY_LIMITS: dict[str, int] = {
    normalize_name("Seven Dwarves"): 7,
    normalize_name("Nazgûl"): 9,
}

ANY_NUMBER_CLAUSE = "a deck can have any number of cards named"
COMMANDER_CLAUSE = "can be your commander"
BACKGROUND_CLAUSE = "choose a background"

SINGLETON_LIMIT = 1


def color_identity(card: CardSnapshot) -> frozenset[str]:
    """Declared color identity; the empty set means colorless."""
    return frozenset(c.upper() for c in card.color_identity)


def is_subset_colors(card_colors: frozenset[str], deck_colors: frozenset[str]) -> bool:
    """Every symbol of the card must appear in the deck. Colorless always fits."""
    return card_colors <= deck_colors


def mana_value(card: CardSnapshot) -> float:
    """Numeric mana value; 0 when absent or non-numeric."""
    value = card.cmc
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int | float):
        return value if math.isfinite(value) else 0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0
    return parsed if math.isfinite(parsed) else 0


def mana_pips(mana_cost: str | None) -> dict[str, int]:
    """
    Count colored pips in a bracketed mana cost.

    Numeric and X symbols contribute nothing. Hybrid symbols contribute one
    pip to each named color ("{W/U}" -> W+1, U+1; "{2/W}" -> W+1).
    Unrecognized symbols are ignored.

    Example:
        mana_pips("{2}{W/U}{B}") -> {"W": 1, "U": 1, "B": 1, "R": 0, "G": 0, "C": 0}
    """
    pips = dict.fromkeys(PIP_SYMBOLS, 0)
    if not mana_cost:
        return pips

    for symbol in MANA_SYMBOL_PATTERN.findall(mana_cost):
        inner = symbol.strip().upper()
        if inner.isdigit():
            continue
        for part in inner.split("/"):
            part = part.strip()
            if part in pips:
                pips[part] += 1

    return pips


def _type_line(card: CardSnapshot) -> str:
    return card.type_line.lower()


def _oracle_text(card: CardSnapshot) -> str:
    return card.oracle_text.lower()


def is_land(card: CardSnapshot) -> bool:
    return "land" in _type_line(card)


def is_basic_land(card: CardSnapshot) -> bool:
    type_line = _type_line(card)
    return "basic" in type_line and "land" in type_line


def classify_zone_default(card: CardSnapshot) -> str:
    """Default placement zone name for a card, by type line."""
    type_line = _type_line(card)
    for needle, zone_name in ZONE_BY_TYPE:
        if needle in type_line:
            return zone_name
    return DEFAULT_ZONE


def is_commander_eligible(card: CardSnapshot, partner: CardSnapshot | None = None) -> bool:
    """
    Legendary creature or planeswalker, or a card that says it can be your commander.

    A Background is only eligible beside `partner`, the other commander,
    when that commander says "Choose a Background".
    """
    type_line = _type_line(card)
    if "legendary" in type_line and ("creature" in type_line or "planeswalker" in type_line):
        return True
    if partner is not None and is_background(card) and chooses_background(partner):
        return True
    return COMMANDER_CLAUSE in _oracle_text(card)


def is_background(card: CardSnapshot) -> bool:
    type_line = _type_line(card)
    return "legendary" in type_line and "background" in type_line


def chooses_background(card: CardSnapshot) -> bool:
    return BACKGROUND_CLAUSE in _oracle_text(card)


def copy_limit(card: CardSnapshot) -> int | None:
    """
    Maximum total copies of this card (by name) in one deck.

    Returns:
        1 for ordinary cards, the printed number for named exceptions,
        None when any number of copies is allowed.
    """
    if is_basic_land(card):
        return None
    if ANY_NUMBER_CLAUSE in _oracle_text(card):
        return None
    return NAMED_COPY_LIMITS.get(card.key, SINGLETON_LIMIT)


def detect_ramp(card: CardSnapshot) -> bool:
    """Heuristic: produces mana, makes treasure, or fetches lands."""
    text = _oracle_text(card)
    if not text:
        return False
    if "add {" in text:
        return True
    if "create a treasure" in text or "treasure token" in text:
        return True
    if "search your library" in text and "land" in text:
        return True
    if "put a land card" in text and "onto the battlefield" in text:
        return True
    return False


def detect_draw(card: CardSnapshot) -> bool:
    """Heuristic: draws cards once or repeatedly."""
    text = _oracle_text(card)
    if not text:
        return False
    if "draw a card" in text or "draw two cards" in text or "draw three cards" in text:
        return True
    if "whenever" in text and "draw" in text:
        return True
    return False


def can_pair_as_commanders(first: CardSnapshot, second: CardSnapshot) -> bool:
    """
    Heuristic: may these two cards share the Commander zone?

    Accepts partner, "partner with <name>" and friends forever pairs, and a
    "Choose a Background" commander with a Background. Apart from the
    Background, both cards must be commander-eligible on their own.
    """
    if chooses_background(first) and is_background(second):
        return True
    if chooses_background(second) and is_background(first):
        return True

    first_text, second_text = _oracle_text(first), _oracle_text(second)

    partner_with = re.search(r"partner with ([^\n(]+)", first_text)
    if partner_with and normalize_name(partner_with.group(1)) == second.key:
        return True
    partner_with = re.search(r"partner with ([^\n(]+)", second_text)
    if partner_with and normalize_name(partner_with.group(1)) == first.key:
        return True

    if _has_plain_partner(first_text) and _has_plain_partner(second_text):
        return True
    return "friends forever" in first_text and "friends forever" in second_text


def _has_plain_partner(text: str) -> bool:
    return re.search(r"\bpartner\b(?! with)", text) is not None
