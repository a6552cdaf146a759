"""
Deck statistics.

Pure aggregation over a deck's entries, recomputed after every change:
card counts, mana curve, pip distribution, rough ramp/draw counts and an
estimated price. Ramp and draw counts come from text heuristics (see
card_facts) and are approximate by nature.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry
from commandzone.services.card_facts import (
    PIP_SYMBOLS,
    detect_draw,
    detect_ramp,
    is_land,
    mana_pips,
    mana_value,
)

CURVE_BUCKETS = ("0", "1", "2", "3", "4", "5", "6+")

# Price fields tried in order; tix is a non-monetary fallback
PRICE_FIELDS = ("usd", "usd_foil", "usd_etched", "eur", "tix")


@dataclass
class DeckStats:
    """Summary statistics for a deck."""

    total_cards: int = 0
    land_count: int = 0
    spell_count: int = 0
    average_mana_value: float = 0.0
    curve: dict[str, int] = field(default_factory=lambda: dict.fromkeys(CURVE_BUCKETS, 0))
    pips: dict[str, int] = field(default_factory=lambda: dict.fromkeys(PIP_SYMBOLS, 0))
    ramp_count: int = 0
    draw_count: int = 0
    estimated_price_total: float = 0.0


def curve_bucket(value: float) -> str:
    """Curve bucket for a mana value: rounded half up, 6 and above share "6+"."""
    rounded = math.floor(value + 0.5)
    if rounded >= 6:
        return "6+"
    return str(max(rounded, 0))


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def card_price(card: CardSnapshot) -> float:
    """First price field that parses as a number, else 0."""
    for name in PRICE_FIELDS:
        number = _to_number(card.prices.get(name))
        if number is not None:
            return number
    return 0.0


def compute_deck_stats(entries: Iterable[Entry]) -> DeckStats:
    """
    Aggregate statistics over every entry of a deck (all zones).

    Lands are excluded from average mana value, curve and pips. Ramp, draw
    and price cover every entry.
    """
    stats = DeckStats()
    mana_value_sum = 0.0

    for entry in entries:
        qty = entry.qty
        card = entry.card
        stats.total_cards += qty

        if is_land(card):
            stats.land_count += qty
        else:
            value = mana_value(card)
            mana_value_sum += value * qty
            stats.curve[curve_bucket(value)] += qty
            for symbol, count in mana_pips(card.mana_cost).items():
                stats.pips[symbol] += count * qty

        if detect_ramp(card):
            stats.ramp_count += qty
        if detect_draw(card):
            stats.draw_count += qty

        stats.estimated_price_total += card_price(card) * qty

    stats.spell_count = stats.total_cards - stats.land_count
    if stats.spell_count > 0:
        stats.average_mana_value = mana_value_sum / stats.spell_count
    stats.estimated_price_total = round(stats.estimated_price_total, 2)
    return stats
