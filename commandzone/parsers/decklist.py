"""
Plain-text decklist import/export.

Export format, one entry per line:
    <quantity> <card name>

Import accepts the same lines plus a few common variants:
    1 Sol Ring
    2x Sol Ring
    Sol Ring            (quantity 1)

Blank lines, comments (// or #) and section headers (Commander, Deck,
Sideboard, ...) are skipped. Repeated names are merged, summing quantities.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from commandzone.models.card import normalize_name
from commandzone.models.deck import Entry

# Pattern: "2 Sol Ring", "2x Sol Ring", "2 x Sol Ring"
# Groups: (quantity, card_name)
QUANTITY_PATTERN = re.compile(r"^(\d+)\s*x?\s+(.+)$", re.IGNORECASE)

COMMENT_PREFIXES = ("//", "#")

# Section headers found in common exports, optionally followed by ":"
SECTION_HEADERS = frozenset(
    {"commander", "commanders", "deck", "mainboard", "main", "sideboard", "maybeboard", "companion"}
)


@dataclass(frozen=True, slots=True)
class DecklistLine:
    """
    One card request read from a decklist.

    Attributes:
        qty: Copies requested (merged across repeated lines)
        name: Card name as first written
        line_no: 1-based line number of the first occurrence
    """

    qty: int
    name: str
    line_no: int


def build_decklist_text(entries: Iterable[Entry]) -> str:
    """
    Render entries as "<qty> <name>" lines, in the order given.

    Entries with a non-positive quantity or no name are skipped.
    """
    lines = [f"{e.qty} {e.name}" for e in entries if e.qty > 0 and e.name]
    return "\n".join(lines)


def _is_section_header(line: str) -> bool:
    return line.rstrip(":").strip().lower() in SECTION_HEADERS


def parse_decklist_text(text: str) -> list[DecklistLine]:
    """
    Parse decklist text into card requests.

    Args:
        text: Raw pasted decklist

    Returns:
        One DecklistLine per distinct card name, in first-seen order.
        Empty list if input is empty/whitespace.
    """
    if not text or not text.strip():
        return []

    merged: dict[str, DecklistLine] = {}

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()

        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        if _is_section_header(line):
            continue

        match = QUANTITY_PATTERN.match(line)
        if match:
            qty, name = int(match.group(1)), match.group(2).strip()
        else:
            qty, name = 1, line

        if qty <= 0 or not name:
            continue

        key = normalize_name(name)
        previous = merged.get(key)
        if previous is None:
            merged[key] = DecklistLine(qty=qty, name=name, line_no=line_no)
        else:
            merged[key] = DecklistLine(
                qty=previous.qty + qty, name=previous.name, line_no=previous.line_no
            )

    return list(merged.values())
