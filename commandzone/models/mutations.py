"""
Deck mutations and the persistence effects they produce.

Mutations describe what the user asked for. Effects describe what must be
written to storage to make it so. Ids for anything a mutation creates are
chosen up front, so replaying the same mutation yields the same effects.
"""

from dataclasses import dataclass, field

from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry, Zone, new_id

# --- Mutations ---


@dataclass(frozen=True)
class AddCard:
    """Add `qty` copies of a card to a zone (increments an existing row for the same card)."""

    card: CardSnapshot
    zone_id: str
    qty: int = 1
    entry_id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class SetCommander:
    """
    Install a card in the Commander zone.

    When the zone is occupied and the card cannot partner with the current
    commander, the replacement policy decides between refusing and moving
    the old commander(s) to the fallback zone.
    """

    card: CardSnapshot
    entry_id: str = field(default_factory=new_id)
    fallback_zone_id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class ChangeQuantity:
    """Add `delta` copies to an entry (negative to remove); reaching 0 deletes it."""

    entry_id: str
    delta: int


@dataclass(frozen=True)
class RemoveEntry:
    entry_id: str


@dataclass(frozen=True)
class MoveEntry:
    """
    Drag-and-drop move.

    `index` is the drop position in the destination zone; None means the
    drop landed on the zone itself and the entry goes to the end.
    """

    entry_id: str
    to_zone_id: str
    index: int | None = None


@dataclass(frozen=True)
class ReplaceSnapshot:
    """Swap in a re-fetched catalog snapshot, keeping the entry's user tags."""

    entry_id: str
    card: CardSnapshot


@dataclass(frozen=True)
class SetTags:
    entry_id: str
    tags: frozenset[str]


Mutation = (
    AddCard | SetCommander | ChangeQuantity | RemoveEntry | MoveEntry | ReplaceSnapshot | SetTags
)


# --- Effects ---


@dataclass(frozen=True)
class CreateZone:
    zone: Zone


@dataclass(frozen=True)
class InsertEntry:
    entry: Entry


@dataclass(frozen=True)
class UpdateEntry:
    """Overwrite an existing entry's zone, position, quantity and snapshot."""

    entry: Entry


@dataclass(frozen=True)
class DeleteEntry:
    entry_id: str


Effect = CreateZone | InsertEntry | UpdateEntry | DeleteEntry
