"""
Reorder planner for drag-and-drop moves.

Given the ordered entry lists of a board, computes the smallest set of
(entry, zone, position) updates that realizes a move while keeping every
touched zone densely numbered from 0.

The planner is pure: it never checks legality (callers gate the move
first) and either returns a complete plan or raises, so a partial
reorder is never produced.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from commandzone.models.deck import Entry
from commandzone.models.failure import InvariantViolation


@dataclass(frozen=True, slots=True)
class PositionUpdate:
    """New placement for one entry."""

    entry_id: str
    zone_id: str
    position: int


def plan_move(
    lists: Mapping[str, Sequence[Entry]],
    entry_id: str,
    from_zone_id: str,
    to_zone_id: str,
    target_index: int | None = None,
) -> list[PositionUpdate]:
    """
    Plan the position updates for moving one entry.

    Args:
        lists: Current ordered entries per zone id
        entry_id: Entry being dragged
        from_zone_id: Zone the entry is in now
        to_zone_id: Zone it is dropped into (may equal from_zone_id)
        target_index: Drop index in the destination; None appends at the end

    Returns:
        Updates for every entry whose zone or position changes, source
        zone first. Empty when the move changes nothing.

    Raises:
        InvariantViolation: If the entry is not in `from_zone_id`, or a
            zone id is unknown
    """
    if from_zone_id not in lists or to_zone_id not in lists:
        raise InvariantViolation(f"Unknown zone in move {from_zone_id} -> {to_zone_id}")

    source = list(lists[from_zone_id])
    old_index = next((i for i, e in enumerate(source) if e.id == entry_id), None)
    if old_index is None:
        raise InvariantViolation(f"Entry {entry_id} is not in zone {from_zone_id}")

    moving = source.pop(old_index)

    if from_zone_id == to_zone_id:
        source.insert(_clamp(target_index, len(source)), moving)
        return _renumber(source, from_zone_id)

    destination = list(lists[to_zone_id])
    destination.insert(_clamp(target_index, len(destination)), moving)
    return _renumber(source, from_zone_id) + _renumber(destination, to_zone_id)


def drop_index(
    lists: Mapping[str, Sequence[Entry]], to_zone_id: str, over_entry_id: str | None
) -> int | None:
    """
    Translate a drop target into an insertion index.

    Dropping onto an entry inserts at that entry's index; dropping onto the
    zone itself (or an entry not in it) appends.
    """
    if over_entry_id is None:
        return None
    for index, entry in enumerate(lists.get(to_zone_id, ())):
        if entry.id == over_entry_id:
            return index
    return None


def _clamp(index: int | None, length: int) -> int:
    if index is None or index > length:
        return length
    return max(index, 0)


def _renumber(entries: list[Entry], zone_id: str) -> list[PositionUpdate]:
    return [
        PositionUpdate(entry.id, zone_id, position)
        for position, entry in enumerate(entries)
        if entry.position != position or entry.zone_id != zone_id
    ]
