"""
ZoneModel: the in-memory board of one deck.

An immutable value holding the deck's zones and entries. Queries answer
"what is where"; structural helpers return a new model. No legality is
applied here (see services.transitions for gated mutations).

INVARIANT: within every zone, entry positions are 0..n-1 with no gaps
or duplicates.
"""

from dataclasses import dataclass, replace

from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry, Zone
from commandzone.models.failure import InvariantViolation
from commandzone.services.card_facts import color_identity


@dataclass(frozen=True)
class ZoneModel:
    """
    Zones and entries of a single deck.

    Attributes:
        deck_id: Owning deck
        zones: Zones in display order
        entries: All entries, grouped by zone then position
    """

    deck_id: str
    zones: tuple[Zone, ...] = ()
    entries: tuple[Entry, ...] = ()

    @classmethod
    def build(cls, deck_id: str, zones: list[Zone], entries: list[Entry]) -> "ZoneModel":
        """Create a model with canonical ordering."""
        ordered_zones = tuple(sorted(zones, key=lambda z: z.order))
        zone_rank = {z.id: i for i, z in enumerate(ordered_zones)}
        ordered_entries = tuple(
            sorted(entries, key=lambda e: (zone_rank.get(e.zone_id, len(zone_rank)), e.position))
        )
        return cls(deck_id=deck_id, zones=ordered_zones, entries=ordered_entries)

    # --- Zone queries ---

    def find_zone(self, zone_id: str) -> Zone | None:
        for zone in self.zones:
            if zone.id == zone_id:
                return zone
        return None

    def zone(self, zone_id: str) -> Zone:
        found = self.find_zone(zone_id)
        if found is None:
            raise InvariantViolation(f"Zone {zone_id} is not part of deck {self.deck_id}")
        return found

    def zone_named(self, name: str) -> Zone | None:
        """Zone by display name, case-insensitive."""
        wanted = name.strip().casefold()
        for zone in self.zones:
            if zone.name.strip().casefold() == wanted:
                return zone
        return None

    @property
    def commander_zone(self) -> Zone | None:
        for zone in self.zones:
            if zone.is_commander:
                return zone
        return None

    def is_commander_zone(self, zone_id: str) -> bool:
        commander_zone = self.commander_zone
        return commander_zone is not None and commander_zone.id == zone_id

    def next_zone_order(self) -> int:
        return max((z.order for z in self.zones), default=-1) + 1

    # --- Entry queries ---

    def find_entry(self, entry_id: str) -> Entry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def entry(self, entry_id: str) -> Entry:
        found = self.find_entry(entry_id)
        if found is None:
            raise InvariantViolation(f"Entry {entry_id} is not part of deck {self.deck_id}")
        return found

    def entries_in(self, zone_id: str) -> list[Entry]:
        """Entries of one zone, in position order."""
        return sorted((e for e in self.entries if e.zone_id == zone_id), key=lambda e: e.position)

    def lists(self) -> dict[str, list[Entry]]:
        """Ordered entry list per zone id (every zone present, possibly empty)."""
        return {zone.id: self.entries_in(zone.id) for zone in self.zones}

    def entry_for_card(self, card: CardSnapshot, zone_id: str) -> Entry | None:
        """Existing row for the same card in a zone (matched by catalog id, else by name)."""
        for entry in self.entries_in(zone_id):
            if card.id and entry.card.id == card.id:
                return entry
            if not card.id and entry.key == card.key:
                return entry
        return None

    @property
    def commanders(self) -> list[Entry]:
        """Entries occupying the Commander zone (0, 1 or 2 of them)."""
        commander_zone = self.commander_zone
        if commander_zone is None:
            return []
        return self.entries_in(commander_zone.id)

    def deck_colors(self, exclude_entry_id: str | None = None) -> frozenset[str] | None:
        """
        Deck color identity: union of all commanders' identities.

        Returns None when no commander is designated, meaning color
        identity is not restricted.
        """
        commanders = [c for c in self.commanders if c.id != exclude_entry_id]
        if not commanders:
            return None
        colors: frozenset[str] = frozenset()
        for commander in commanders:
            colors |= color_identity(commander.card)
        return colors

    def copies_of(self, key: str) -> int:
        """Total quantity across the whole deck of cards sharing a normalized name."""
        return sum(e.qty for e in self.entries if e.key == key)

    def total_cards(self) -> int:
        return sum(e.qty for e in self.entries)

    # --- Structural helpers (no legality) ---

    def with_zone(self, zone: Zone) -> "ZoneModel":
        return ZoneModel.build(self.deck_id, [*self.zones, zone], list(self.entries))

    def with_entries(self, changed: list[Entry], removed: set[str] | None = None) -> "ZoneModel":
        """New model with entries upserted by id and `removed` ids dropped."""
        removed = removed or set()
        by_id = {e.id: e for e in self.entries if e.id not in removed}
        for entry in changed:
            by_id[entry.id] = entry
        return ZoneModel.build(self.deck_id, list(self.zones), list(by_id.values()))

    def densified(self, zone_id: str) -> list[Entry]:
        """Entries of a zone whose position must change to close gaps."""
        changed: list[Entry] = []
        for index, entry in enumerate(self.entries_in(zone_id)):
            if entry.position != index:
                changed.append(replace(entry, position=index))
        return changed

    def check_invariants(self) -> None:
        """Raise InvariantViolation if any zone's positions are not 0..n-1."""
        zone_ids = {z.id for z in self.zones}
        for entry in self.entries:
            if entry.zone_id not in zone_ids:
                raise InvariantViolation(f"Entry {entry.id} sits in unknown zone {entry.zone_id}")
            if entry.qty < 1:
                raise InvariantViolation(f"Entry {entry.id} has quantity {entry.qty}")
        for zone in self.zones:
            positions = [e.position for e in self.entries_in(zone.id)]
            if positions != list(range(len(positions))):
                raise InvariantViolation(
                    f"Zone {zone.name!r} has non-contiguous positions {positions}"
                )
