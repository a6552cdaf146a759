import uuid
from dataclasses import dataclass, field
from datetime import datetime

from commandzone.config import COMMANDER_ZONE_NAME, DEFAULT_FORMAT
from commandzone.models.card import CardSnapshot


def new_id() -> str:
    """Fresh identifier for decks, zones and entries."""
    return str(uuid.uuid4())


@dataclass
class Deck:
    """
    The root record. Owns all of its zones and entries.

    Attributes:
        id: Deck identity
        name: Display name (e.g., "Atraxa Superfriends")
        format: Declared format, "commander" unless stated otherwise
    """

    id: str
    name: str
    format: str = DEFAULT_FORMAT
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Zone:
    """A named column of entries with a display order unique within its deck."""

    id: str
    deck_id: str
    name: str
    order: int

    @property
    def is_commander(self) -> bool:
        """The zone named "Commander" (any case) governs commander designation."""
        return self.name.strip().casefold() == COMMANDER_ZONE_NAME.casefold()


@dataclass(frozen=True, slots=True)
class Entry:
    """
    One row of a zone: a card snapshot, how many copies, and where it sits.

    Positions are 0-based and dense within a zone. An entry never has
    quantity 0; decrementing to zero deletes it.
    """

    id: str
    deck_id: str
    zone_id: str
    qty: int
    position: int
    card: CardSnapshot
    created_at: datetime | None = field(default=None, compare=False)
    updated_at: datetime | None = field(default=None, compare=False)

    @property
    def name(self) -> str:
        return self.card.name

    @property
    def key(self) -> str:
        return self.card.key
