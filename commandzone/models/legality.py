"""
Legality decisions, the result of gating a single deck mutation.

Every proposed add, move, commander change or quantity change is answered
with a Decision: either allowed, or denied with exactly one reason.
"""

from dataclasses import dataclass
from enum import Enum

from commandzone.models.card import CardSnapshot

# WUBRG display order for color identity labels
COLOR_ORDER = ("W", "U", "B", "R", "G")


def color_identity_label(colors: frozenset[str] | set[str]) -> str:
    """Render a color identity as "WUB"-style text, "C" for colorless."""
    if not colors:
        return "C"
    ordered = [c for c in COLOR_ORDER if c in colors]
    extra = sorted(c for c in colors if c not in COLOR_ORDER)
    return "".join(ordered + extra)


class DenyReason(str, Enum):
    """Why a mutation was refused."""

    NOT_COMMANDER_ELIGIBLE = "not_commander_eligible"
    COMMANDER_SLOT_OCCUPIED = "commander_slot_occupied"
    COLOR_IDENTITY_VIOLATION = "color_identity_violation"
    COPY_LIMIT_EXCEEDED = "copy_limit_exceeded"


@dataclass(frozen=True, slots=True)
class Decision:
    """
    Allow/deny answer from the legality engine.

    Attributes:
        allowed: True if the mutation may proceed
        reason: Deny reason (None when allowed)
        card_name: Card the decision is about
        card_colors: Card color identity (color identity denials)
        deck_colors: Deck color identity (color identity denials)
        limit: Copy limit (copy limit denials)
        attempted_total: Total copies the mutation would produce (copy limit denials)
    """

    allowed: bool
    reason: DenyReason | None = None
    card_name: str = ""
    card_colors: frozenset[str] = frozenset()
    deck_colors: frozenset[str] = frozenset()
    limit: int | None = None
    attempted_total: int | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def not_commander_eligible(cls, card: CardSnapshot) -> "Decision":
        return cls(
            allowed=False,
            reason=DenyReason.NOT_COMMANDER_ELIGIBLE,
            card_name=card.name,
        )

    @classmethod
    def commander_slot_occupied(cls, card: CardSnapshot) -> "Decision":
        return cls(
            allowed=False,
            reason=DenyReason.COMMANDER_SLOT_OCCUPIED,
            card_name=card.name,
        )

    @classmethod
    def color_identity_violation(
        cls,
        card: CardSnapshot,
        card_colors: frozenset[str],
        deck_colors: frozenset[str],
    ) -> "Decision":
        return cls(
            allowed=False,
            reason=DenyReason.COLOR_IDENTITY_VIOLATION,
            card_name=card.name,
            card_colors=card_colors,
            deck_colors=deck_colors,
        )

    @classmethod
    def copy_limit_exceeded(cls, name: str, limit: int, attempted_total: int) -> "Decision":
        return cls(
            allowed=False,
            reason=DenyReason.COPY_LIMIT_EXCEEDED,
            card_name=name,
            limit=limit,
            attempted_total=attempted_total,
        )

    @property
    def message(self) -> str:
        """User-facing explanation of a denial. Empty when allowed."""
        if self.reason is DenyReason.NOT_COMMANDER_ELIGIBLE:
            return (
                f"{self.card_name} is not commander-eligible (must be a legendary "
                'creature/planeswalker or say "can be your commander").'
            )
        if self.reason is DenyReason.COMMANDER_SLOT_OCCUPIED:
            return (
                "Commander slot already has a commander. Remove it first, "
                "or set the commander explicitly to replace it."
            )
        if self.reason is DenyReason.COLOR_IDENTITY_VIOLATION:
            return (
                f"Illegal color identity: {color_identity_label(self.card_colors)} "
                f"is not allowed in {color_identity_label(self.deck_colors)}."
            )
        if self.reason is DenyReason.COPY_LIMIT_EXCEEDED:
            return (
                f'Too many copies of "{self.card_name}". Allowed: {self.limit}, '
                f"attempted: {self.attempted_total}."
            )
        return ""
