"""
Commander legality engine.

Gates individual mutations (add, move, set commander, quantity change)
against the current board, and audits a whole deck read-only.

Rules for adding `qty` copies of a card to a zone, checked in order:
1. Commander zone: the card must be commander-eligible, and the zone must
   not already hold a different commander (unless the two can partner,
   never more than MAX_COMMANDERS).
2. Other zones, when a commander is designated: the card's color identity
   must be a subset of the deck's.
3. Copies: deck-wide total for the card's normalized name plus `qty` must
   not exceed its copy limit.

Removing cards is always allowed and never re-validates the rest of the
deck; stale findings surface through audit_deck() instead.
"""

import logging
from dataclasses import dataclass, field

from commandzone.config import MAX_COMMANDERS
from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry
from commandzone.models.legality import Decision, color_identity_label
from commandzone.models.zone_model import ZoneModel
from commandzone.services.card_facts import (
    SINGLETON_LIMIT,
    can_pair_as_commanders,
    color_identity,
    copy_limit,
    is_commander_eligible,
    is_subset_colors,
)

logger = logging.getLogger(__name__)


def check_add(
    model: ZoneModel,
    card: CardSnapshot,
    zone_id: str,
    qty: int = 1,
    *,
    replacing_commander: bool = False,
) -> Decision:
    """
    Decide whether `qty` copies of `card` may be added to a zone.

    Args:
        model: Current board
        card: Snapshot of the card being added
        zone_id: Destination zone
        qty: Copies being added
        replacing_commander: True when this add displaces the current
            commander(s), so slot occupancy is not checked

    Returns:
        Decision (allowed, or denied with one reason)
    """
    if model.is_commander_zone(zone_id):
        existing = model.entry_for_card(card, zone_id)
        acting_is_sole_commander = existing is not None and len(model.commanders) == 1
        if not acting_is_sole_commander:
            decision = _check_commander_admission(
                model, card, existing, replacing_commander=replacing_commander
            )
            if not decision:
                return decision
    else:
        decision = _check_color_identity(card, model.deck_colors())
        if not decision:
            return decision

    return _check_copies(model, card, qty, in_commander_zone=model.is_commander_zone(zone_id))


def check_quantity_change(model: ZoneModel, entry_id: str, delta: int) -> Decision:
    """Decrements are always allowed; increments re-run color and copy rules."""
    if delta <= 0:
        return Decision.allow()

    entry = model.entry(entry_id)
    in_commander_zone = model.is_commander_zone(entry.zone_id)
    if not in_commander_zone:
        decision = _check_color_identity(entry.card, model.deck_colors())
        if not decision:
            return decision
    return _check_copies(model, entry.card, delta, in_commander_zone=in_commander_zone)


def check_move(model: ZoneModel, entry_id: str, to_zone_id: str) -> Decision:
    """
    Decide whether an entry may be dragged into a zone.

    Moves never change copy totals, so only the commander and color
    identity rules apply. Color identity is judged against the commanders
    that remain after the move.
    """
    entry = model.entry(entry_id)
    from_commander_zone = model.is_commander_zone(entry.zone_id)

    if model.is_commander_zone(to_zone_id):
        if from_commander_zone:
            return Decision.allow()
        if not _eligible_beside(entry.card, model.commanders):
            return Decision.not_commander_eligible(entry.card)
        decision = _check_pairing(model.commanders, entry.card)
        if not decision:
            return decision
        # A commander row must hold exactly one copy
        if entry.qty > SINGLETON_LIMIT:
            return Decision.copy_limit_exceeded(entry.name, SINGLETON_LIMIT, entry.qty)
        return Decision.allow()

    deck_colors = model.deck_colors(exclude_entry_id=entry.id if from_commander_zone else None)
    return _check_color_identity(entry.card, deck_colors)


def check_set_commander(model: ZoneModel, card: CardSnapshot, *, allow_replace: bool) -> Decision:
    """Gate for an explicit "set commander" action."""
    commander_zone = model.commander_zone
    if commander_zone is None:
        raise ValueError(f"Deck {model.deck_id} has no Commander zone")
    replacing = allow_replace and needs_replacement(model, card)
    return check_add(model, card, commander_zone.id, 1, replacing_commander=replacing)


def needs_replacement(model: ZoneModel, card: CardSnapshot) -> bool:
    """True when installing `card` as commander must displace the current commander(s)."""
    commanders = [c for c in model.commanders if c.key != card.key]
    if not commanders:
        return False
    return not _check_pairing(commanders, card)


def _check_commander_admission(
    model: ZoneModel,
    card: CardSnapshot,
    existing: Entry | None,
    *,
    replacing_commander: bool,
) -> Decision:
    others = [c for c in model.commanders if existing is None or c.id != existing.id]
    if replacing_commander:
        others = []
    if not _eligible_beside(card, others):
        return Decision.not_commander_eligible(card)
    return _check_pairing(others, card)


def _eligible_beside(card: CardSnapshot, commanders: list[Entry]) -> bool:
    """Eligible alone, or as a Background next to a single commander that chooses one."""
    if len(commanders) == 1:
        return is_commander_eligible(card, partner=commanders[0].card)
    return is_commander_eligible(card)


def _check_pairing(commanders: list[Entry], card: CardSnapshot) -> Decision:
    """The Commander zone holds one card, or two that can partner."""
    if not commanders:
        return Decision.allow()
    if len(commanders) >= MAX_COMMANDERS:
        return Decision.commander_slot_occupied(card)
    if can_pair_as_commanders(commanders[0].card, card):
        return Decision.allow()
    return Decision.commander_slot_occupied(card)


def _check_color_identity(card: CardSnapshot, deck_colors: frozenset[str] | None) -> Decision:
    if deck_colors is None:
        return Decision.allow()
    card_colors = color_identity(card)
    if is_subset_colors(card_colors, deck_colors):
        return Decision.allow()
    return Decision.color_identity_violation(card, card_colors, deck_colors)


def _check_copies(
    model: ZoneModel, card: CardSnapshot, qty: int, *, in_commander_zone: bool
) -> Decision:
    limit = SINGLETON_LIMIT if in_commander_zone else copy_limit(card)
    if limit is None:
        return Decision.allow()
    attempted = model.copies_of(card.key) + qty
    if attempted > limit:
        return Decision.copy_limit_exceeded(card.name, limit, attempted)
    return Decision.allow()


# =============================================================================
# DECK-WIDE AUDIT
# =============================================================================


@dataclass(frozen=True)
class ColorFinding:
    """An entry that breaks color identity or commander eligibility."""

    entry_id: str
    name: str
    reason: str


@dataclass(frozen=True)
class CopyFinding:
    """
    Too many copies of one name.

    `entry_id` is the row a "Fix (-1)" action should decrement.
    """

    entry_id: str
    name: str
    qty: int
    allowed: int


@dataclass
class DeckAudit:
    """Read-only findings for the whole deck."""

    illegal_color: list[ColorFinding] = field(default_factory=list)
    illegal_copies: list[CopyFinding] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.illegal_color and not self.illegal_copies


def audit_deck(model: ZoneModel) -> DeckAudit:
    """
    Find every color identity and copy limit problem in the deck.

    Commander-zone entries are checked for eligibility and for holding more
    than one copy. Every other entry is checked against the deck's color
    identity (when a commander is set), and names whose deck-wide total
    exceeds the copy limit are reported once, against their first row.
    Nothing is mutated.
    """
    audit = DeckAudit()
    deck_colors = model.deck_colors()
    reported_names: set[str] = set()

    for entry in model.entries:
        if not entry.key:
            continue

        if model.is_commander_zone(entry.zone_id):
            others = [c for c in model.commanders if c.id != entry.id]
            if not _eligible_beside(entry.card, others):
                audit.illegal_color.append(
                    ColorFinding(entry.id, entry.name, "Not commander-eligible.")
                )
            if entry.qty > SINGLETON_LIMIT:
                audit.illegal_copies.append(
                    CopyFinding(entry.id, entry.name, entry.qty, SINGLETON_LIMIT)
                )
            continue

        if deck_colors is not None:
            card_colors = color_identity(entry.card)
            if not is_subset_colors(card_colors, deck_colors):
                audit.illegal_color.append(
                    ColorFinding(
                        entry.id,
                        entry.name,
                        f"Color identity {color_identity_label(card_colors)} "
                        f"not allowed in {color_identity_label(deck_colors)}.",
                    )
                )

        limit = copy_limit(entry.card)
        total = model.copies_of(entry.key)
        if limit is not None and total > limit and entry.key not in reported_names:
            reported_names.add(entry.key)
            audit.illegal_copies.append(CopyFinding(entry.id, entry.name, total, limit))

    if not audit.is_clean:
        logger.debug(
            "Deck %s audit: %d color findings, %d copy findings",
            model.deck_id,
            len(audit.illegal_color),
            len(audit.illegal_copies),
        )
    return audit
