"""
Board transitions: (model, mutation) -> (model', effects).

Every mutation is gated by the legality engine before anything changes.
A denied mutation raises ValidationDenied and leaves the model untouched;
an allowed one yields the new model plus the effects a driver must
persist. The resulting model is checked for dense zone positions before
it is returned, so a broken plan never reaches storage.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from commandzone.config import settings
from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Entry, Zone
from commandzone.models.failure import (
    FailureKind,
    InvariantViolation,
    KnownError,
    ValidationDenied,
)
from commandzone.models.legality import Decision
from commandzone.models.mutations import (
    AddCard,
    ChangeQuantity,
    CreateZone,
    DeleteEntry,
    Effect,
    InsertEntry,
    MoveEntry,
    Mutation,
    RemoveEntry,
    ReplaceSnapshot,
    SetCommander,
    SetTags,
    UpdateEntry,
)
from commandzone.models.zone_model import ZoneModel
from commandzone.services import legality
from commandzone.services.card_facts import DEFAULT_ZONE, classify_zone_default
from commandzone.services.reorder import plan_move

logger = logging.getLogger(__name__)


class CommanderPolicy(str, Enum):
    """What "set commander" does when the Commander zone is already occupied."""

    DENY = "deny"
    DISPLACE = "displace"


@dataclass(frozen=True)
class Transition:
    """Outcome of an allowed mutation."""

    model: ZoneModel
    effects: list[Effect] = field(default_factory=list)


def apply_mutation(
    model: ZoneModel,
    mutation: Mutation,
    *,
    policy: CommanderPolicy | None = None,
    fallback_zone_name: str | None = None,
) -> Transition:
    """
    Apply one mutation to a board.

    Args:
        model: Current board
        mutation: Requested change
        policy: Commander replacement policy (defaults to settings)
        fallback_zone_name: Zone receiving displaced commanders (defaults to settings)

    Returns:
        Transition with the new model and the effects to persist

    Raises:
        ValidationDenied: If a legality rule refuses the mutation
        InvariantViolation: If the mutation references entries or zones
            that are not on the board
    """
    if policy is None:
        policy = CommanderPolicy(settings.commander_replacement)
    if fallback_zone_name is None:
        fallback_zone_name = settings.fallback_zone_name

    if isinstance(mutation, AddCard):
        transition = _add_card(model, mutation)
    elif isinstance(mutation, SetCommander):
        transition = _set_commander(model, mutation, policy, fallback_zone_name)
    elif isinstance(mutation, ChangeQuantity):
        transition = _change_quantity(model, mutation)
    elif isinstance(mutation, RemoveEntry):
        transition = _delete(model, model.entry(mutation.entry_id))
    elif isinstance(mutation, MoveEntry):
        transition = _move(model, mutation)
    elif isinstance(mutation, ReplaceSnapshot):
        entry = model.entry(mutation.entry_id)
        card = replace(mutation.card, tags=entry.card.tags)
        transition = _update(model, [replace(entry, card=card)])
    elif isinstance(mutation, SetTags):
        entry = model.entry(mutation.entry_id)
        card = replace(entry.card, tags=frozenset(mutation.tags))
        transition = _update(model, [replace(entry, card=card)])
    else:
        raise TypeError(f"Unsupported mutation: {type(mutation).__name__}")

    transition.model.check_invariants()
    return transition


# Zones tried, in order, when a card's default zone is missing from the deck
PLACEMENT_FALLBACKS: dict[str, tuple[str, ...]] = {
    "Vehicles": ("Artifacts",),
}


def placement_zone(model: ZoneModel, card: CardSnapshot) -> Zone:
    """
    Zone a newly added card lands in when the caller names none.

    Uses the card's type-line default, then its fallbacks, then "Maybe",
    then the first non-Commander zone. Never resolves to the Commander zone.

    Raises:
        InvariantViolation: If the deck has no zone besides Commander
    """
    default = classify_zone_default(card)
    for name in (default, *PLACEMENT_FALLBACKS.get(default, ()), DEFAULT_ZONE):
        zone = model.zone_named(name)
        if zone is not None and not zone.is_commander:
            return zone
    for zone in model.zones:
        if not zone.is_commander:
            return zone
    raise InvariantViolation(f"Deck {model.deck_id} has no zone to place {card.name!r} in")


def _deny(model: ZoneModel, decision: Decision) -> ValidationDenied:
    logger.info("Deck %s: denied %s (%s)", model.deck_id, decision.card_name, decision.reason)
    return ValidationDenied(decision)


def _update(model: ZoneModel, changed: list[Entry]) -> Transition:
    return Transition(
        model=model.with_entries(changed),
        effects=[UpdateEntry(e) for e in changed],
    )


def _add_card(model: ZoneModel, mutation: AddCard) -> Transition:
    if mutation.qty < 1:
        raise ValueError(f"Quantity must be positive, got {mutation.qty}")
    model.zone(mutation.zone_id)

    decision = legality.check_add(model, mutation.card, mutation.zone_id, mutation.qty)
    if not decision:
        raise _deny(model, decision)

    existing = model.entry_for_card(mutation.card, mutation.zone_id)
    if existing is not None:
        return _update(model, [replace(existing, qty=existing.qty + mutation.qty)])

    entry = Entry(
        id=mutation.entry_id,
        deck_id=model.deck_id,
        zone_id=mutation.zone_id,
        qty=mutation.qty,
        position=len(model.entries_in(mutation.zone_id)),
        card=mutation.card,
    )
    return Transition(model=model.with_entries([entry]), effects=[InsertEntry(entry)])


def _set_commander(
    model: ZoneModel,
    mutation: SetCommander,
    policy: CommanderPolicy,
    fallback_zone_name: str,
) -> Transition:
    commander_zone = model.commander_zone
    if commander_zone is None:
        raise KnownError(
            kind=FailureKind.INVALID_INPUT,
            message="No Commander zone found in this deck.",
        )

    if any(c.key == mutation.card.key for c in model.commanders):
        return Transition(model=model)

    allow_replace = policy is CommanderPolicy.DISPLACE
    decision = legality.check_set_commander(model, mutation.card, allow_replace=allow_replace)
    if not decision:
        raise _deny(model, decision)

    effects: list[Effect] = []
    if allow_replace and legality.needs_replacement(model, mutation.card):
        model, effects = _displace_commanders(model, mutation, fallback_zone_name)

    entry = Entry(
        id=mutation.entry_id,
        deck_id=model.deck_id,
        zone_id=commander_zone.id,
        qty=1,
        position=len(model.entries_in(commander_zone.id)),
        card=mutation.card,
    )
    effects.append(InsertEntry(entry))
    return Transition(model=model.with_entries([entry]), effects=effects)


def _displace_commanders(
    model: ZoneModel, mutation: SetCommander, fallback_zone_name: str
) -> tuple[ZoneModel, list[Effect]]:
    """Move every current commander to the end of the fallback zone, creating it if needed."""
    effects: list[Effect] = []
    fallback = model.zone_named(fallback_zone_name)
    if fallback is None:
        fallback = Zone(
            id=mutation.fallback_zone_id,
            deck_id=model.deck_id,
            name=fallback_zone_name,
            order=model.next_zone_order(),
        )
        model = model.with_zone(fallback)
        effects.append(CreateZone(fallback))

    start = len(model.entries_in(fallback.id))
    displaced = [
        replace(commander, zone_id=fallback.id, position=start + offset)
        for offset, commander in enumerate(model.commanders)
    ]
    for commander in displaced:
        logger.info(
            "Deck %s: displaced commander %s to %s", model.deck_id, commander.name, fallback.name
        )
    effects.extend(UpdateEntry(e) for e in displaced)
    return model.with_entries(displaced), effects


def _change_quantity(model: ZoneModel, mutation: ChangeQuantity) -> Transition:
    entry = model.entry(mutation.entry_id)
    if mutation.delta == 0:
        return Transition(model=model)

    decision = legality.check_quantity_change(model, entry.id, mutation.delta)
    if not decision:
        raise _deny(model, decision)

    new_qty = entry.qty + mutation.delta
    if new_qty <= 0:
        return _delete(model, entry)
    return _update(model, [replace(entry, qty=new_qty)])


def _delete(model: ZoneModel, entry: Entry) -> Transition:
    """Delete an entry and close the gap it leaves in its zone."""
    remaining = model.with_entries([], removed={entry.id})
    shifted = remaining.densified(entry.zone_id)
    effects: list[Effect] = [DeleteEntry(entry.id)]
    effects.extend(UpdateEntry(e) for e in shifted)
    return Transition(model=remaining.with_entries(shifted), effects=effects)


def _move(model: ZoneModel, mutation: MoveEntry) -> Transition:
    entry = model.entry(mutation.entry_id)
    model.zone(mutation.to_zone_id)

    decision = legality.check_move(model, entry.id, mutation.to_zone_id)
    if not decision:
        raise _deny(model, decision)

    updates = plan_move(
        model.lists(), entry.id, entry.zone_id, mutation.to_zone_id, mutation.index
    )
    changed = [
        replace(model.entry(u.entry_id), zone_id=u.zone_id, position=u.position) for u in updates
    ]
    return _update(model, changed)


# --- Convenience wrappers ---


def add_card(model: ZoneModel, card: CardSnapshot, zone_id: str, qty: int = 1) -> Transition:
    return apply_mutation(model, AddCard(card=card, zone_id=zone_id, qty=qty))


def set_commander(
    model: ZoneModel, card: CardSnapshot, *, policy: CommanderPolicy | None = None
) -> Transition:
    return apply_mutation(model, SetCommander(card=card), policy=policy)


def change_quantity(model: ZoneModel, entry_id: str, delta: int) -> Transition:
    return apply_mutation(model, ChangeQuantity(entry_id=entry_id, delta=delta))


def remove_entry(model: ZoneModel, entry_id: str) -> Transition:
    return apply_mutation(model, RemoveEntry(entry_id=entry_id))


def move_entry(
    model: ZoneModel, entry_id: str, to_zone_id: str, index: int | None = None
) -> Transition:
    return apply_mutation(model, MoveEntry(entry_id=entry_id, to_zone_id=to_zone_id, index=index))
