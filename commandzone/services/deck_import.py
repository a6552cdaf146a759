"""
Decklist import.

Turns pasted decklist text into validated AddCard mutations. Every line is
resolved against the catalog (exact name, then fuzzy), placed in its
default zone and gated by the legality engine against the board as it
would look after the previous lines. A line that cannot be imported is
reported and skipped; the rest of the list still goes in.
"""

import logging
from dataclasses import dataclass, field

from commandzone.models.failure import CatalogLookupFailure, FailureKind, ValidationDenied
from commandzone.models.mutations import AddCard
from commandzone.models.zone_model import ZoneModel
from commandzone.parsers.decklist import parse_decklist_text
from commandzone.services.catalog import CardCatalog, resolve_card
from commandzone.services.transitions import apply_mutation, placement_zone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportLineError:
    """A decklist line that was not imported."""

    line_no: int
    name: str
    qty: int
    kind: FailureKind
    message: str


@dataclass
class ImportResult:
    """
    Outcome of planning an import.

    Attributes:
        model: Board after every accepted line
        mutations: Accepted additions, in decklist order
        errors: Lines that were skipped, with the reason
    """

    model: ZoneModel
    mutations: list[AddCard] = field(default_factory=list)
    errors: list[ImportLineError] = field(default_factory=list)

    @property
    def imported_cards(self) -> int:
        return sum(m.qty for m in self.mutations)


async def import_decklist(model: ZoneModel, text: str, catalog: CardCatalog) -> ImportResult:
    """
    Plan the import of a decklist into a board.

    Args:
        model: Current board
        text: Pasted decklist text
        catalog: Card lookup service

    Returns:
        ImportResult; nothing is persisted here
    """
    result = ImportResult(model=model)

    for line in parse_decklist_text(text):
        try:
            card = await resolve_card(catalog, line.name)
        except CatalogLookupFailure as e:
            result.errors.append(
                ImportLineError(line.line_no, line.name, line.qty, e.kind, e.message)
            )
            continue

        if card is None:
            result.errors.append(
                ImportLineError(
                    line.line_no,
                    line.name,
                    line.qty,
                    FailureKind.NOT_FOUND,
                    f'No card named "{line.name}" was found.',
                )
            )
            continue

        mutation = AddCard(card=card, zone_id=placement_zone(result.model, card).id, qty=line.qty)
        try:
            transition = apply_mutation(result.model, mutation)
        except ValidationDenied as e:
            result.errors.append(
                ImportLineError(line.line_no, line.name, line.qty, e.kind, e.message)
            )
            continue

        result.model = transition.model
        result.mutations.append(mutation)

    logger.info(
        "Deck %s import: %d lines accepted, %d rejected",
        model.deck_id,
        len(result.mutations),
        len(result.errors),
    )
    return result
