"""
Deck API endpoints.

Deck records are managed directly through the database session. Board
changes go through a DeckSession so every mutation is gated by the
legality engine before it is saved. Refusals and collaborator failures
are raised as domain errors and rendered by the handlers in main.py.
"""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from commandzone.config import DEFAULT_FORMAT
from commandzone.db.database import async_session_factory, get_session
from commandzone.db.operations import (
    create_deck,
    deck_to_model,
    delete_deck,
    get_deck,
    list_decks,
)
from commandzone.db.store import ChangeFeed, DeckStore, SqlDeckStore
from commandzone.models.card import CardSnapshot
from commandzone.models.deck import Deck, Entry
from commandzone.models.legality import color_identity_label
from commandzone.models.zone_model import ZoneModel
from commandzone.services.catalog import CardCatalog, ScryfallCatalog, resolve_card
from commandzone.services.deck_session import DeckSession

router = APIRouter(prefix="/decks", tags=["decks"])

change_feed = ChangeFeed()
_store = SqlDeckStore(async_session_factory, feed=change_feed)


def get_store() -> DeckStore:
    """Dependency providing the deck store."""
    return _store


def get_catalog() -> CardCatalog:
    """Dependency providing the card catalog."""
    return ScryfallCatalog()


# --- Request models ---


class CreateDeckRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    format: str = Field(default=DEFAULT_FORMAT, max_length=50)


class CardRequest(BaseModel):
    """
    Identifies a card to place.

    Give a catalog `card_id`, a card `name` (exact, then fuzzy match), or a
    full catalog `card` object as returned by a search.
    """

    card_id: str | None = None
    name: str | None = None
    card: dict[str, Any] | None = None


class AddCardRequest(CardRequest):
    zone_id: str | None = Field(default=None, description="Target zone; default zone by type")
    qty: int = Field(default=1, ge=1, le=99)


class MoveEntryRequest(BaseModel):
    to_zone_id: str
    index: int | None = Field(default=None, ge=0, description="Drop index; end of zone if omitted")
    over_entry_id: str | None = Field(default=None, description="Entry the card was dropped on")


class SetTagsRequest(BaseModel):
    tags: list[str] = Field(default_factory=list, max_length=20, description="e.g. own, proxy")


class ImportRequest(BaseModel):
    text: str = Field(..., min_length=1)


# --- Response models ---


class DeckResponse(BaseModel):
    id: str
    name: str
    format: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DeckListResponse(BaseModel):
    decks: list[DeckResponse]
    count: int


class EntryResponse(BaseModel):
    id: str
    zone_id: str
    qty: int
    position: int
    card_id: str
    name: str
    mana_cost: str
    type_line: str
    color_identity: str
    image_url: str
    tags: list[str] = Field(default_factory=list)


class ZoneResponse(BaseModel):
    id: str
    name: str
    order: int
    is_commander: bool
    entries: list[EntryResponse] = Field(default_factory=list)


class BoardResponse(BaseModel):
    deck_id: str
    zones: list[ZoneResponse]
    commanders: list[str] = Field(default_factory=list)
    color_identity: str | None = Field(
        default=None, description="Deck color identity; null when no commander is set"
    )
    total_cards: int = 0


class StatsResponse(BaseModel):
    total_cards: int
    land_count: int
    spell_count: int
    average_mana_value: float
    curve: dict[str, int]
    pips: dict[str, int]
    ramp_count: int
    draw_count: int
    estimated_price_total: float


class ColorFindingResponse(BaseModel):
    entry_id: str
    name: str
    reason: str


class CopyFindingResponse(BaseModel):
    entry_id: str
    name: str
    qty: int
    allowed: int


class AuditResponse(BaseModel):
    is_clean: bool
    illegal_color: list[ColorFindingResponse] = Field(default_factory=list)
    illegal_copies: list[CopyFindingResponse] = Field(default_factory=list)


class ExportResponse(BaseModel):
    text: str
    total_cards: int


class ImportErrorResponse(BaseModel):
    line_no: int
    name: str
    qty: int
    kind: str
    message: str


class ImportResponse(BaseModel):
    imported_lines: int
    imported_cards: int
    errors: list[ImportErrorResponse] = Field(default_factory=list)
    board: BoardResponse


class RefreshResponse(BaseModel):
    refreshed: int
    board: BoardResponse


# --- Converters ---


def _deck_response(deck: Deck) -> DeckResponse:
    return DeckResponse(
        id=deck.id,
        name=deck.name,
        format=deck.format,
        created_at=deck.created_at,
        updated_at=deck.updated_at,
    )


def _entry_response(entry: Entry) -> EntryResponse:
    card = entry.card
    return EntryResponse(
        id=entry.id,
        zone_id=entry.zone_id,
        qty=entry.qty,
        position=entry.position,
        card_id=card.id,
        name=card.name,
        mana_cost=card.mana_cost,
        type_line=card.type_line,
        color_identity=color_identity_label(card.color_identity),
        image_url=card.image_url,
        tags=sorted(card.tags),
    )


def board_response(model: ZoneModel) -> BoardResponse:
    lists = model.lists()
    deck_colors = model.deck_colors()
    return BoardResponse(
        deck_id=model.deck_id,
        zones=[
            ZoneResponse(
                id=zone.id,
                name=zone.name,
                order=zone.order,
                is_commander=zone.is_commander,
                entries=[_entry_response(e) for e in lists[zone.id]],
            )
            for zone in model.zones
        ],
        commanders=[c.name for c in model.commanders],
        color_identity=None if deck_colors is None else color_identity_label(deck_colors),
        total_cards=model.total_cards(),
    )


# --- Helpers ---


async def _open(store: DeckStore, deck_id: str) -> DeckSession:
    return await DeckSession.open(store, deck_id, subscribe=False)


def _require_entry(deck: DeckSession, entry_id: str) -> None:
    if deck.model.find_entry(entry_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Entry '{entry_id}' not found in deck '{deck.deck_id}'",
        )


def _require_zone(deck: DeckSession, zone_id: str) -> None:
    if deck.model.find_zone(zone_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Zone '{zone_id}' not found in deck '{deck.deck_id}'",
        )


async def _resolve_request_card(request: CardRequest, catalog: CardCatalog) -> CardSnapshot:
    """Turn a CardRequest into a snapshot, asking the catalog when needed."""
    if request.card:
        return CardSnapshot.from_scryfall(request.card)

    card: CardSnapshot | None = None
    if request.card_id:
        card = await catalog.get(request.card_id)
    elif request.name:
        card = await resolve_card(catalog, request.name)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide card_id, name or card",
        )

    if card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{request.card_id or request.name}' not found in catalog",
        )
    return card


# --- Deck records ---


@router.post("", response_model=DeckResponse, status_code=status.HTTP_201_CREATED)
async def create_deck_endpoint(
    request: CreateDeckRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """Create a deck seeded with the default zones."""
    deck = await create_deck(session, request.name.strip(), request.format)
    return _deck_response(deck_to_model(deck))


@router.get("", response_model=DeckListResponse)
async def list_decks_endpoint(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckListResponse:
    decks = [_deck_response(deck_to_model(d)) for d in await list_decks(session)]
    return DeckListResponse(decks=decks, count=len(decks))


@router.get("/{deck_id}", response_model=DeckResponse)
async def get_deck_endpoint(
    deck_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """Returns 404 if the deck does not exist."""
    deck = await get_deck(session, deck_id)
    if deck is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deck '{deck_id}' not found",
        )
    return _deck_response(deck_to_model(deck))


@router.delete("/{deck_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deck_endpoint(
    deck_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Response:
    """Delete a deck with all of its zones and entries."""
    deleted = await delete_deck(session, deck_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deck '{deck_id}' not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Board ---


@router.get("/{deck_id}/board", response_model=BoardResponse)
async def get_board(
    deck_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> BoardResponse:
    deck = await _open(store, deck_id)
    return board_response(deck.model)


@router.post("/{deck_id}/cards", response_model=BoardResponse)
async def add_card_endpoint(
    deck_id: str,
    request: AddCardRequest,
    store: Annotated[DeckStore, Depends(get_store)],
    catalog: Annotated[CardCatalog, Depends(get_catalog)],
) -> BoardResponse:
    """
    Add a card to a zone.

    Without a zone_id the card goes to the default zone for its type.
    Refused with 409 when a legality rule forbids the addition.
    """
    deck = await _open(store, deck_id)
    if request.zone_id is not None:
        _require_zone(deck, request.zone_id)
    card = await _resolve_request_card(request, catalog)
    model = await deck.add_card(card, request.zone_id, request.qty)
    return board_response(model)


@router.post("/{deck_id}/commander", response_model=BoardResponse)
async def set_commander_endpoint(
    deck_id: str,
    request: CardRequest,
    store: Annotated[DeckStore, Depends(get_store)],
    catalog: Annotated[CardCatalog, Depends(get_catalog)],
) -> BoardResponse:
    """Install a commander, applying the configured replacement policy."""
    deck = await _open(store, deck_id)
    card = await _resolve_request_card(request, catalog)
    model = await deck.set_commander(card)
    return board_response(model)


@router.post("/{deck_id}/entries/{entry_id}/increment", response_model=BoardResponse)
async def increment_entry(
    deck_id: str,
    entry_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> BoardResponse:
    deck = await _open(store, deck_id)
    _require_entry(deck, entry_id)
    return board_response(await deck.increment(entry_id))


@router.post("/{deck_id}/entries/{entry_id}/decrement", response_model=BoardResponse)
async def decrement_entry(
    deck_id: str,
    entry_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> BoardResponse:
    """Remove one copy; the entry is deleted when its quantity reaches 0."""
    deck = await _open(store, deck_id)
    _require_entry(deck, entry_id)
    return board_response(await deck.decrement(entry_id))


@router.delete("/{deck_id}/entries/{entry_id}", response_model=BoardResponse)
async def remove_entry(
    deck_id: str,
    entry_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> BoardResponse:
    deck = await _open(store, deck_id)
    _require_entry(deck, entry_id)
    return board_response(await deck.remove(entry_id))


@router.post("/{deck_id}/entries/{entry_id}/move", response_model=BoardResponse)
async def move_entry(
    deck_id: str,
    entry_id: str,
    request: MoveEntryRequest,
    store: Annotated[DeckStore, Depends(get_store)],
) -> BoardResponse:
    """Drag-and-drop move within or across zones."""
    deck = await _open(store, deck_id)
    _require_entry(deck, entry_id)
    _require_zone(deck, request.to_zone_id)
    model = await deck.move(
        entry_id, request.to_zone_id, index=request.index, over_entry_id=request.over_entry_id
    )
    return board_response(model)


@router.put("/{deck_id}/entries/{entry_id}/tags", response_model=BoardResponse)
async def set_entry_tags(
    deck_id: str,
    entry_id: str,
    request: SetTagsRequest,
    store: Annotated[DeckStore, Depends(get_store)],
) -> BoardResponse:
    """Replace an entry's user tags. Tags are lowercased; blanks are dropped."""
    deck = await _open(store, deck_id)
    _require_entry(deck, entry_id)
    tags = frozenset(t.strip().lower() for t in request.tags if t.strip())
    return board_response(await deck.set_tags(entry_id, tags))


# --- Read-only views ---


@router.get("/{deck_id}/stats", response_model=StatsResponse)
async def get_stats(
    deck_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> StatsResponse:
    deck = await _open(store, deck_id)
    stats = deck.stats()
    return StatsResponse(
        total_cards=stats.total_cards,
        land_count=stats.land_count,
        spell_count=stats.spell_count,
        average_mana_value=stats.average_mana_value,
        curve=stats.curve,
        pips=stats.pips,
        ramp_count=stats.ramp_count,
        draw_count=stats.draw_count,
        estimated_price_total=stats.estimated_price_total,
    )


@router.get("/{deck_id}/audit", response_model=AuditResponse)
async def get_audit(
    deck_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> AuditResponse:
    """Deck-wide color identity and copy limit findings."""
    deck = await _open(store, deck_id)
    audit = deck.audit()
    return AuditResponse(
        is_clean=audit.is_clean,
        illegal_color=[
            ColorFindingResponse(entry_id=f.entry_id, name=f.name, reason=f.reason)
            for f in audit.illegal_color
        ],
        illegal_copies=[
            CopyFindingResponse(entry_id=f.entry_id, name=f.name, qty=f.qty, allowed=f.allowed)
            for f in audit.illegal_copies
        ],
    )


@router.get("/{deck_id}/export", response_model=ExportResponse)
async def export_decklist(
    deck_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
) -> ExportResponse:
    deck = await _open(store, deck_id)
    return ExportResponse(text=deck.export_text(), total_cards=deck.model.total_cards())


# --- Catalog-backed actions ---


@router.post("/{deck_id}/import", response_model=ImportResponse)
async def import_decklist_endpoint(
    deck_id: str,
    request: ImportRequest,
    store: Annotated[DeckStore, Depends(get_store)],
    catalog: Annotated[CardCatalog, Depends(get_catalog)],
) -> ImportResponse:
    """
    Import a pasted decklist.

    Lines that cannot be resolved or are refused by a legality rule are
    reported in `errors`; every other line is added.
    """
    deck = await _open(store, deck_id)
    result = await deck.import_text(request.text, catalog)
    return ImportResponse(
        imported_lines=len(result.mutations),
        imported_cards=result.imported_cards,
        errors=[
            ImportErrorResponse(
                line_no=e.line_no, name=e.name, qty=e.qty, kind=e.kind.value, message=e.message
            )
            for e in result.errors
        ],
        board=board_response(deck.model),
    )


@router.post("/{deck_id}/refresh", response_model=RefreshResponse)
async def refresh_snapshots(
    deck_id: str,
    store: Annotated[DeckStore, Depends(get_store)],
    catalog: Annotated[CardCatalog, Depends(get_catalog)],
) -> RefreshResponse:
    """Re-fetch every card snapshot of the deck from the catalog."""
    deck = await _open(store, deck_id)
    refreshed = await deck.refresh_all(catalog)
    return RefreshResponse(refreshed=refreshed, board=board_response(deck.model))
