"""
Card catalog search.

Results carry the full snapshot in `card` so a client can pass it straight
back to POST /decks/{deck_id}/cards without a second lookup.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from commandzone.api.decks import get_catalog
from commandzone.models.card import CardSnapshot
from commandzone.models.legality import color_identity_label
from commandzone.services.catalog import CardCatalog

router = APIRouter(prefix="/cards", tags=["cards"])


class CardResult(BaseModel):
    id: str
    name: str
    mana_cost: str
    type_line: str
    color_identity: str
    image_url: str
    card: dict[str, Any]


class CardSearchResponse(BaseModel):
    query: str
    cards: list[CardResult]
    count: int


def _card_result(card: CardSnapshot) -> CardResult:
    return CardResult(
        id=card.id,
        name=card.name,
        mana_cost=card.mana_cost,
        type_line=card.type_line,
        color_identity=color_identity_label(card.color_identity),
        image_url=card.image_url,
        card=card.to_dict(),
    )


@router.get("/search", response_model=CardSearchResponse)
async def search_cards(
    q: Annotated[str, Query(min_length=1, max_length=200)],
    catalog: Annotated[CardCatalog, Depends(get_catalog)],
    limit: Annotated[int, Query(ge=1, le=175)] = 50,
) -> CardSearchResponse:
    """Search the catalog. Paper printings only unless the query names a game."""
    query = q.strip()
    cards = (await catalog.search(query))[:limit]
    return CardSearchResponse(
        query=query,
        cards=[_card_result(c) for c in cards],
        count=len(cards),
    )
