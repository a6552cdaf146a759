"""
Card snapshots: the per-entry copy of catalog data.

A snapshot is captured when a card is added to a deck and is read-only
afterwards. It is only ever replaced wholesale, by re-fetching the card
from the catalog.
"""

import unicodedata
from dataclasses import dataclass, field
from typing import Any

# Scryfall fields kept on a snapshot (everything else in the catalog payload is dropped)
SNAPSHOT_FIELDS = (
    "id",
    "name",
    "mana_cost",
    "cmc",
    "type_line",
    "oracle_text",
    "color_identity",
    "set",
    "set_name",
    "rarity",
    "prices",
    "image_uris",
    "card_faces",
)


def normalize_name(name: str | None) -> str:
    """
    Grouping key for card names.

    Lowercases, strips diacritics and collapses whitespace, so that
    "Nazgûl", "nazgul" and " NAZGUL " all share one key. Every copy-limit
    and duplicate check groups by this key.
    """
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


@dataclass(frozen=True, slots=True)
class CardSnapshot:
    """
    Immutable attribute bag for one card.

    Attributes:
        id: Catalog (Scryfall) id
        name: Card name exactly as printed
        mana_cost: Bracketed mana cost, e.g. "{2}{W/U}{B}"
        cmc: Mana value as reported by the catalog (may be missing)
        type_line: Full type line, e.g. "Legendary Creature — Elf Druid"
        oracle_text: Rules text (faces joined for double-faced cards)
        color_identity: Color identity symbols; empty means colorless
        prices: Catalog price fields (usd, usd_foil, usd_etched, eur, tix)
        tags: User-assigned labels such as "own" or "proxy"
    """

    id: str
    name: str
    mana_cost: str = ""
    cmc: Any = None
    type_line: str = ""
    oracle_text: str = ""
    color_identity: frozenset[str] = field(default_factory=frozenset)
    set: str = ""
    set_name: str = ""
    rarity: str = ""
    prices: dict[str, Any] = field(default_factory=dict)
    image_uris: dict[str, str] = field(default_factory=dict)
    card_faces: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def key(self) -> str:
        """Normalized name used for copy-limit grouping."""
        return normalize_name(self.name)

    @property
    def image_url(self) -> str:
        """Normal-size image, falling back to the first face that has one."""
        if self.image_uris.get("normal"):
            return self.image_uris["normal"]
        for face in self.card_faces:
            normal = (face.get("image_uris") or {}).get("normal")
            if normal:
                return str(normal)
        return ""

    @classmethod
    def from_scryfall(
        cls, card: dict[str, Any], tags: frozenset[str] = frozenset()
    ) -> "CardSnapshot":
        """Capture the useful bits of a Scryfall card object."""
        faces = tuple(card.get("card_faces") or ())

        oracle_text = card.get("oracle_text")
        if oracle_text is None and faces:
            oracle_text = "\n//\n".join(f.get("oracle_text", "") for f in faces)

        mana_cost = card.get("mana_cost")
        if not mana_cost and faces:
            mana_cost = faces[0].get("mana_cost", "")

        return cls(
            id=str(card.get("id", "")),
            name=str(card.get("name", "")).strip(),
            mana_cost=mana_cost or "",
            cmc=card.get("cmc"),
            type_line=card.get("type_line") or "",
            oracle_text=oracle_text or "",
            color_identity=frozenset(card.get("color_identity") or ()),
            set=card.get("set") or "",
            set_name=card.get("set_name") or "",
            rarity=card.get("rarity") or "",
            prices=dict(card.get("prices") or {}),
            image_uris=dict(card.get("image_uris") or {}),
            card_faces=faces,
            tags=frozenset(tags),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CardSnapshot":
        """Rebuild a snapshot from its stored JSON form."""
        return cls.from_scryfall(data, tags=frozenset(data.get("tags") or ()))

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form for persistence."""
        return {
            "id": self.id,
            "name": self.name,
            "mana_cost": self.mana_cost,
            "cmc": self.cmc,
            "type_line": self.type_line,
            "oracle_text": self.oracle_text,
            "color_identity": sorted(self.color_identity),
            "set": self.set,
            "set_name": self.set_name,
            "rarity": self.rarity,
            "prices": dict(self.prices),
            "image_uris": dict(self.image_uris),
            "card_faces": list(self.card_faces),
            "tags": sorted(self.tags),
        }
