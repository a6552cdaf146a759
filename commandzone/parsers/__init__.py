from commandzone.parsers.decklist import DecklistLine, build_decklist_text, parse_decklist_text

__all__ = [
    "DecklistLine",
    "build_decklist_text",
    "parse_decklist_text",
]
