"""
SQLAlchemy ORM models for persistent storage.

Models mirror the deck dataclasses. Card snapshots are stored as JSON on
the entry row, so a deck renders without touching the catalog.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from commandzone.config import DEFAULT_FORMAT


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class DeckDB(Base):
    """A deck. Deleting it deletes its zones and entries."""

    __tablename__ = "decks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    format: Mapped[str] = mapped_column(String(50), default=DEFAULT_FORMAT)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    zones: Mapped[list["ZoneDB"]] = relationship(
        back_populates="deck", cascade="all, delete-orphan", passive_deletes=True
    )
    entries: Mapped[list["EntryDB"]] = relationship(
        back_populates="deck", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<DeckDB(id={self.id}, name={self.name})>"


class ZoneDB(Base):
    """A named column of a deck."""

    __tablename__ = "zones"
    __table_args__ = (UniqueConstraint("deck_id", "order", name="uq_zone_deck_order"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    deck_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(100))
    order: Mapped[int] = mapped_column(Integer)

    deck: Mapped["DeckDB"] = relationship(back_populates="zones")

    def __repr__(self) -> str:
        return f"<ZoneDB(name={self.name}, order={self.order})>"


class EntryDB(Base):
    """One card row in a zone."""

    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    deck_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )
    zone_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("zones.id", ondelete="CASCADE"), index=True
    )
    qty: Mapped[int] = mapped_column(Integer, default=1)
    position: Mapped[int] = mapped_column(Integer, default=0)

    # Catalog snapshot captured when the card was added
    card: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    deck: Mapped["DeckDB"] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return f"<EntryDB(zone={self.zone_id}, pos={self.position}, qty={self.qty})>"
