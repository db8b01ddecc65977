"""
SQLAlchemy ORM models for persistent storage.

Cards and prices are mirrored from the catalog service; collection
entries, trackers and sync settings are owned by this application.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    One printing of a card in one set and language.

    Keyed by the catalog's stable id. Fields are overwritten on every
    reconciliation of the same printing.
    """

    __tablename__ = "cards"
    __table_args__ = (Index("ix_cards_set_collector", "set_code", "collector_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scryfall_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    set_code: Mapped[str] = mapped_column(String(16), index=True)
    set_name: Mapped[str] = mapped_column(String(255), default="")
    collector_number: Mapped[str] = mapped_column(String(32), default="")
    rarity: Mapped[str] = mapped_column(String(32), default="")
    type_line: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mana_cost: Mapped[str | None] = mapped_column(String(128), nullable=True)
    oracle_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_uri_small: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_uri_art_crop: Mapped[str | None] = mapped_column(Text, nullable=True)
    language: Mapped[str] = mapped_column(String(8), default="en")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    prices: Mapped[list["CardPriceDB"]] = relationship(
        back_populates="card", cascade="all, delete-orphan"
    )
    collection_entries: Mapped[list["CollectionEntryDB"]] = relationship(
        back_populates="card", cascade="all, delete-orphan"
    )
    tracker_cards: Mapped[list["TrackerCardDB"]] = relationship(
        back_populates="card", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<CardDB(name={self.name}, set={self.set_code}, number={self.collector_number})>"


class CardPriceDB(Base):
    """
    Point-in-time price observation for a card.

    The current price is the row with the latest updated_at.
    """

    __tablename__ = "card_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cards.id", ondelete="CASCADE"), index=True
    )
    eur: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    eur_foil: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    card: Mapped["CardDB"] = relationship(back_populates="prices")

    def __repr__(self) -> str:
        return f"<CardPriceDB(card_id={self.card_id}, eur={self.eur}, eur_foil={self.eur_foil})>"


class CollectionEntryDB(Base):
    """
    One physical owned copy.

    Foil and non-foil copies of the same card are separate rows,
    and so is every additional copy.
    """

    __tablename__ = "collection_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cards.id", ondelete="CASCADE"), index=True
    )
    is_foil: Mapped[bool] = mapped_column(Boolean, default=False)
    # Storage location id; the location tree is managed elsewhere
    spot_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    for_trade: Mapped[bool] = mapped_column(Boolean, default=False)

    card: Mapped["CardDB"] = relationship(back_populates="collection_entries")

    def __repr__(self) -> str:
        return f"<CollectionEntryDB(card_id={self.card_id}, foil={self.is_foil})>"


class TrackerDB(Base):
    """
    A collecting goal: every card of one set, or a custom list.
    """

    __tablename__ = "trackers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    set_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    track_foil: Mapped[bool] = mapped_column(Boolean, default=False)
    track_non_foil: Mapped[bool] = mapped_column(Boolean, default=True)
    is_collecting: Mapped[bool] = mapped_column(Boolean, default=True)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tracker_cards: Mapped[list["TrackerCardDB"]] = relationship(
        back_populates="tracker", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<TrackerDB(id={self.id}, name={self.name})>"


class TrackerCardDB(Base):
    """Membership of a card in a tracker."""

    __tablename__ = "tracker_cards"
    __table_args__ = (UniqueConstraint("tracker_id", "card_id", name="uq_tracker_card"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tracker_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("trackers.id", ondelete="CASCADE"), index=True
    )
    card_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cards.id", ondelete="CASCADE"), index=True
    )
    is_excluded: Mapped[bool] = mapped_column(Boolean, default=False)

    tracker: Mapped["TrackerDB"] = relationship(back_populates="tracker_cards")
    card: Mapped["CardDB"] = relationship(back_populates="tracker_cards")

    def __repr__(self) -> str:
        return f"<TrackerCardDB(tracker={self.tracker_id}, card={self.card_id})>"


class SyncSettingsDB(Base):
    """
    Process-wide sync schedule and status.

    Exactly one row exists. Only the scheduler writes the status fields;
    the API only writes the schedule fields.
    """

    __tablename__ = "sync_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_sync_schedule: Mapped[str] = mapped_column(String(16), default="daily")
    price_sync_schedule: Mapped[str] = mapped_column(String(16), default="weekly")
    card_sync_recent_months: Mapped[int] = mapped_column(Integer, default=3)
    last_card_sync: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_price_sync: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_syncing: Mapped[bool] = mapped_column(Boolean, default=False)
    sync_status: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SyncSettingsDB(cards={self.card_sync_schedule}, "
            f"prices={self.price_sync_schedule})>"
        )
