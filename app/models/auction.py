from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class PledgeCategory(str, Enum):
    FOOD = "food"
    DRINK = "drink"
    OBJECT = "object"
    SERVICE = "service"
    CHAOS = "chaos"


class PledgeStatus(str, Enum):
    DRAFT = "Draft"
    APPROVED = "Approved"
    HIDDEN = "Hidden"


class AuctionStatus(str, Enum):
    OPEN = "Open"
    SETTLED = "Settled"


class LotStatus(str, Enum):
    OPEN = "Open"
    SOLD = "Sold"
    UNSOLD = "Unsold"


class PledgeItem(Base):
    __tablename__ = "pledge_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    owner_player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), index=True)
    round_id: Mapped[int | None] = mapped_column(ForeignKey("rounds.id", ondelete="SET NULL"), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=PledgeStatus.DRAFT.value, index=True)
    estimate_low_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimate_high_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Auction(Base):
    __tablename__ = "auctions"
    __table_args__ = (UniqueConstraint("tournament_id", name="uq_auctions_tournament"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20), default=AuctionStatus.OPEN.value)
    starts_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class AuctionLot(Base):
    __tablename__ = "auction_lots"
    __table_args__ = (UniqueConstraint("auction_id", "pledge_item_id", name="uq_auction_lots_item"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    auction_id: Mapped[int] = mapped_column(ForeignKey("auctions.id", ondelete="CASCADE"), index=True)
    pledge_item_id: Mapped[int] = mapped_column(ForeignKey("pledge_items.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20), default=LotStatus.OPEN.value)
    current_bid_cents: Mapped[int] = mapped_column(Integer, default=0)
    current_winner_player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id", ondelete="SET NULL"),
        nullable=True,
    )
    winning_bid_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Проверка ставки и запись нового максимума идут одним compare-and-set по version.
    __mapper_args__ = {"version_id_col": version}


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lot_id: Mapped[int] = mapped_column(ForeignKey("auction_lots.id", ondelete="CASCADE"), index=True)
    pledge_item_id: Mapped[int] = mapped_column(ForeignKey("pledge_items.id", ondelete="CASCADE"), index=True)
    bidder_player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
