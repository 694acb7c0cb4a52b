"""Регистрирует ORM-модели в метаданных SQLAlchemy."""

from app.models.auction import Auction, AuctionLot, Bid, PledgeItem
from app.models.base import Base
from app.models.ledger import CreditLedgerEntry
from app.models.player import Player
from app.models.tournament import Match, Round, Tournament

__all__ = [
    "Base",
    "Tournament",
    "Player",
    "Round",
    "Match",
    "CreditLedgerEntry",
    "PledgeItem",
    "Auction",
    "AuctionLot",
    "Bid",
]
