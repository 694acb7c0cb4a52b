from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class LedgerReason(str, Enum):
    STARTING_GRANT = "starting_grant"
    PARTICIPATION_BONUS = "participation_bonus"
    SET_WIN = "set_win"
    AUTO_RESOLVED = "auto_resolved"
    AUCTION_DEBIT = "auction_debit"
    ADJUSTMENT = "adjustment"
    CORRECTION = "correction"


# Начисления за матч, которые откатываются при административной правке результата.
MATCH_CREDIT_REASONS = (LedgerReason.SET_WIN.value, LedgerReason.AUTO_RESOLVED.value)


class CreditLedgerEntry(Base):
    """Строка журнала кредитов. Только вставка: баланс = сумма строк игрока в турнире."""

    __tablename__ = "credit_ledger_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), index=True)
    delta_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    match_id: Mapped[int | None] = mapped_column(ForeignKey("matches.id", ondelete="SET NULL"), nullable=True, index=True)
    round_id: Mapped[int | None] = mapped_column(ForeignKey("rounds.id", ondelete="SET NULL"), nullable=True)
    lot_id: Mapped[int | None] = mapped_column(ForeignKey("auction_lots.id", ondelete="SET NULL"), nullable=True)
    reverses_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("credit_ledger_entries.id", ondelete="SET NULL"),
        nullable=True,
    )
    note: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
