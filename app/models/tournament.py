from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class TournamentStatus(str, Enum):
    SIGNUP_OPEN = "SignupOpen"
    ROUND_IN_PROGRESS = "RoundInProgress"
    AUCTION_OPEN = "AuctionOpen"
    SETTLED = "Settled"


class RoundStatus(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    COMPLETE = "Complete"


class MatchStatus(str, Enum):
    SCHEDULED = "Scheduled"
    PLAYED = "Played"
    AUTO_RESOLVED = "AutoResolved"
    VOID = "Void"


# Статусы, после которых матч больше не блокирует переход раунда.
RESOLVED_MATCH_STATUSES = (MatchStatus.PLAYED.value, MatchStatus.AUTO_RESOLVED.value)


class Tournament(Base):
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    series_index: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default=TournamentStatus.SIGNUP_OPEN.value, index=True)
    current_round: Mapped[int | None] = mapped_column(Integer, nullable=True)
    round_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    roster_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    team_size: Mapped[int] = mapped_column(Integer, default=1)
    schedule_seed: Mapped[str | None] = mapped_column(String(64), nullable=True)

    set_win_credit_cents: Mapped[int] = mapped_column(Integer, default=300)
    starting_credits_cents: Mapped[int] = mapped_column(Integer, default=0)
    participation_bonus_cents: Mapped[int] = mapped_column(Integer, default=0)
    auto_resolved_credit_cents: Mapped[int] = mapped_column(Integer, default=0)
    allow_negative_balance: Mapped[bool] = mapped_column(Boolean, default=False)
    display_decimals: Mapped[bool] = mapped_column(Boolean, default=False)
    round_duration_days: Mapped[int] = mapped_column(Integer, default=7)
    max_byes_per_player: Mapped[int] = mapped_column(Integer, default=1)
    # Сколько матчей, закрытых по дедлайну без счета, допускается до снятия игрока; 0 отключает.
    no_show_limit: Mapped[int] = mapped_column(Integer, default=2)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Оптимистическая блокировка: конкурентное изменение турнира падает со StaleDataError.
    __mapper_args__ = {"version_id_col": version}


class Round(Base):
    __tablename__ = "rounds"
    __table_args__ = (UniqueConstraint("tournament_id", "index", name="uq_rounds_tournament_index"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    index: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RoundStatus.PENDING.value)
    generation: Mapped[int] = mapped_column(Integer, default=0)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    round_id: Mapped[int] = mapped_column(ForeignKey("rounds.id", ondelete="CASCADE"), index=True)
    side_a_player1_id: Mapped[int | None] = mapped_column(ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    side_a_player2_id: Mapped[int | None] = mapped_column(ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    side_b_player1_id: Mapped[int | None] = mapped_column(ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    side_b_player2_id: Mapped[int | None] = mapped_column(ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    is_bye: Mapped[bool] = mapped_column(Boolean, default=False)
    bye_player_id: Mapped[int | None] = mapped_column(ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=MatchStatus.SCHEDULED.value, index=True)
    set_scores: Mapped[list | None] = mapped_column(JSON, nullable=True)
    sets_a: Mapped[int] = mapped_column(Integer, default=0)
    sets_b: Mapped[int] = mapped_column(Integer, default=0)
    # Незавершенный матч: сеты начисляются, но победа и поражение в таблицу не идут.
    is_unfinished: Mapped[bool] = mapped_column(Boolean, default=False)
    played_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Уход из Scheduled сверяется по version: вторая конкурентная запись падает со StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    @property
    def side_a(self) -> list[int]:
        return [pid for pid in (self.side_a_player1_id, self.side_a_player2_id) if pid is not None]

    @property
    def side_b(self) -> list[int]:
        return [pid for pid in (self.side_b_player1_id, self.side_b_player2_id) if pid is not None]

    @property
    def player_ids(self) -> list[int]:
        if self.is_bye:
            return [self.bye_player_id] if self.bye_player_id is not None else []
        return self.side_a + self.side_b
