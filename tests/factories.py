"""Общие заготовки для тестов: база в памяти и турниры с игроками."""

import unittest
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.auction import AuctionLot, PledgeCategory, PledgeItem, PledgeStatus
from app.models.ledger import LedgerReason
from app.models.player import Player, PlayerStatus
from app.models.tournament import Match, MatchStatus, Round, Tournament, TournamentStatus
from app.services.ledger import apply_delta
from app.services.tournament import create_tournament


class EngineTestCase(unittest.IsolatedAsyncioTestCase):
    # Каждый тест получает чистую базу sqlite в памяти.
    async def asyncSetUp(self) -> None:
        self.engine = create_async_engine(
            "sqlite+aiosqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self.db = self.sessionmaker()

    async def asyncTearDown(self) -> None:
        await self.db.close()
        await self.engine.dispose()


async def add_players(
    db: AsyncSession,
    tournament: Tournament,
    count: int,
    genders: list[str] | None = None,
    confirmed: bool = True,
    first_index: int = 0,
) -> list[Player]:
    players = []
    for index in range(first_index, first_index + count):
        player = Player(
            tournament_id=tournament.id,
            full_name=f"Player {index + 1}",
            phone=f"+34611{index:06d}",
            gender=genders[index - first_index] if genders else None,
            confirmed=confirmed,
            status=PlayerStatus.ACTIVE.value,
        )
        db.add(player)
        players.append(player)
    await db.flush()
    return players


async def make_tournament(
    db: AsyncSession,
    player_count: int = 8,
    team_size: int = 1,
    seed: str = "test-seed",
    genders: list[str] | None = None,
    **policy,
) -> tuple[Tournament, list[Player]]:
    tournament = await create_tournament(db, team_size=team_size, **policy)
    tournament.schedule_seed = seed
    players = await add_players(db, tournament, player_count, genders=genders)
    await db.commit()
    return tournament, players


async def round_matches(db: AsyncSession, tournament_id: int, index: int, include_byes: bool = False) -> list[Match]:
    round_id = await db.scalar(select(Round.id).where(Round.tournament_id == tournament_id, Round.index == index))
    query = select(Match).where(Match.round_id == round_id, Match.status != MatchStatus.VOID.value).order_by(Match.id)
    if not include_byes:
        query = query.where(Match.is_bye.is_(False))
    return list((await db.scalars(query)).all())


async def make_auction_tournament(
    db: AsyncSession,
    player_count: int = 4,
    pledge_count: int = 1,
    credits_cents: int = 5000,
) -> tuple[Tournament, list[Player], list[PledgeItem]]:
    """Турнир сразу в фазе аукциона: у первого игрока одобренные залоги, у всех кредиты."""
    tournament = await create_tournament(db, starting_credits_cents=0)
    players = await add_players(db, tournament, player_count)
    pledges = []
    for index in range(pledge_count):
        pledge = PledgeItem(
            tournament_id=tournament.id,
            owner_player_id=players[0].id,
            title=f"Pledge {index + 1}",
            category=PledgeCategory.FOOD.value,
            status=PledgeStatus.APPROVED.value,
        )
        db.add(pledge)
        pledges.append(pledge)
    for player in players:
        await apply_delta(db, player.id, tournament.id, credits_cents, LedgerReason.ADJUSTMENT, note="Test credits")
    tournament.status = TournamentStatus.AUCTION_OPEN.value
    tournament.round_count = 3
    tournament.current_round = 3
    await db.commit()
    return tournament, players, pledges


async def lot_for(db: AsyncSession, pledge_id: int) -> AuctionLot:
    return await db.scalar(select(AuctionLot).where(AuctionLot.pledge_item_id == pledge_id))


AUCTION_START = datetime(2026, 5, 1, 12, 0)
