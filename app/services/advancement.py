"""Переход турнира между раундами и в фазу аукциона."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError
from app.models.ledger import CreditLedgerEntry, LedgerReason
from app.models.player import Player
from app.models.tournament import Match, MatchStatus, Round, RoundStatus, Tournament, TournamentStatus
from app.services.ledger import apply_delta
from app.services.results import remove_no_show_players, resolve_without_score
from app.services.scheduler import describe_matches, get_active_roster, min_roster_size, schedule_round

logger = logging.getLogger(__name__)


async def open_round(
    db: AsyncSession,
    tournament: Tournament,
    index: int,
    players: list[Player],
    now: datetime | None = None,
) -> tuple[Round, dict]:
    """Создает активный раунд (или берет существующий) и расписывает матчи, если их еще нет."""
    now = now or datetime.utcnow()
    round_ = await db.scalar(select(Round).where(Round.tournament_id == tournament.id, Round.index == index))
    if not round_:
        round_ = Round(
            tournament_id=tournament.id,
            index=index,
            status=RoundStatus.ACTIVE.value,
            generation=0,
            starts_at=now,
            ends_at=now + timedelta(days=tournament.round_duration_days),
        )
        db.add(round_)
        await db.flush()

        if tournament.participation_bonus_cents:
            for player in players:
                await apply_delta(
                    db,
                    player_id=player.id,
                    tournament_id=tournament.id,
                    delta_cents=tournament.participation_bonus_cents,
                    reason=LedgerReason.PARTICIPATION_BONUS,
                    round_id=round_.id,
                    note=f"Round {index} participation bonus",
                )
    elif round_.status == RoundStatus.PENDING.value:
        round_.status = RoundStatus.ACTIVE.value
        round_.starts_at = round_.starts_at or now
        round_.ends_at = round_.ends_at or now + timedelta(days=tournament.round_duration_days)

    existing = list(
        (
            await db.scalars(
                select(Match).where(Match.round_id == round_.id, Match.status != MatchStatus.VOID.value)
            )
        ).all()
    )
    if existing:
        matches = [m for m in existing if not m.is_bye]
        byes = [m for m in existing if m.is_bye]
    else:
        matches, byes = await schedule_round(db, tournament, round_, players)
    return round_, describe_matches(matches, byes)


async def check_advance_round(db: AsyncSession, tournament_id: int, now: datetime | None = None) -> dict:
    """Идемпотентная проверка: двигает турнир, только если текущий раунд полностью закрыт."""
    now = now or datetime.utcnow()
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")

    result = {"tournament_id": tournament.id, "advanced": False, "auto_resolved": 0, "removed_players": []}
    if tournament.status != TournamentStatus.ROUND_IN_PROGRESS.value or not tournament.current_round:
        return {**result, "status": tournament.status, "current_round": tournament.current_round}

    round_ = await db.scalar(
        select(Round).where(Round.tournament_id == tournament.id, Round.index == tournament.current_round)
    )
    if not round_:
        raise ConflictError(f"Round {tournament.current_round} is missing")

    pending = list(
        (
            await db.scalars(
                select(Match).where(Match.round_id == round_.id, Match.status == MatchStatus.SCHEDULED.value)
            )
        ).all()
    )

    # Просроченные матчи закрываются без счета по политике турнира.
    if pending and round_.ends_at and round_.ends_at <= now:
        no_show_ids: set[int] = set()
        for match in pending:
            await resolve_without_score(db, match, tournament, note=f"Round {round_.index} deadline passed")
            no_show_ids.update(match.player_ids)
        result["auto_resolved"] = len(pending)
        result["removed_players"] = await remove_no_show_players(db, tournament, no_show_ids)
        pending = []

    if pending:
        return {
            **result,
            "status": tournament.status,
            "current_round": tournament.current_round,
            "pending_matches": len(pending),
        }

    round_.status = RoundStatus.COMPLETE.value
    if tournament.current_round < (tournament.round_count or 0):
        next_index = tournament.current_round + 1
        players = await get_active_roster(db, tournament.id)
        next_round, pairings = await open_round(db, tournament, next_index, players, now=now)
        tournament.current_round = next_index
        await db.commit()
        logger.info("Tournament %s advanced to round %s", tournament.id, next_index)
        return {
            **result,
            "advanced": True,
            "status": tournament.status,
            "current_round": next_index,
            "round_id": next_round.id,
            **pairings,
        }

    tournament.status = TournamentStatus.AUCTION_OPEN.value
    await db.commit()
    logger.info("Tournament %s finished all %s rounds, auction phase open", tournament.id, tournament.round_count)
    return {**result, "advanced": True, "status": tournament.status, "current_round": tournament.current_round}


async def end_round_now(db: AsyncSession, tournament_id: int, now: datetime | None = None) -> dict:
    # Админская кнопка: переносим дедлайн текущего раунда на сейчас и запускаем проверку.
    now = now or datetime.utcnow()
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    if tournament.status != TournamentStatus.ROUND_IN_PROGRESS.value:
        raise ConflictError("Tournament is not in a round")

    round_ = await db.scalar(
        select(Round).where(Round.tournament_id == tournament.id, Round.index == tournament.current_round)
    )
    if not round_:
        raise ConflictError(f"Round {tournament.current_round} is missing")
    round_.ends_at = now
    await db.flush()
    return await check_advance_round(db, tournament_id, now=now)


async def auto_match_remaining(db: AsyncSession, tournament_id: int, round_id: int) -> dict:
    """Добавляет в активный раунд подтвержденных игроков, которых еще нет в его матчах."""
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    round_ = await db.scalar(select(Round).where(Round.id == round_id, Round.tournament_id == tournament.id))
    if not round_:
        raise NotFoundError("Round not found")
    if tournament.status != TournamentStatus.ROUND_IN_PROGRESS.value or round_.status != RoundStatus.ACTIVE.value:
        raise ConflictError("Round must be Active to add late players")

    existing = (
        await db.scalars(select(Match).where(Match.round_id == round_.id, Match.status != MatchStatus.VOID.value))
    ).all()
    scheduled_ids = {pid for match in existing for pid in match.player_ids}
    late_players = [p for p in await get_active_roster(db, tournament.id) if p.id not in scheduled_ids]

    result = {"tournament_id": tournament.id, "round_id": round_.id, "unmatched_count": len(late_players)}
    minimum = min_roster_size(tournament.team_size)
    if len(late_players) < minimum:
        return {**result, "matches_created": 0, "bonus_granted": 0, "matches": [], "byes": []}

    matches, byes = await schedule_round(db, tournament, round_, late_players)

    bonus_granted = 0
    if tournament.participation_bonus_cents:
        already_paid = set(
            (
                await db.scalars(
                    select(CreditLedgerEntry.player_id).where(
                        CreditLedgerEntry.round_id == round_.id,
                        CreditLedgerEntry.reason == LedgerReason.PARTICIPATION_BONUS.value,
                    )
                )
            ).all()
        )
        for player in late_players:
            if player.id in already_paid:
                continue
            await apply_delta(
                db,
                player_id=player.id,
                tournament_id=tournament.id,
                delta_cents=tournament.participation_bonus_cents,
                reason=LedgerReason.PARTICIPATION_BONUS,
                round_id=round_.id,
                note=f"Round {round_.index} participation bonus (late join)",
            )
            bonus_granted += 1

    # Запись в турнир сверяется по version: параллельный вызов уйдет на повтор и увидит новых игроков в матчах.
    tournament.roster_size = (tournament.roster_size or 0) + len(late_players)
    await db.commit()
    logger.info(
        "Tournament %s round %s: %s late players matched into %s matches",
        tournament.id,
        round_.index,
        len(late_players),
        len(matches),
    )
    return {**result, "matches_created": len(matches), "bonus_granted": bonus_granted, **describe_matches(matches, byes)}
