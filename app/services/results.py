"""Обработка результатов матчей и начисление кредитов за выигранные сеты."""

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.ledger import LedgerReason
from app.models.player import Player, PlayerStatus
from app.models.tournament import (
    RESOLVED_MATCH_STATUSES,
    Match,
    MatchStatus,
    Round,
    RoundStatus,
    Tournament,
    TournamentStatus,
)
from app.services.ledger import apply_delta, reverse_match_entries

logger = logging.getLogger(__name__)


def validate_set_scores(set_scores: Sequence[Sequence[int]]) -> list[tuple[int, int]]:
    # Каждый сет: пара неотрицательных целых с явным победителем.
    if not set_scores:
        raise ValidationError("At least one set score is required")

    normalized: list[tuple[int, int]] = []
    for number, score in enumerate(set_scores, start=1):
        if len(score) != 2:
            raise ValidationError(f"Set {number} must have exactly two scores")
        games_a, games_b = score
        for value in (games_a, games_b):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(f"Set {number} scores must be non-negative integers")
        if games_a == games_b:
            raise ValidationError(f"Set {number} is tied {games_a}-{games_b}")
        normalized.append((games_a, games_b))
    return normalized


def count_sets(set_scores: Sequence[tuple[int, int]]) -> tuple[int, int]:
    sets_a = sum(1 for games_a, games_b in set_scores if games_a > games_b)
    return sets_a, len(set_scores) - sets_a


async def _load_match(db: AsyncSession, match_id: int) -> tuple[Match, Tournament]:
    match = await db.scalar(select(Match).where(Match.id == match_id))
    if not match:
        raise NotFoundError("Match not found")
    tournament = await db.scalar(select(Tournament).where(Tournament.id == match.tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    return match, tournament


async def _credit_sets(
    db: AsyncSession,
    match: Match,
    tournament: Tournament,
    sets_a: int,
    sets_b: int,
) -> dict[int, int]:
    # Проигранный сет ничего не списывает, экономика обычной игры только прибавляет.
    awarded: dict[int, int] = {}
    for side, sets_won, sets_lost in ((match.side_a, sets_a, sets_b), (match.side_b, sets_b, sets_a)):
        amount = sets_won * tournament.set_win_credit_cents
        for player_id in side:
            awarded[player_id] = amount
            if amount:
                await apply_delta(
                    db,
                    player_id=player_id,
                    tournament_id=tournament.id,
                    delta_cents=amount,
                    reason=LedgerReason.SET_WIN,
                    match_id=match.id,
                    round_id=match.round_id,
                    note=f"Sets {sets_won}-{sets_lost}",
                )
    return awarded


async def mark_round_complete_if_done(db: AsyncSession, round_id: int) -> bool:
    round_ = await db.scalar(select(Round).where(Round.id == round_id))
    if not round_ or round_.status == RoundStatus.COMPLETE.value:
        return False
    pending = await db.scalar(
        select(Match.id).where(Match.round_id == round_id, Match.status == MatchStatus.SCHEDULED.value).limit(1)
    )
    if pending is not None:
        return False
    round_.status = RoundStatus.COMPLETE.value
    return True


async def report_result(
    db: AsyncSession,
    match_id: int,
    set_scores: Sequence[Sequence[int]],
    reported_by_player_id: int | None = None,
    is_unfinished: bool = False,
) -> dict:
    """Фиксирует счет матча ровно один раз и начисляет кредиты за сеты."""
    scores = validate_set_scores(set_scores)
    match, tournament = await _load_match(db, match_id)
    if match.is_bye:
        raise ConflictError("Bye matches have no result to report")
    if match.status != MatchStatus.SCHEDULED.value:
        raise ConflictError(f"Match is already {match.status}")
    if tournament.status != TournamentStatus.ROUND_IN_PROGRESS.value:
        raise ConflictError("Tournament is not in a round")

    if reported_by_player_id is not None:
        if reported_by_player_id not in match.player_ids:
            raise ValidationError("Reporter is not a player of this match")
        # Игрок стороны B вводит счет со своей стороны, переворачиваем.
        if reported_by_player_id in match.side_b:
            scores = [(games_b, games_a) for games_a, games_b in scores]

    sets_a, sets_b = count_sets(scores)
    match.set_scores = [list(score) for score in scores]
    match.sets_a = sets_a
    match.sets_b = sets_b
    match.is_unfinished = is_unfinished
    match.status = MatchStatus.PLAYED.value
    match.played_at = datetime.utcnow()

    awarded = await _credit_sets(db, match, tournament, sets_a, sets_b)
    await mark_round_complete_if_done(db, match.round_id)
    await db.commit()
    logger.info("Match %s played %s-%s%s", match.id, sets_a, sets_b, " (unfinished)" if is_unfinished else "")
    return {
        "match_id": match.id,
        "status": match.status,
        "sets_a": sets_a,
        "sets_b": sets_b,
        "is_unfinished": match.is_unfinished,
        "set_scores": match.set_scores,
        "credits_awarded": awarded,
    }


async def resolve_without_score(db: AsyncSession, match: Match, tournament: Tournament, note: str) -> dict[int, int]:
    """Закрывает матч без счета и применяет настраиваемое начисление по умолчанию."""
    match.status = MatchStatus.AUTO_RESOLVED.value
    match.played_at = datetime.utcnow()
    amount = tournament.auto_resolved_credit_cents
    applied: dict[int, int] = {}
    for player_id in match.player_ids:
        applied[player_id] = amount
        if amount:
            await apply_delta(
                db,
                player_id=player_id,
                tournament_id=tournament.id,
                delta_cents=amount,
                reason=LedgerReason.AUTO_RESOLVED,
                match_id=match.id,
                round_id=match.round_id,
                note=note,
            )
    return applied


async def count_no_shows(db: AsyncSession, tournament_id: int, player_id: int) -> int:
    total = await db.scalar(
        select(func.count(Match.id)).where(
            Match.tournament_id == tournament_id,
            Match.status == MatchStatus.AUTO_RESOLVED.value,
            Match.is_bye.is_(False),
            or_(
                Match.side_a_player1_id == player_id,
                Match.side_a_player2_id == player_id,
                Match.side_b_player1_id == player_id,
                Match.side_b_player2_id == player_id,
            ),
        )
    )
    return int(total or 0)


async def remove_no_show_players(db: AsyncSession, tournament: Tournament, player_ids: set[int]) -> list[int]:
    """Снимает с турнира игроков, чьи неявки достигли лимита турнира."""
    if not tournament.no_show_limit or not player_ids:
        return []
    removed = []
    players = (await db.scalars(select(Player).where(Player.id.in_(player_ids)).order_by(Player.id))).all()
    for player in players:
        if player.status != PlayerStatus.ACTIVE.value:
            continue
        no_shows = await count_no_shows(db, tournament.id, player.id)
        if no_shows >= tournament.no_show_limit:
            player.status = PlayerStatus.REMOVED.value
            removed.append(player.id)
            logger.warning("Player %s removed from tournament %s after %s no-shows", player.id, tournament.id, no_shows)
    return removed


async def auto_resolve_match(db: AsyncSession, match_id: int) -> dict:
    match, tournament = await _load_match(db, match_id)
    if match.is_bye:
        raise ConflictError("Bye matches cannot be auto-resolved")
    if match.status != MatchStatus.SCHEDULED.value:
        raise ConflictError(f"Match is already {match.status}")
    if tournament.status != TournamentStatus.ROUND_IN_PROGRESS.value:
        raise ConflictError("Tournament is not in a round")

    applied = await resolve_without_score(db, match, tournament, note="Resolved without a score")
    await mark_round_complete_if_done(db, match.round_id)
    await db.commit()
    logger.info("Match %s auto-resolved", match.id)
    return {"match_id": match.id, "status": match.status, "credits_applied": applied}


async def override_result(
    db: AsyncSession,
    match_id: int,
    set_scores: Sequence[Sequence[int]],
    note: str = "",
) -> dict:
    """Административная правка: сначала компенсируем прошлые начисления, потом пишем новые."""
    scores = validate_set_scores(set_scores)
    match, tournament = await _load_match(db, match_id)
    if match.is_bye:
        raise ConflictError("Bye matches have no result to correct")
    if match.status not in RESOLVED_MATCH_STATUSES:
        raise ConflictError("Only played or auto-resolved matches can be corrected")
    if tournament.status == TournamentStatus.SETTLED.value:
        raise ConflictError("Tournament is settled, results are final")

    reversed_ids = await reverse_match_entries(db, match.id, note=note or f"Correction of match {match.id}")

    sets_a, sets_b = count_sets(scores)
    match.set_scores = [list(score) for score in scores]
    match.sets_a = sets_a
    match.sets_b = sets_b
    match.is_unfinished = False
    match.status = MatchStatus.PLAYED.value
    match.played_at = datetime.utcnow()

    awarded = await _credit_sets(db, match, tournament, sets_a, sets_b)
    await db.commit()
    logger.info("Match %s corrected to %s-%s, %s entries reversed", match.id, sets_a, sets_b, len(reversed_ids))
    return {
        "match_id": match.id,
        "status": match.status,
        "sets_a": sets_a,
        "sets_b": sets_b,
        "set_scores": match.set_scores,
        "credits_awarded": awarded,
        "reversed_entries": len(reversed_ids),
    }
