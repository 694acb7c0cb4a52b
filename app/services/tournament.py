import logging
import secrets
from collections import defaultdict
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.auction import PledgeItem
from app.models.ledger import CreditLedgerEntry, LedgerReason
from app.models.player import Player, PlayerStatus
from app.models.tournament import Match, MatchStatus, Tournament, TournamentStatus
from app.services.advancement import open_round
from app.services.ledger import apply_delta, balances, clamp_balance, format_credits, player_ledger
from app.services.naming import tournament_name
from app.services.scheduler import get_active_roster, min_roster_size, round_count_for

logger = logging.getLogger(__name__)


async def create_tournament(
    db: AsyncSession,
    series_index: int = 0,
    name: str | None = None,
    team_size: int = 1,
    **policy,
) -> Tournament:
    """Создает турнир в статусе SignupOpen; политика экономики берется из настроек, если не задана."""
    if team_size not in (1, 2):
        raise ValidationError("Team size must be 1 (singles) or 2 (doubles)")

    values = {
        "set_win_credit_cents": settings.set_win_credit_cents,
        "starting_credits_cents": settings.starting_credits_cents,
        "participation_bonus_cents": settings.participation_bonus_cents,
        "auto_resolved_credit_cents": settings.auto_resolved_credit_cents,
        "allow_negative_balance": settings.allow_negative_balance,
        "round_duration_days": settings.round_duration_days,
        "max_byes_per_player": settings.max_byes_per_player,
        "no_show_limit": settings.no_show_limit,
        "display_decimals": False,
    }
    unknown = set(policy) - set(values)
    if unknown:
        raise ValidationError(f"Unknown tournament options: {', '.join(sorted(unknown))}")
    values.update(policy)

    tournament = Tournament(
        name=name or tournament_name(series_index),
        series_index=series_index,
        status=TournamentStatus.SIGNUP_OPEN.value,
        team_size=team_size,
        **values,
    )
    db.add(tournament)
    await db.flush()
    return tournament


async def _resolve_roster(db: AsyncSession, tournament: Tournament, roster: list[int] | None) -> list[Player]:
    if roster is None:
        return await get_active_roster(db, tournament.id)

    if len(roster) != len(set(roster)):
        raise ValidationError("Roster contains duplicate players")

    players = list(
        (await db.scalars(select(Player).where(Player.tournament_id == tournament.id).order_by(Player.id))).all()
    )
    by_id = {player.id: player for player in players}
    missing = [pid for pid in roster if pid not in by_id]
    if missing:
        raise NotFoundError(f"Players not found in tournament: {', '.join(map(str, missing))}")

    roster_ids = set(roster)
    for player in players:
        if player.id in roster_ids and player.status != PlayerStatus.ACTIVE.value:
            raise ValidationError(f"Player {player.id} is not active")
        # Ростер фиксируется подтверждением: кто не в списке, в турнире не играет.
        player.confirmed = player.id in roster_ids
    return [by_id[pid] for pid in sorted(roster_ids)]


async def start_tournament(
    db: AsyncSession,
    tournament_id: int,
    roster: list[int] | None = None,
    now: datetime | None = None,
) -> dict:
    """Закрывает регистрацию: фиксирует число раундов, выдает стартовые кредиты и расписывает раунд 1."""
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    if tournament.status != TournamentStatus.SIGNUP_OPEN.value:
        raise ConflictError("Tournament must be in SignupOpen status")

    players = await _resolve_roster(db, tournament, roster)
    minimum = min_roster_size(tournament.team_size)
    if len(players) < minimum:
        raise ValidationError(f"Need at least {minimum} confirmed players (have {len(players)})")

    tournament.roster_size = len(players)
    tournament.round_count = round_count_for(len(players))
    tournament.schedule_seed = tournament.schedule_seed or secrets.token_hex(8)
    tournament.status = TournamentStatus.ROUND_IN_PROGRESS.value
    tournament.current_round = 1

    if tournament.starting_credits_cents:
        already_granted = set(
            (
                await db.scalars(
                    select(CreditLedgerEntry.player_id).where(
                        CreditLedgerEntry.tournament_id == tournament.id,
                        CreditLedgerEntry.reason == LedgerReason.STARTING_GRANT.value,
                    )
                )
            ).all()
        )
        for player in players:
            if player.id in already_granted:
                continue
            await apply_delta(
                db,
                player_id=player.id,
                tournament_id=tournament.id,
                delta_cents=tournament.starting_credits_cents,
                reason=LedgerReason.STARTING_GRANT,
                note="Starting credits",
            )

    round_, pairings = await open_round(db, tournament, 1, players, now=now)

    # Залоги, внесенные до старта, привязываем к первому раунду.
    pending_pledges = (
        await db.scalars(
            select(PledgeItem).where(PledgeItem.tournament_id == tournament.id, PledgeItem.round_id.is_(None))
        )
    ).all()
    for pledge in pending_pledges:
        pledge.round_id = round_.id

    await db.commit()
    logger.info(
        "Tournament %s started with %s players, %s rounds",
        tournament.id,
        tournament.roster_size,
        tournament.round_count,
    )
    return {
        "tournament_id": tournament.id,
        "status": tournament.status,
        "round_count": tournament.round_count,
        "round_id": round_.id,
        **pairings,
    }


async def adjust_credits(db: AsyncSession, tournament_id: int, player_id: int, delta_cents: int, note: str = "") -> dict:
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    if tournament.status == TournamentStatus.SETTLED.value:
        raise ConflictError("Tournament is settled, ledger is closed")
    player = await db.scalar(select(Player).where(Player.id == player_id, Player.tournament_id == tournament_id))
    if not player:
        raise NotFoundError("Player not found")

    entry_id = await apply_delta(
        db,
        player_id=player.id,
        tournament_id=tournament.id,
        delta_cents=delta_cents,
        reason=LedgerReason.ADJUSTMENT,
        note=note or "Admin adjustment",
    )
    await db.commit()
    return {"entry_id": entry_id, "player_id": player.id}


def standings_sort_key(row: dict) -> tuple[int, int, int, int]:
    # Баланс, затем победы и разница сетов; player_id в конце для стабильности.
    return (row["balance_cents"], row["match_wins"], row["sets_won"] - row["sets_lost"], -row["player_id"])


async def standings(db: AsyncSession, tournament_id: int) -> dict:
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")

    players = list(
        (await db.scalars(select(Player).where(Player.tournament_id == tournament_id).order_by(Player.id))).all()
    )
    totals = await balances(db, tournament_id)
    stats: dict[int, dict[str, int]] = defaultdict(
        lambda: {"sets_won": 0, "sets_lost": 0, "match_wins": 0, "match_losses": 0, "byes": 0}
    )

    matches = (
        await db.scalars(
            select(Match).where(Match.tournament_id == tournament_id, Match.status != MatchStatus.VOID.value)
        )
    ).all()
    for match in matches:
        if match.is_bye:
            if match.bye_player_id is not None:
                stats[match.bye_player_id]["byes"] += 1
            continue
        if match.status != MatchStatus.PLAYED.value:
            continue
        for side, won, lost in ((match.side_a, match.sets_a, match.sets_b), (match.side_b, match.sets_b, match.sets_a)):
            for player_id in side:
                stats[player_id]["sets_won"] += won
                stats[player_id]["sets_lost"] += lost
                if match.is_unfinished:
                    continue
                if won > lost:
                    stats[player_id]["match_wins"] += 1
                elif lost > won:
                    stats[player_id]["match_losses"] += 1

    rows = []
    for player in players:
        if not player.confirmed and player.id not in totals:
            continue
        raw = totals.get(player.id, 0)
        shown = clamp_balance(raw, tournament.allow_negative_balance)
        rows.append(
            {
                "player_id": player.id,
                "full_name": player.full_name,
                "balance_cents": shown,
                "raw_balance_cents": raw,
                "balance_display": format_credits(shown, tournament.display_decimals),
                **stats[player.id],
            }
        )
    rows.sort(key=standings_sort_key, reverse=True)
    return {"tournament_id": tournament.id, "status": tournament.status, "standings": rows}


async def ledger_statement(db: AsyncSession, tournament_id: int, player_id: int) -> dict:
    """Выписка игрока: все записи журнала по порядку и баланс в формате турнира."""
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    player = await db.scalar(select(Player).where(Player.id == player_id, Player.tournament_id == tournament_id))
    if not player:
        raise NotFoundError("Player not found")

    entries = await player_ledger(db, player.id, tournament.id)
    raw = sum(entry.delta_cents for entry in entries)
    shown = clamp_balance(raw, tournament.allow_negative_balance)
    return {
        "tournament_id": tournament.id,
        "player_id": player.id,
        "balance_cents": shown,
        "raw_balance_cents": raw,
        "balance_display": format_credits(shown, tournament.display_decimals),
        "entries": [
            {
                "id": entry.id,
                "delta_cents": entry.delta_cents,
                "reason": entry.reason,
                "match_id": entry.match_id,
                "round_id": entry.round_id,
                "lot_id": entry.lot_id,
                "reverses_entry_id": entry.reverses_entry_id,
                "note": entry.note,
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in entries
        ],
    }
