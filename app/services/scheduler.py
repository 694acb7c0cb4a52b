"""Жеребьевка раундов: чистое планирование пар и его запись в базу."""

import logging
import random
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.player import Player, PlayerStatus
from app.models.tournament import Match, MatchStatus, Round, RoundStatus, Tournament, TournamentStatus

logger = logging.getLogger(__name__)

# Верхняя граница ростера и число раундов для него; всё, что больше, играет MAX_ROUND_COUNT.
ROUND_COUNT_STEPS: list[tuple[int, int]] = [
    (12, 3),
    (18, 4),
]
MAX_ROUND_COUNT = 5

# Варианты разбиения четверки на две пары (индексы внутри группы).
TEAM_SPLITS = [
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
]


@dataclass(frozen=True)
class Pairing:
    side_a: tuple[int, ...]
    side_b: tuple[int, ...]

    def as_dict(self) -> dict:
        return {"side_a": list(self.side_a), "side_b": list(self.side_b)}


@dataclass(frozen=True)
class RoundPlan:
    index: int
    pairings: list[Pairing] = field(default_factory=list)
    byes: list[int] = field(default_factory=list)


def round_count_for(roster_size: int) -> int:
    for limit, rounds in ROUND_COUNT_STEPS:
        if roster_size <= limit:
            return rounds
    return MAX_ROUND_COUNT


def min_roster_size(team_size: int) -> int:
    return 2 * team_size


def round_rng(seed: str, round_index: int, generation: int = 0) -> random.Random:
    # Явный генератор на каждый раунд: один и тот же seed дает ту же жеребьевку.
    return random.Random(f"{seed}:{round_index}:{generation}")


def shuffle_roster(player_ids: Iterable[int], rng: random.Random) -> list[int]:
    # Сортировка перед перемешиванием убирает зависимость от порядка входа.
    order = sorted(set(player_ids))
    rng.shuffle(order)
    return order


def pick_byes(order: list[int], bye_count: int, bye_history: Mapping[int, int], max_byes: int) -> list[int]:
    """Выбирает игроков без пары: последний в перемешанном порядке среди тех, кто ниже лимита."""
    remaining = list(order)
    byes: list[int] = []
    for _ in range(bye_count):
        eligible = [pid for pid in remaining if bye_history.get(pid, 0) < max_byes]
        if eligible:
            chosen = eligible[-1]
        else:
            # Лимит не выдержать: отдаем bye тому, у кого их меньше всего.
            chosen = min(reversed(remaining), key=lambda pid: bye_history.get(pid, 0))
            logger.warning("Bye cap %s exceeded, player %s gets a repeat bye", max_byes, chosen)
        byes.append(chosen)
        remaining.remove(chosen)
    return byes


def split_teams(
    group: list[int],
    partner_history: Mapping[int, set[int]],
    genders: Mapping[int, str | None] | None = None,
) -> Pairing:
    """Делит четверку на пары: штраф за повтор партнера, бонус за смешанную пару."""
    genders = genders or {}

    def pair_score(first: int, second: int) -> int:
        score = 0
        if second in partner_history.get(first, set()):
            score -= 10
        first_gender, second_gender = genders.get(first), genders.get(second)
        if first_gender and second_gender and first_gender != second_gender:
            score += 3
        if first_gender == "female" and second_gender == "female":
            score -= 5
        return score

    best_split = TEAM_SPLITS[0]
    best_score: int | None = None
    for split in TEAM_SPLITS:
        (a1, a2), (b1, b2) = split
        score = pair_score(group[a1], group[a2]) + pair_score(group[b1], group[b2])
        if best_score is None or score > best_score:
            best_score = score
            best_split = split

    (a1, a2), (b1, b2) = best_split
    return Pairing(side_a=(group[a1], group[a2]), side_b=(group[b1], group[b2]))


def plan_round(
    player_ids: Iterable[int],
    seed: str,
    round_index: int,
    generation: int = 0,
    team_size: int = 1,
    bye_history: Mapping[int, int] | None = None,
    partner_history: Mapping[int, set[int]] | None = None,
    genders: Mapping[int, str | None] | None = None,
    max_byes: int = 1,
) -> RoundPlan:
    if team_size not in (1, 2):
        raise ValidationError("Team size must be 1 (singles) or 2 (doubles)")

    order = shuffle_roster(player_ids, round_rng(seed, round_index, generation))
    group_size = 2 * team_size
    byes = pick_byes(order, len(order) % group_size, bye_history or {}, max_byes)
    bye_set = set(byes)
    active = [pid for pid in order if pid not in bye_set]

    pairings: list[Pairing] = []
    for start in range(0, len(active), group_size):
        group = active[start : start + group_size]
        if team_size == 1:
            pairings.append(Pairing(side_a=(group[0],), side_b=(group[1],)))
        else:
            pairings.append(split_teams(group, partner_history or {}, genders))
    return RoundPlan(index=round_index, pairings=pairings, byes=byes)


def generate_rounds(
    player_ids: Iterable[int],
    seed: str,
    team_size: int = 1,
    max_byes: int = 1,
    genders: Mapping[int, str | None] | None = None,
) -> tuple[int, list[RoundPlan]]:
    """Планирует весь турнир целиком без базы, копя историю bye и партнеров между раундами."""
    roster = sorted(set(player_ids))
    round_count = round_count_for(len(roster))
    bye_history: dict[int, int] = defaultdict(int)
    partner_history: dict[int, set[int]] = defaultdict(set)

    plans: list[RoundPlan] = []
    for round_index in range(1, round_count + 1):
        plan = plan_round(
            roster,
            seed,
            round_index,
            team_size=team_size,
            bye_history=bye_history,
            partner_history=partner_history,
            genders=genders,
            max_byes=max_byes,
        )
        for pid in plan.byes:
            bye_history[pid] += 1
        for pairing in plan.pairings:
            _remember_partners(partner_history, pairing.side_a)
            _remember_partners(partner_history, pairing.side_b)
        plans.append(plan)
    return round_count, plans


def _remember_partners(partner_history: dict[int, set[int]], side: Iterable[int]) -> None:
    members = [pid for pid in side if pid is not None]
    for pid in members:
        partner_history[pid].update(other for other in members if other != pid)


async def get_active_roster(db: AsyncSession, tournament_id: int) -> list[Player]:
    return list(
        (
            await db.scalars(
                select(Player)
                .where(
                    Player.tournament_id == tournament_id,
                    Player.confirmed.is_(True),
                    Player.status == PlayerStatus.ACTIVE.value,
                )
                .order_by(Player.id)
            )
        ).all()
    )


async def load_history(db: AsyncSession, tournament_id: int) -> tuple[dict[int, int], dict[int, set[int]]]:
    # История bye и партнеров по всем неаннулированным матчам турнира.
    matches = (
        await db.scalars(
            select(Match).where(Match.tournament_id == tournament_id, Match.status != MatchStatus.VOID.value)
        )
    ).all()
    bye_history: dict[int, int] = defaultdict(int)
    partner_history: dict[int, set[int]] = defaultdict(set)
    for match in matches:
        if match.is_bye:
            if match.bye_player_id is not None:
                bye_history[match.bye_player_id] += 1
            continue
        _remember_partners(partner_history, match.side_a)
        _remember_partners(partner_history, match.side_b)
    return bye_history, partner_history


async def schedule_round(
    db: AsyncSession,
    tournament: Tournament,
    round_: Round,
    players: list[Player],
) -> tuple[list[Match], list[Match]]:
    """Создает матчи и bye раунда по плану plan_round. Коммит делает вызывающее действие."""
    bye_history, partner_history = await load_history(db, tournament.id)
    plan = plan_round(
        [p.id for p in players],
        tournament.schedule_seed or "",
        round_.index,
        generation=round_.generation,
        team_size=tournament.team_size,
        bye_history=bye_history,
        partner_history=partner_history,
        genders={p.id: p.gender for p in players},
        max_byes=tournament.max_byes_per_player,
    )

    bye_matches: list[Match] = []
    for player_id in plan.byes:
        bye = Match(
            tournament_id=tournament.id,
            round_id=round_.id,
            is_bye=True,
            bye_player_id=player_id,
            status=MatchStatus.PLAYED.value,
        )
        db.add(bye)
        bye_matches.append(bye)

    matches: list[Match] = []
    for pairing in plan.pairings:
        match = Match(
            tournament_id=tournament.id,
            round_id=round_.id,
            side_a_player1_id=pairing.side_a[0],
            side_a_player2_id=pairing.side_a[1] if len(pairing.side_a) > 1 else None,
            side_b_player1_id=pairing.side_b[0],
            side_b_player2_id=pairing.side_b[1] if len(pairing.side_b) > 1 else None,
            status=MatchStatus.SCHEDULED.value,
        )
        db.add(match)
        matches.append(match)

    await db.flush()
    logger.info(
        "Tournament %s round %s scheduled: %s matches, %s byes (generation %s)",
        tournament.id,
        round_.index,
        len(matches),
        len(bye_matches),
        round_.generation,
    )
    return matches, bye_matches


def describe_matches(matches: list[Match], byes: list[Match]) -> dict:
    return {
        "matches": [
            {"match_id": match.id, "side_a": match.side_a, "side_b": match.side_b}
            for match in matches
        ],
        "byes": [bye.bye_player_id for bye in byes],
    }


async def regenerate_matches(db: AsyncSession, round_id: int) -> dict:
    """Перегенерирует пары раунда: несыгранные матчи и bye аннулируются, сыгранные не трогаем."""
    round_ = await db.scalar(select(Round).where(Round.id == round_id))
    if not round_:
        raise NotFoundError("Round not found")
    if round_.status != RoundStatus.ACTIVE.value:
        raise ConflictError("Round must be Active to regenerate matches")

    tournament = await db.scalar(select(Tournament).where(Tournament.id == round_.tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    if tournament.status != TournamentStatus.ROUND_IN_PROGRESS.value:
        raise ConflictError("Tournament is not in a round")

    existing = list((await db.scalars(select(Match).where(Match.round_id == round_id))).all())
    locked_player_ids: set[int] = set()
    voided = 0
    for match in existing:
        if match.status == MatchStatus.VOID.value:
            continue
        if match.is_bye or match.status == MatchStatus.SCHEDULED.value:
            match.status = MatchStatus.VOID.value
            voided += 1
        else:
            locked_player_ids.update(match.player_ids)

    players = [p for p in await get_active_roster(db, tournament.id) if p.id not in locked_player_ids]
    round_.generation += 1
    await db.flush()

    matches, byes = await schedule_round(db, tournament, round_, players)
    await db.commit()
    logger.info("Round %s regenerated: %s matches voided", round_id, voided)
    return {"round_id": round_.id, "generation": round_.generation, "voided": voided, **describe_matches(matches, byes)}
