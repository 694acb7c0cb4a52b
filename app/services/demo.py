"""Синтетический турнир для проверки движка: игроки, одобренные залоги и старт."""

import random

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.auction import PledgeCategory, PledgeItem, PledgeStatus
from app.models.player import Player, PlayerGender, PlayerStatus
from app.services.scheduler import min_roster_size
from app.services.tournament import create_tournament, start_tournament

DEMO_PLAYERS = [
    ("Carlos Mendez", PlayerGender.MALE),
    ("Maria Garcia", PlayerGender.FEMALE),
    ("Juan Perez", PlayerGender.MALE),
    ("Ana Lopez", PlayerGender.FEMALE),
    ("Pedro Ruiz", PlayerGender.MALE),
    ("Sofia Torres", PlayerGender.FEMALE),
    ("Diego Martin", PlayerGender.MALE),
    ("Laura Sanchez", PlayerGender.FEMALE),
]

DEMO_PLEDGES = [
    ("Homemade Paella", PledgeCategory.FOOD),
    ("Bottle of Rioja", PledgeCategory.DRINK),
    ("Custom Padel Grip Set", PledgeCategory.OBJECT),
    ("1hr Padel Lesson", PledgeCategory.SERVICE),
    ("Mystery Box of Chaos", PledgeCategory.CHAOS),
    ("Churros & Chocolate", PledgeCategory.FOOD),
    ("Sangria Pitcher", PledgeCategory.DRINK),
    ("Signed Padel Ball", PledgeCategory.OBJECT),
]

MAX_DEMO_PLAYERS = 64


def demo_player(index: int) -> tuple[str, str, PlayerGender]:
    # Имена повторяются по кругу с номером, телефоны уникальны внутри турнира.
    name, gender = DEMO_PLAYERS[index % len(DEMO_PLAYERS)]
    if index >= len(DEMO_PLAYERS):
        name = f"{name} {index // len(DEMO_PLAYERS) + 1}"
    return name, f"+34600{index + 1:06d}", gender


async def seed_demo(
    db: AsyncSession,
    player_count: int = 8,
    team_size: int = 1,
    seed: str | None = None,
    series_index: int | None = None,
) -> dict:
    minimum = min_roster_size(team_size)
    if not minimum <= player_count <= MAX_DEMO_PLAYERS:
        raise ValidationError(f"Demo player count must be between {minimum} and {MAX_DEMO_PLAYERS}")

    rng = random.Random(seed)
    if series_index is None:
        series_index = rng.randrange(100)

    tournament = await create_tournament(db, series_index=series_index, team_size=team_size)
    tournament.schedule_seed = seed

    players: list[Player] = []
    for index in range(player_count):
        full_name, phone, gender = demo_player(index)
        player = Player(
            tournament_id=tournament.id,
            full_name=full_name,
            phone=phone,
            gender=gender.value,
            confirmed=True,
            status=PlayerStatus.ACTIVE.value,
        )
        db.add(player)
        players.append(player)
    await db.flush()

    for index, player in enumerate(players):
        title, category = DEMO_PLEDGES[index % len(DEMO_PLEDGES)]
        estimate_low = 500 + rng.randrange(0, 2000, 100)
        db.add(
            PledgeItem(
                tournament_id=tournament.id,
                owner_player_id=player.id,
                title=title,
                category=category.value,
                description=f"A wonderful {category.value} pledge from {player.full_name}",
                status=PledgeStatus.APPROVED.value,
                estimate_low_cents=estimate_low,
                estimate_high_cents=estimate_low + 1000,
            )
        )
    await db.flush()

    started = await start_tournament(db, tournament.id)
    return {
        "tournament_name": tournament.name,
        "players_created": len(players),
        "pledges_created": len(players),
        "player_ids": [p.id for p in players],
        **started,
    }
