import argparse
import asyncio

from app.core.config import settings
from app.core.logging_config import configure_logging
from app.db.session import SessionLocal
from app.services.demo import seed_demo
from app.services.transactions import run_action


async def main(player_count: int, team_size: int, seed: str | None) -> None:
    """Создает демонстрационный турнир с подтвержденными игроками и залогами и запускает раунд 1."""
    async with SessionLocal() as db:
        result = await run_action(db, seed_demo, player_count=player_count, team_size=team_size, seed=seed)

    print(
        f"Создан турнир {result['tournament_name']} (id={result['tournament_id']}): "
        f"{result['players_created']} игроков, {result['round_count']} раундов."
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a demo tournament")
    parser.add_argument("--players", type=int, default=8)
    parser.add_argument("--team-size", type=int, default=1, choices=(1, 2))
    parser.add_argument("--seed", default=None)
    args = parser.parse_args()

    configure_logging(settings.log_level)
    # Запускаем асинхронный сидер из CLI.
    asyncio.run(main(args.players, args.team_size, args.seed))
