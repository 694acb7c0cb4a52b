import unittest

from sqlalchemy import select

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.auction import PledgeItem
from app.models.ledger import CreditLedgerEntry, LedgerReason
from app.models.player import Player
from app.models.tournament import TournamentStatus
from app.services.demo import demo_player, seed_demo
from app.services.naming import tournament_name
from app.services.results import report_result
from app.services.tournament import adjust_credits, create_tournament, standings, start_tournament
from tests.factories import EngineTestCase, make_tournament, round_matches


class NamingTests(unittest.TestCase):
    def test_tournament_names_cycle_through_juices(self) -> None:
        self.assertEqual(tournament_name(0), "Yuzu")
        self.assertEqual(tournament_name(1), "Calamansi")
        self.assertEqual(tournament_name(20), "Yuzu")

    def test_demo_players_get_unique_phones(self) -> None:
        phones = {demo_player(index)[1] for index in range(64)}
        self.assertEqual(len(phones), 64)
        self.assertEqual(demo_player(8)[0], "Carlos Mendez 2")


class StartTournamentTests(EngineTestCase):
    async def test_start_grants_credits_and_schedules_round_one(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=6)

        result = await start_tournament(self.db, tournament.id)

        self.assertEqual(result["status"], TournamentStatus.ROUND_IN_PROGRESS.value)
        self.assertEqual(result["round_count"], 3)
        self.assertEqual(len(result["matches"]), 3)
        grants = (
            await self.db.scalars(
                select(CreditLedgerEntry).where(CreditLedgerEntry.reason == LedgerReason.STARTING_GRANT.value)
            )
        ).all()
        self.assertEqual(sorted(entry.player_id for entry in grants), [p.id for p in players])
        self.assertTrue(all(entry.delta_cents == 2000 for entry in grants))

    async def test_start_twice_is_a_conflict(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=4)
        await start_tournament(self.db, tournament.id)

        with self.assertRaises(ConflictError):
            await start_tournament(self.db, tournament.id)

    async def test_roster_too_small(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=3, team_size=2)

        with self.assertRaises(ValidationError):
            await start_tournament(self.db, tournament.id)

    async def test_explicit_roster_confirms_only_listed_players(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=6)
        roster = [players[0].id, players[2].id, players[3].id, players[5].id]

        result = await start_tournament(self.db, tournament.id, roster=roster)

        self.assertEqual(tournament.roster_size, 4)
        scheduled = {pid for match in result["matches"] for pid in match["side_a"] + match["side_b"]}
        self.assertEqual(scheduled, set(roster))
        confirmed = (await self.db.scalars(select(Player.id).where(Player.confirmed.is_(True)))).all()
        self.assertEqual(sorted(confirmed), sorted(roster))

    async def test_roster_validation(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=4)

        with self.assertRaises(ValidationError):
            await start_tournament(self.db, tournament.id, roster=[players[0].id, players[0].id])
        with self.assertRaises(NotFoundError):
            await start_tournament(self.db, tournament.id, roster=[players[0].id, 9999])

    async def test_pledges_added_before_start_attach_to_round_one(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=4)
        self.db.add(PledgeItem(tournament_id=tournament.id, owner_player_id=players[0].id, title="Tortilla", category="food"))
        await self.db.commit()

        result = await start_tournament(self.db, tournament.id)

        pledge = await self.db.scalar(select(PledgeItem))
        self.assertEqual(pledge.round_id, result["round_id"])

    async def test_unknown_policy_option_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            await create_tournament(self.db, set_loss_penalty_cents=100)


class StandingsTests(EngineTestCase):
    async def test_standings_order_by_balance_then_wins(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=4)
        await start_tournament(self.db, tournament.id)
        match = (await round_matches(self.db, tournament.id, 1))[0]
        await report_result(self.db, match.id, [[6, 0], [6, 0]])

        result = await standings(self.db, tournament.id)

        leader = result["standings"][0]
        self.assertEqual(leader["player_id"], match.side_a[0])
        self.assertEqual(leader["balance_cents"], 2600)
        self.assertEqual(leader["balance_display"], "€26")
        self.assertEqual(leader["match_wins"], 1)
        self.assertEqual(len(result["standings"]), 4)

    async def test_unfinished_match_credits_sets_but_no_win(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=4)
        await start_tournament(self.db, tournament.id)
        match = (await round_matches(self.db, tournament.id, 1))[0]

        reported = await report_result(self.db, match.id, [[6, 2], [3, 1]], is_unfinished=True)

        self.assertTrue(reported["is_unfinished"])
        rows = {row["player_id"]: row for row in (await standings(self.db, tournament.id))["standings"]}
        leader = rows[match.side_a[0]]
        self.assertEqual(leader["balance_cents"], 2600)
        self.assertEqual(leader["sets_won"], 2)
        self.assertEqual(leader["match_wins"], 0)
        self.assertEqual(rows[match.side_b[0]]["match_losses"], 0)

    async def test_negative_balance_is_clamped_for_display(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=4)
        await start_tournament(self.db, tournament.id)

        await adjust_credits(self.db, tournament.id, players[1].id, -2500, note="Penalty")

        rows = {row["player_id"]: row for row in (await standings(self.db, tournament.id))["standings"]}
        self.assertEqual(rows[players[1].id]["balance_cents"], 0)
        self.assertEqual(rows[players[1].id]["raw_balance_cents"], -500)
        self.assertEqual(rows[players[1].id]["balance_display"], "€0")

    async def test_adjust_credits_closed_after_settlement(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=4)
        tournament.status = TournamentStatus.SETTLED.value
        await self.db.commit()

        with self.assertRaises(ConflictError):
            await adjust_credits(self.db, tournament.id, players[0].id, 100)


class DemoSeedTests(EngineTestCase):
    async def test_seed_demo_starts_a_tournament(self) -> None:
        result = await seed_demo(self.db, player_count=9, seed="demo", series_index=2)

        self.assertEqual(result["tournament_name"], "Guava")
        self.assertEqual(result["players_created"], 9)
        self.assertEqual(result["round_count"], 3)
        self.assertEqual(len(result["matches"]), 4)
        self.assertEqual(len(result["byes"]), 1)

    async def test_seed_demo_is_deterministic_for_a_seed(self) -> None:
        first = await seed_demo(self.db, player_count=8, seed="same")
        second = await seed_demo(self.db, player_count=8, seed="same")

        offset = second["player_ids"][0] - first["player_ids"][0]
        shifted = [
            {"side_a": [pid + offset for pid in match["side_a"]], "side_b": [pid + offset for pid in match["side_b"]]}
            for match in first["matches"]
        ]
        self.assertEqual(
            shifted,
            [{"side_a": match["side_a"], "side_b": match["side_b"]} for match in second["matches"]],
        )

    async def test_seed_demo_player_count_bounds(self) -> None:
        with self.assertRaises(ValidationError):
            await seed_demo(self.db, player_count=1)
        with self.assertRaises(ValidationError):
            await seed_demo(self.db, player_count=65)


class PlayersOutsideRosterTests(EngineTestCase):
    async def test_unconfirmed_players_are_not_scheduled(self) -> None:
        tournament, players = await make_tournament(self.db, player_count=4)
        late = Player(tournament_id=tournament.id, full_name="Late", phone="+34699000000", confirmed=False)
        self.db.add(late)
        await self.db.commit()

        result = await start_tournament(self.db, tournament.id)

        scheduled = {pid for match in result["matches"] for pid in match["side_a"] + match["side_b"]}
        self.assertNotIn(late.id, scheduled)
        self.assertEqual(scheduled, {p.id for p in players})
