import unittest
from collections import Counter

from sqlalchemy import select

from app.core.errors import ConflictError
from app.models.tournament import Match, MatchStatus, Round, RoundStatus
from app.services.results import report_result
from app.services.scheduler import (
    generate_rounds,
    pick_byes,
    plan_round,
    regenerate_matches,
    round_count_for,
    split_teams,
)
from app.services.tournament import start_tournament
from tests.factories import EngineTestCase, make_tournament, round_matches


class RoundPlanningTests(unittest.TestCase):
    def test_round_count_steps(self) -> None:
        self.assertEqual(round_count_for(2), 3)
        self.assertEqual(round_count_for(12), 3)
        self.assertEqual(round_count_for(13), 4)
        self.assertEqual(round_count_for(18), 4)
        self.assertEqual(round_count_for(19), 5)
        self.assertEqual(round_count_for(64), 5)

    def test_plan_is_deterministic_and_ignores_input_order(self) -> None:
        roster = list(range(1, 11))
        first = plan_round(roster, "seed-a", 1)
        again = plan_round(list(reversed(roster)), "seed-a", 1)

        self.assertEqual(first, again)
        paired = [pid for pairing in first.pairings for pid in pairing.side_a + pairing.side_b]
        self.assertEqual(sorted(paired), roster)
        self.assertEqual(first.byes, [])

    def test_odd_roster_gets_one_bye_per_round_without_repeats(self) -> None:
        roster = list(range(101, 114))
        round_count, plans = generate_rounds(roster, "thirteen")

        self.assertEqual(round_count, 4)
        bye_counts = Counter()
        for plan in plans:
            self.assertEqual(len(plan.byes), 1)
            self.assertEqual(len(plan.pairings), 6)
            seen = [pid for pairing in plan.pairings for pid in pairing.side_a + pairing.side_b] + plan.byes
            self.assertEqual(sorted(seen), roster)
            bye_counts.update(plan.byes)
        self.assertLessEqual(max(bye_counts.values()), 1)
        # Первые три раунда: никто не получает больше двух bye.
        self.assertTrue(all(count <= 2 for count in Counter(p.byes[0] for p in plans[:3]).values()))

    def test_doubles_rounds_pair_teams_of_two(self) -> None:
        round_count, plans = generate_rounds(range(1, 11), "doubles", team_size=2)

        self.assertEqual(round_count, 3)
        for plan in plans:
            self.assertEqual(len(plan.byes), 2)
            self.assertEqual(len(plan.pairings), 2)
            for pairing in plan.pairings:
                self.assertEqual(len(pairing.side_a), 2)
                self.assertEqual(len(pairing.side_b), 2)

    def test_pick_byes_prefers_last_player_below_cap(self) -> None:
        self.assertEqual(pick_byes([1, 2, 3], 1, {3: 1}, max_byes=1), [2])
        # Когда лимит исчерпан у всех, bye получает тот, у кого их меньше.
        self.assertEqual(pick_byes([1, 2, 3], 1, {1: 2, 2: 1, 3: 2}, max_byes=1), [2])

    def test_split_teams_avoids_repeat_partners(self) -> None:
        pairing = split_teams([1, 2, 3, 4], partner_history={1: {2}, 2: {1}})

        self.assertEqual(pairing.side_a, (1, 3))
        self.assertEqual(pairing.side_b, (2, 4))

    def test_split_teams_prefers_mixed_pairs(self) -> None:
        genders = {1: "female", 2: "female", 3: "male", 4: "male"}

        pairing = split_teams([1, 2, 3, 4], partner_history={}, genders=genders)

        self.assertEqual(pairing.side_a, (1, 3))
        self.assertEqual(pairing.side_b, (2, 4))


class RegenerateMatchesTests(EngineTestCase):
    async def test_regenerate_voids_only_unplayed_matches(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=8)
        started = await start_tournament(self.db, tournament.id)
        played = (await round_matches(self.db, tournament.id, 1))[0]
        await report_result(self.db, played.id, [[6, 4], [3, 6], [7, 5]])

        result = await regenerate_matches(self.db, started["round_id"])

        self.assertEqual(result["generation"], 1)
        self.assertEqual(result["voided"], 3)
        self.assertEqual(len(result["matches"]), 3)
        regenerated_players = {pid for match in result["matches"] for pid in match["side_a"] + match["side_b"]}
        self.assertTrue(regenerated_players.isdisjoint(played.player_ids))

        await self.db.refresh(played)
        self.assertEqual(played.status, MatchStatus.PLAYED.value)
        self.assertEqual(played.set_scores, [[6, 4], [3, 6], [7, 5]])

        statuses = Counter((await self.db.scalars(select(Match.status).where(Match.round_id == started["round_id"]))).all())
        self.assertEqual(statuses[MatchStatus.VOID.value], 3)
        self.assertEqual(statuses[MatchStatus.SCHEDULED.value], 3)
        self.assertEqual(statuses[MatchStatus.PLAYED.value], 1)

    async def test_regenerate_replaces_byes(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=5)
        started = await start_tournament(self.db, tournament.id)
        self.assertEqual(len(started["byes"]), 1)

        result = await regenerate_matches(self.db, started["round_id"])

        self.assertEqual(result["voided"], 3)
        self.assertEqual(len(result["byes"]), 1)
        byes = (
            await self.db.scalars(
                select(Match).where(
                    Match.round_id == started["round_id"],
                    Match.is_bye.is_(True),
                    Match.status != MatchStatus.VOID.value,
                )
            )
        ).all()
        self.assertEqual(len(byes), 1)

    async def test_regenerate_requires_active_round(self) -> None:
        tournament, _ = await make_tournament(self.db, player_count=4)
        started = await start_tournament(self.db, tournament.id)
        for match in await round_matches(self.db, tournament.id, 1):
            await report_result(self.db, match.id, [[6, 1], [6, 1]])

        round_ = await self.db.scalar(select(Round).where(Round.id == started["round_id"]))
        self.assertEqual(round_.status, RoundStatus.COMPLETE.value)
        with self.assertRaises(ConflictError):
            await regenerate_matches(self.db, started["round_id"])
