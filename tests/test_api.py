"""Сквозной сценарий через HTTP: действия движка, формат ответа и коды ошибок."""

import httpx

from app.db.session import get_db
from app.main import app
from app.services.tournament import adjust_credits, start_tournament
from tests.factories import EngineTestCase, make_tournament

AUTH = {"Authorization": "Bearer test_service_key"}


class EngineApiTests(EngineTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()

        async def override_get_db():
            async with self.sessionmaker() as session:
                yield session

        app.dependency_overrides[get_db] = override_get_db
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    async def asyncTearDown(self) -> None:
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    async def post(self, path: str, payload: dict) -> httpx.Response:
        return await self.client.post(path, json=payload, headers=AUTH)

    async def test_tournament_flow_through_actions(self) -> None:
        seeded = await self.post("/engine/seed_demo", {"player_count": 4, "seed": "api"})
        self.assertEqual(seeded.status_code, 200)
        body = seeded.json()
        self.assertTrue(body["ok"])
        tournament_id = body["tournament_id"]
        match_id = body["matches"][0]["match_id"]

        reported = await self.post(
            "/engine",
            {"action": "process_match_result", "match_id": match_id, "set_scores": [[6, 3], [6, 4]]},
        )
        self.assertEqual(reported.status_code, 200)
        self.assertEqual(reported.json()["sets_a"], 2)

        again = await self.post("/engine/process_match_result", {"match_id": match_id, "set_scores": [[6, 3], [6, 4]]})
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json(), {"ok": False, "error": "Match is already Played"})

        pending = await self.post("/engine/check_advance_round", {"tournament_id": tournament_id})
        self.assertEqual(pending.status_code, 200)
        self.assertFalse(pending.json()["advanced"])
        self.assertEqual(pending.json()["pending_matches"], 1)

        standings = await self.client.get(f"/engine/tournaments/{tournament_id}/standings", headers=AUTH)
        rows = standings.json()["standings"]
        self.assertEqual(len(rows), 4)
        self.assertEqual(rows[0]["balance_cents"], 2600)

        ledger = await self.client.get(
            f"/engine/tournaments/{tournament_id}/players/{rows[0]['player_id']}/ledger",
            headers=AUTH,
        )
        self.assertEqual(ledger.json()["balance_display"], "€26")
        self.assertEqual([entry["reason"] for entry in ledger.json()["entries"]], ["starting_grant", "set_win"])

    async def test_validation_errors_are_400(self) -> None:
        tied = await self.post("/engine/process_match_result", {"match_id": 1, "set_scores": [[6, 6]]})
        self.assertEqual(tied.status_code, 400)
        self.assertFalse(tied.json()["ok"])

        malformed = await self.post("/engine/process_match_result", {"match_id": "first"})
        self.assertEqual(malformed.status_code, 400)
        self.assertIn("match_id", malformed.json()["error"])

        unknown = await self.post("/engine/steal_credits", {})
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(unknown.json()["error"], "Unknown action: steal_credits")

        missing = await self.post("/engine", {"tournament_id": 1})
        self.assertEqual(missing.status_code, 400)

    async def test_unknown_ids_are_404(self) -> None:
        response = await self.post("/engine/start_tournament", {"tournament_id": 404})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"ok": False, "error": "Tournament not found"})

    async def test_ledger_uses_tournament_display_rules(self) -> None:
        async with self.sessionmaker() as db:
            tournament, players = await make_tournament(
                db,
                player_count=4,
                display_decimals=True,
                allow_negative_balance=True,
            )
            await start_tournament(db, tournament.id)
            await adjust_credits(db, tournament.id, players[0].id, -2550, note="Broken racket")

        response = await self.client.get(
            f"/engine/tournaments/{tournament.id}/players/{players[0].id}/ledger",
            headers=AUTH,
        )

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["balance_cents"], -550)
        self.assertEqual(body["balance_display"], "-€5.50")
        self.assertEqual([entry["reason"] for entry in body["entries"]], ["starting_grant", "adjustment"])

    async def test_ledger_of_unknown_tournament_or_player_is_404(self) -> None:
        missing = await self.client.get("/engine/tournaments/404/players/1/ledger", headers=AUTH)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {"ok": False, "error": "Tournament not found"})

        async with self.sessionmaker() as db:
            tournament, _ = await make_tournament(db, player_count=2)

        stranger = await self.client.get(f"/engine/tournaments/{tournament.id}/players/999/ledger", headers=AUTH)
        self.assertEqual(stranger.status_code, 404)
        self.assertEqual(stranger.json()["error"], "Player not found")

    async def test_unexpected_errors_are_generic_500(self) -> None:
        async def broken_get_db():
            yield None

        app.dependency_overrides[get_db] = broken_get_db

        response = await self.post("/engine/check_advance_round", {"tournament_id": 1})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"ok": False, "error": "Internal engine error"})
