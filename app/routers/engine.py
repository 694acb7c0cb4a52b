"""HTTP-граница движка: именованные действия с JSON-телом и единый формат ошибок."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import pydantic
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import EngineError
from app.db.session import get_db
from app.schemas.engine import (
    AdjustCreditsRequest,
    AutoMatchRemainingRequest,
    MatchRequest,
    OverrideMatchResultRequest,
    PlaceBidRequest,
    ProcessMatchResultRequest,
    RegenerateMatchesRequest,
    SeedDemoRequest,
    StartAuctionRequest,
    StartTournamentRequest,
    TournamentRequest,
)
from app.services.advancement import auto_match_remaining, check_advance_round, end_round_now
from app.services.auction import place_bid, settle_auction, start_auction
from app.services.demo import seed_demo
from app.services.results import auto_resolve_match, override_result, report_result
from app.services.scheduler import regenerate_matches
from app.services.tournament import adjust_credits, ledger_statement, standings, start_tournament
from app.services.transactions import run_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/engine", tags=["engine"])

Handler = Callable[[AsyncSession, Any], Awaitable[dict]]


def ok(payload: dict | None = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"ok": True, **(payload or {})}, status_code=status_code)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


# Каждое действие: схема тела запроса и функция сервиса.
ACTIONS: dict[str, tuple[type[pydantic.BaseModel], Handler]] = {
    "start_tournament": (
        StartTournamentRequest,
        lambda db, req: start_tournament(db, req.tournament_id, roster=req.roster),
    ),
    "process_match_result": (
        ProcessMatchResultRequest,
        lambda db, req: report_result(
            db,
            req.match_id,
            req.set_scores,
            reported_by_player_id=req.reported_by_player_id,
            is_unfinished=req.is_unfinished,
        ),
    ),
    "override_match_result": (
        OverrideMatchResultRequest,
        lambda db, req: override_result(db, req.match_id, req.set_scores, note=req.note),
    ),
    "auto_resolve_match": (MatchRequest, lambda db, req: auto_resolve_match(db, req.match_id)),
    "check_advance_round": (TournamentRequest, lambda db, req: check_advance_round(db, req.tournament_id)),
    "end_round_now": (TournamentRequest, lambda db, req: end_round_now(db, req.tournament_id)),
    "regenerate_matches": (RegenerateMatchesRequest, lambda db, req: regenerate_matches(db, req.round_id)),
    "auto_match_remaining": (
        AutoMatchRemainingRequest,
        lambda db, req: auto_match_remaining(db, req.tournament_id, req.round_id),
    ),
    "start_auction": (
        StartAuctionRequest,
        lambda db, req: start_auction(db, req.tournament_id, duration_hours=req.duration_hours),
    ),
    "place_bid": (
        PlaceBidRequest,
        lambda db, req: place_bid(db, req.pledge_item_id, req.bidder_player_id, req.amount_cents),
    ),
    "settle_auction": (TournamentRequest, lambda db, req: settle_auction(db, req.tournament_id)),
    "adjust_credits": (
        AdjustCreditsRequest,
        lambda db, req: adjust_credits(db, req.tournament_id, req.player_id, req.delta_cents, note=req.note),
    ),
    "seed_demo": (
        SeedDemoRequest,
        lambda db, req: seed_demo(
            db,
            player_count=req.player_count,
            team_size=req.team_size,
            seed=req.seed,
            series_index=req.series_index,
        ),
    ),
}


def describe_validation_error(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"Invalid {location}: {first.get('msg', 'invalid value')}"


async def dispatch(action: str, payload: dict, db: AsyncSession) -> JSONResponse:
    if action not in ACTIONS:
        return error_response(f"Unknown action: {action}", 400)

    schema, handler = ACTIONS[action]
    try:
        request = schema.model_validate(payload)
    except pydantic.ValidationError as exc:
        return error_response(describe_validation_error(exc), 400)

    try:
        result = await run_action(db, handler, request)
    except EngineError as exc:
        logger.info("Action %s rejected: %s", action, exc.message)
        return error_response(exc.message, exc.status_code)
    except Exception:  # noqa: BLE001
        logger.exception("Tournament engine error in action %s", action)
        return error_response("Internal engine error", 500)
    return ok(result)


@router.post("")
async def run_named_action(payload: dict = Body(...), db: AsyncSession = Depends(get_db)):
    # Совместимый вход: {"action": "...", ...поля действия}.
    body = dict(payload)
    action = body.pop("action", None)
    if not isinstance(action, str):
        return error_response("Missing action", 400)
    return await dispatch(action, body, db)


@router.post("/{action}")
async def run_action_by_path(action: str, payload: dict = Body(default={}), db: AsyncSession = Depends(get_db)):
    return await dispatch(action, payload, db)


@router.get("/tournaments/{tournament_id}/standings")
async def tournament_standings(tournament_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await standings(db, tournament_id))
    except EngineError as exc:
        return error_response(exc.message, exc.status_code)


@router.get("/tournaments/{tournament_id}/players/{player_id}/ledger")
async def player_ledger_view(tournament_id: int, player_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return ok(await ledger_statement(db, tournament_id, player_id))
    except EngineError as exc:
        return error_response(exc.message, exc.status_code)
