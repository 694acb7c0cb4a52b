from pydantic import BaseModel, ConfigDict, Field, conlist

SetScore = conlist(int, min_length=2, max_length=2)


class EngineRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")


class StartTournamentRequest(EngineRequest):
    tournament_id: int
    roster: list[int] | None = None


class ProcessMatchResultRequest(EngineRequest):
    match_id: int
    set_scores: list[SetScore]
    reported_by_player_id: int | None = None
    is_unfinished: bool = False


class OverrideMatchResultRequest(EngineRequest):
    match_id: int
    set_scores: list[SetScore]
    note: str = ""


class MatchRequest(EngineRequest):
    match_id: int


class TournamentRequest(EngineRequest):
    tournament_id: int


class RegenerateMatchesRequest(EngineRequest):
    round_id: int


class AutoMatchRemainingRequest(EngineRequest):
    tournament_id: int
    round_id: int


class StartAuctionRequest(EngineRequest):
    tournament_id: int
    duration_hours: int | None = Field(default=None, gt=0)


class PlaceBidRequest(EngineRequest):
    pledge_item_id: int
    bidder_player_id: int
    amount_cents: int


class AdjustCreditsRequest(EngineRequest):
    tournament_id: int
    player_id: int
    delta_cents: int
    note: str = ""


class SeedDemoRequest(EngineRequest):
    player_count: int = 8
    team_size: int = 1
    seed: str | None = None
    series_index: int | None = Field(default=None, ge=0)
