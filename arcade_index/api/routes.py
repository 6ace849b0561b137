from fastapi import APIRouter, Depends
from datetime import datetime, UTC
from typing import Optional
import logging

from arcade_index.api.dependencies import (
    get_directory,
    get_aggregation,
    get_gateway,
    get_ledger,
    get_store,
    require_api_key,
)
from arcade_index.db.db_interface import ArcadeStore
from arcade_index.identity import normalize_identity
from arcade_index.models.schemas import (
    GAME_CATALOGUE,
    GameInfo,
    RegisterPlayerRequest,
    SubmitScoreRequest,
    envelope,
)
from arcade_index.services.aggregation import AggregationEngine
from arcade_index.services.player_directory import PlayerDirectory
from arcade_index.services.score_ledger import ScoreLedger
from arcade_index.services.sync_gateway import SyncGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Handlers are plain functions so FastAPI runs the blocking store calls in
# its threadpool. Errors propagate as ArcadeError and are rendered by the
# handlers registered in main.create_app.


@router.get("/health")
def health(store: ArcadeStore = Depends(get_store)):
    return envelope({
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "storage": store.name,
    })


@router.get("/games")
def list_games():
    """The game types accepted by submit-score."""
    games = [
        GameInfo(game_type=game_type, game_id=game_id, name=name)
        for game_type, (game_id, name) in GAME_CATALOGUE.items()
    ]
    return envelope(games)


@router.post("/register", dependencies=[Depends(require_api_key)])
def register_player(body: RegisterPlayerRequest, gateway: SyncGateway = Depends(get_gateway)):
    """Register a player (or rename one) after the ledger confirmed it."""
    player = gateway.register_player(body.identity, body.display_name, body.shard_ref)
    return envelope(player)


@router.post("/submit-score", dependencies=[Depends(require_api_key)])
def submit_score(body: SubmitScoreRequest, gateway: SyncGateway = Depends(get_gateway)):
    """Record a confirmed score; returns the score, the updated player and whether it was a replay."""
    result = gateway.submit_score(
        body.identity,
        body.game_type,
        body.raw_score,
        body.xp_earned,
        bonus_data=body.bonus_data,
        shard_ref=body.shard_ref,
        submission_id=body.submission_id,
    )
    return envelope(result)


@router.get("/leaderboard")
def get_leaderboard(limit: Optional[int] = None, engine: AggregationEngine = Depends(get_aggregation)):
    entries = engine.global_leaderboard(limit)
    logger.debug(f"Leaderboard served with {len(entries)} entries")
    return envelope(entries)


@router.get("/player-rank/{identity}")
def get_player_rank(identity: str, engine: AggregationEngine = Depends(get_aggregation)):
    """Rank of a player, or null when the identity is not registered."""
    identity_key = normalize_identity(identity)
    return envelope({"identityKey": identity_key, "rank": engine.player_rank(identity_key)})


@router.get("/players")
def list_players(directory: PlayerDirectory = Depends(get_directory)):
    return envelope(directory.list_all())


@router.get("/player/{identity}")
def get_player(identity: str, engine: AggregationEngine = Depends(get_aggregation)):
    snapshot = engine.player_snapshot(normalize_identity(identity))
    return envelope(snapshot)


@router.get("/scores/recent")
def get_recent_scores(limit: Optional[int] = None, ledger: ScoreLedger = Depends(get_ledger)):
    return envelope(ledger.recent_scores(limit))


@router.get("/scores/game/{game_type}")
def get_game_scores(game_type: str, limit: Optional[int] = None, ledger: ScoreLedger = Depends(get_ledger)):
    return envelope(ledger.scores_for_game(game_type, limit))


@router.get("/scores/highscores/{game_type}")
def get_high_scores(game_type: str, limit: Optional[int] = None, engine: AggregationEngine = Depends(get_aggregation)):
    """Best score per player for one game, ranked after deduplication."""
    return envelope(engine.game_high_scores(game_type, limit))


@router.get("/stats")
def get_stats(engine: AggregationEngine = Depends(get_aggregation)):
    return envelope(engine.global_stats())
