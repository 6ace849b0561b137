"""
Score Ledger Mirror
Append-only record of every accepted score submission.
"""
import logging
from typing import Dict, List, Optional

from arcade_index.config import GAME_SCORES_LIMITS, RECENT_SCORES_LIMITS
from arcade_index.db.db_interface import ArcadeStore
from arcade_index.models.schemas import GameType, ScoreRecord, ScoreSubmission
from arcade_index.ranking import is_better_score
from arcade_index.validators.sync_validators import clamp_limit, validate_game_type

logger = logging.getLogger(__name__)


class ScoreLedger:
    """Service over the scores table of a store."""

    def __init__(self, store: ArcadeStore):
        self.store = store

    def append_score(
        self,
        player_key: str,
        game_type: GameType,
        raw_score: int,
        xp_earned: int,
        bonus_data: Optional[int] = None,
        shard_ref: Optional[str] = None,
    ) -> ScoreRecord:
        """
        Append a score row. The player must already exist.

        This only records the score; XP and the global counters are
        applied by ``SyncGateway.submit_score``.

        Raises:
            NotFoundError: if ``player_key`` is not registered
        """
        submission = ScoreSubmission(
            player_key=player_key,
            game_type=validate_game_type(game_type),
            raw_score=raw_score,
            xp_earned=xp_earned,
            bonus_data=bonus_data,
            shard_ref=shard_ref,
        )
        score = self.store.append_score(submission)
        logger.info(f"Score {score.id} appended for {player_key} in {score.game_type.value}")
        return score

    def recent_scores(self, limit: Optional[int] = None) -> List[ScoreRecord]:
        limit = clamp_limit(limit, *RECENT_SCORES_LIMITS)
        return self.store.recent_scores(limit)

    def scores_for_game(self, game_type: GameType, limit: Optional[int] = None) -> List[ScoreRecord]:
        game_type = validate_game_type(game_type)
        limit = clamp_limit(limit, *GAME_SCORES_LIMITS)
        return self.store.scores_for_game(game_type, limit)

    def best_score_per_player(self, game_type: GameType) -> Dict[str, ScoreRecord]:
        """
        Map each player to their single best score in ``game_type``.

        Highest raw score wins; on a tie the earliest submission keeps it.
        The choice never depends on the order rows come back from storage.
        """
        game_type = validate_game_type(game_type)
        best: Dict[str, ScoreRecord] = {}
        for score in self.store.all_scores_for_game(game_type):
            if is_better_score(score, best.get(score.player_key)):
                best[score.player_key] = score
        logger.debug(f"Best scores for {game_type.value}: {len(best)} players")
        return best
