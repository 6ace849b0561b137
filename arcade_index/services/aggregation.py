"""
Aggregation Engine
Read-only ranked views over the player directory and the score ledger.
"""
import logging
from typing import List, Optional

from arcade_index.config import HIGH_SCORES_LIMITS, LEADERBOARD_LIMITS
from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import NotFoundError
from arcade_index.models.schemas import (
    STAT_TOTAL_GAMES_PLAYED,
    STAT_TOTAL_PLAYERS,
    STAT_TOTAL_XP_EARNED,
    GameType,
    GlobalStats,
    HighScoreEntry,
    LeaderboardEntry,
    PlayerSnapshot,
)
from arcade_index.ranking import high_score_sort_key, with_ranks
from arcade_index.services.score_ledger import ScoreLedger
from arcade_index.validators.sync_validators import clamp_limit

logger = logging.getLogger(__name__)


class AggregationEngine:
    """
    Derives leaderboards, high-score boards and global statistics.

    The engine owns no state. Every view is computed from the store on
    request, so it reflects the last committed write.
    """

    def __init__(self, store: ArcadeStore):
        self.store = store
        self.ledger = ScoreLedger(store)

    def global_leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """
        Players ordered by total XP descending, identity key ascending.

        Ranks are contiguous (1, 2, 3, ...) even across equal XP.
        """
        limit = clamp_limit(limit, *LEADERBOARD_LIMITS)
        players = self.store.top_players(limit)
        return [
            LeaderboardEntry(
                identity_key=player.identity_key,
                display_name=player.display_name,
                total_xp=player.total_xp,
                level=player.level,
                rank=rank,
            )
            for rank, player in with_ranks(players)
        ]

    def player_rank(self, identity_key: str) -> Optional[int]:
        """Position in the global leaderboard order, or None if unregistered."""
        return self.store.player_rank(identity_key)

    def game_high_scores(self, game_type: GameType, limit: Optional[int] = None) -> List[HighScoreEntry]:
        """
        One entry per player (their best score), ranked after deduplication.

        Args:
            game_type: Game to build the board for
            limit: Page size, clamped to the configured maximum

        Returns:
            Entries ranked 1..N by raw score descending, first achiever first
        """
        limit = clamp_limit(limit, *HIGH_SCORES_LIMITS)
        best = self.ledger.best_score_per_player(game_type)
        ordered = sorted(best.values(), key=high_score_sort_key)[:limit]
        return [
            HighScoreEntry(
                identity_key=score.player_key,
                display_name=score.player_name or score.player_key,
                raw_score=score.raw_score,
                xp_earned=score.xp_earned,
                submitted_at=score.submitted_at,
                rank=rank,
            )
            for rank, score in with_ranks(ordered)
        ]

    def global_stats(self) -> GlobalStats:
        stats, top = self.store.stats_snapshot()
        result = GlobalStats(
            total_players=stats.get(STAT_TOTAL_PLAYERS, 0),
            total_games_played=stats.get(STAT_TOTAL_GAMES_PLAYED, 0),
            total_xp_earned=stats.get(STAT_TOTAL_XP_EARNED, 0),
        )
        if top is not None:
            result.top_xp = top.total_xp
            result.highest_level = top.level
        return result

    def player_snapshot(self, identity_key: str) -> PlayerSnapshot:
        """
        A player with its current rank and the XP needed for the next level.

        Raises:
            NotFoundError: if the player is not registered
        """
        player = self.store.get_player(identity_key)
        if player is None:
            raise NotFoundError(f"Player not found: {identity_key}")
        rank = self.store.player_rank(identity_key)
        if rank is None:
            # removed between the two reads
            raise NotFoundError(f"Player not found: {identity_key}")
        return PlayerSnapshot(player=player, rank=rank)
