import logging
import threading
from contextlib import contextmanager
from datetime import datetime, UTC
from typing import Dict, List, Optional, Tuple

from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import ConflictError, InvalidInputError, NotFoundError
from arcade_index.models.schemas import (
    STAT_KEYS,
    STAT_TOTAL_GAMES_PLAYED,
    STAT_TOTAL_PLAYERS,
    STAT_TOTAL_XP_EARNED,
    GameType,
    PlayerRecord,
    ScoreRecord,
    ScoreSubmission,
)
from arcade_index.ranking import player_sort_key, ranks_ahead, sort_players

logger = logging.getLogger(__name__)


class InMemoryStore(ArcadeStore):
    """
    In-process store for development and tests. Data is lost on restart.

    Records are immutable and replaced whole, so a reader never sees a
    half-updated player. Each identity key has its own lock for the
    read-modify-write; the resulting effects are published together under
    a short commit lock which readers also take to copy a snapshot.
    """

    name = "memory"

    def __init__(self):
        self._players: Dict[str, PlayerRecord] = {}
        self._scores: List[ScoreRecord] = []
        self._submissions: Dict[Tuple[str, str], ScoreRecord] = {}
        self._stats: Dict[str, int] = {key: 0 for key in STAT_KEYS}
        self._next_score_id = 1
        self._key_locks: Dict[str, list] = {}
        self._key_locks_guard = threading.Lock()
        self._commit_lock = threading.Lock()

    def init_db(self) -> None:
        logger.info("Using in-memory store; data resets on restart")

    def close(self) -> None:
        logger.debug("In-memory store closed")

    @contextmanager
    def _key_lock(self, identity_key: str):
        """
        Hold the write lock of one identity key.

        Entries are reference counted and dropped once no writer holds or
        waits for them, so the table only contains keys with writes in flight.
        """
        with self._key_locks_guard:
            entry = self._key_locks.get(identity_key)
            if entry is None:
                entry = self._key_locks[identity_key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._key_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[identity_key]

    def _snapshot_players(self) -> List[PlayerRecord]:
        with self._commit_lock:
            return list(self._players.values())

    def _player_name(self, identity_key: str) -> Optional[str]:
        player = self._players.get(identity_key)
        return player.display_name if player else None

    def _with_name(self, score: ScoreRecord) -> ScoreRecord:
        return score.model_copy(update={"player_name": self._player_name(score.player_key)})

    # Player directory

    def upsert_player(self, identity_key: str, display_name: str, shard_ref: Optional[str] = None) -> Tuple[PlayerRecord, bool]:
        with self._key_lock(identity_key):
            now = datetime.now(UTC)
            existing = self._players.get(identity_key)
            if existing is not None:
                player = existing.model_copy(update={"display_name": display_name, "updated_at": now})
                with self._commit_lock:
                    self._players[identity_key] = player
                return player, False

            player = PlayerRecord(
                identity_key=identity_key,
                display_name=display_name,
                shard_ref=shard_ref,
                registered_at=now,
                updated_at=now,
            )
            with self._commit_lock:
                self._players[identity_key] = player
                self._stats[STAT_TOTAL_PLAYERS] += 1
            return player, True

    def get_player(self, identity_key: str) -> Optional[PlayerRecord]:
        return self._players.get(identity_key)

    def list_players(self) -> List[PlayerRecord]:
        return sort_players(self._snapshot_players())

    def top_players(self, limit: int) -> List[PlayerRecord]:
        return self.list_players()[:limit]

    def player_rank(self, identity_key: str) -> Optional[int]:
        players = self._snapshot_players()
        target = next((p for p in players if p.identity_key == identity_key), None)
        if target is None:
            return None
        return sum(1 for other in players if ranks_ahead(target, other)) + 1

    def apply_xp_delta(self, identity_key: str, xp_delta: int) -> PlayerRecord:
        with self._key_lock(identity_key):
            player = self._accumulate(identity_key, xp_delta)
            with self._commit_lock:
                self._players[identity_key] = player
            return player

    def _accumulate(self, identity_key: str, xp_delta: int) -> PlayerRecord:
        # Caller holds the key lock.
        current = self._players.get(identity_key)
        if current is None:
            raise NotFoundError(f"Player not registered: {identity_key}")
        total_xp = current.total_xp + xp_delta
        if total_xp < 0:
            raise InvalidInputError(
                f"XP delta {xp_delta} would make total XP of {identity_key} negative ({current.total_xp})"
            )
        return current.model_copy(update={
            "total_xp": total_xp,
            "games_played": current.games_played + 1,
            "updated_at": datetime.now(UTC),
        })

    def delete_player(self, identity_key: str) -> bool:
        with self._key_lock(identity_key):
            with self._commit_lock:
                if self._players.pop(identity_key, None) is None:
                    return False
                self._scores = [s for s in self._scores if s.player_key != identity_key]
                self._submissions = {
                    k: v for k, v in self._submissions.items() if k[0] != identity_key
                }
            return True

    # Score ledger mirror

    def _new_score(self, submission: ScoreSubmission) -> ScoreRecord:
        # Caller holds the commit lock.
        score = ScoreRecord(
            id=self._next_score_id,
            player_key=submission.player_key,
            game_type=submission.game_type,
            raw_score=submission.raw_score,
            xp_earned=submission.xp_earned,
            bonus_data=submission.bonus_data,
            shard_ref=submission.shard_ref,
            submission_id=submission.submission_id,
            submitted_at=datetime.now(UTC),
        )
        self._next_score_id += 1
        self._scores.append(score)
        if submission.submission_id is not None:
            self._submissions[(submission.player_key, submission.submission_id)] = score
        return score

    def append_score(self, submission: ScoreSubmission) -> ScoreRecord:
        with self._key_lock(submission.player_key):
            if submission.player_key not in self._players:
                raise NotFoundError(f"Player not registered: {submission.player_key}")
            with self._commit_lock:
                score = self._new_score(submission)
            return self._with_name(score)

    def record_submission(self, submission: ScoreSubmission) -> Tuple[ScoreRecord, PlayerRecord, bool]:
        key = submission.player_key
        with self._key_lock(key):
            if key not in self._players:
                raise NotFoundError(f"Player not registered: {key}")

            if submission.submission_id is not None:
                previous = self._submissions.get((key, submission.submission_id))
                if previous is not None:
                    if not submission.same_payload(previous):
                        raise ConflictError(
                            f"Submission id {submission.submission_id!r} already used with a different score"
                        )
                    return self._with_name(previous), self._players[key], False

            player = self._accumulate(key, submission.xp_earned)
            with self._commit_lock:
                score = self._new_score(submission)
                self._players[key] = player
                self._stats[STAT_TOTAL_GAMES_PLAYED] += 1
                self._stats[STAT_TOTAL_XP_EARNED] += submission.xp_earned
            return self._with_name(score), player, True

    def recent_scores(self, limit: int) -> List[ScoreRecord]:
        with self._commit_lock:
            scores = list(self._scores)
        scores.sort(key=lambda s: (s.submitted_at, s.id), reverse=True)
        return [self._with_name(s) for s in scores[:limit]]

    def scores_for_game(self, game_type: GameType, limit: int) -> List[ScoreRecord]:
        scores = self.all_scores_for_game(game_type)
        scores.sort(key=lambda s: (-s.raw_score, s.submitted_at, s.id))
        return scores[:limit]

    def all_scores_for_game(self, game_type: GameType) -> List[ScoreRecord]:
        with self._commit_lock:
            scores = [s for s in self._scores if s.game_type == game_type]
        return [self._with_name(s) for s in scores]

    # Global counters

    def increment_stat(self, key: str, amount: int = 1) -> int:
        if key not in self._stats:
            raise KeyError(f"Unknown stat: {key}")
        with self._commit_lock:
            self._stats[key] += amount
            return self._stats[key]

    def get_stats(self) -> Dict[str, int]:
        with self._commit_lock:
            return dict(self._stats)

    def stats_snapshot(self) -> Tuple[Dict[str, int], Optional[PlayerRecord]]:
        with self._commit_lock:
            stats = dict(self._stats)
            players = list(self._players.values())
        top = min(players, key=player_sort_key) if players else None
        return stats, top
