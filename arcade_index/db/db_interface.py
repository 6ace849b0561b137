from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from arcade_index.models.schemas import GameType, PlayerRecord, ScoreRecord, ScoreSubmission


class ArcadeStore(ABC):
    """
    Storage interface behind the player directory, the score ledger mirror
    and the global counters.

    Implementations must make every write atomic: a failed or interrupted
    write leaves no partial effect visible to readers. Writes to the same
    identity key serialize; writes to different keys do not block each
    other beyond the storage engine's own commit.
    """

    name = "abstract"

    @abstractmethod
    def init_db(self) -> None:
        """Connect and create the schema (players, scores, stats) if missing."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release connections. The store is unusable afterwards."""
        pass

    # Player directory

    @abstractmethod
    def upsert_player(self, identity_key: str, display_name: str, shard_ref: Optional[str] = None) -> Tuple[PlayerRecord, bool]:
        """
        Create the player with zero counters, or update ``display_name`` and
        ``updated_at`` of an existing one. Returns the record and whether it
        was created. ``total_players`` is incremented only on creation.
        """
        pass

    @abstractmethod
    def get_player(self, identity_key: str) -> Optional[PlayerRecord]:
        pass

    @abstractmethod
    def list_players(self) -> List[PlayerRecord]:
        """All players in leaderboard order (XP desc, identity key asc)."""
        pass

    @abstractmethod
    def top_players(self, limit: int) -> List[PlayerRecord]:
        """The first ``limit`` players in leaderboard order."""
        pass

    @abstractmethod
    def player_rank(self, identity_key: str) -> Optional[int]:
        """1-indexed position in leaderboard order, or None for unknown keys."""
        pass

    @abstractmethod
    def apply_xp_delta(self, identity_key: str, xp_delta: int) -> PlayerRecord:
        """
        Add ``xp_delta`` to total XP and one to games played in a single
        storage-side arithmetic update.

        Raises:
            NotFoundError: if the player is not registered.
            InvalidInputError: if the new total would be negative; nothing is written.
        """
        pass

    @abstractmethod
    def delete_player(self, identity_key: str) -> bool:
        """Delete a player and, by cascade, its scores. Counters are untouched."""
        pass

    # Score ledger mirror

    @abstractmethod
    def append_score(self, submission: ScoreSubmission) -> ScoreRecord:
        """
        Append a score row with the next id.

        Raises:
            NotFoundError: if ``submission.player_key`` is not registered.
        """
        pass

    @abstractmethod
    def record_submission(self, submission: ScoreSubmission) -> Tuple[ScoreRecord, PlayerRecord, bool]:
        """
        Apply an accepted score as one unit: append the score, add its XP to
        the player, and bump ``total_games_played`` / ``total_xp_earned``.

        A submission carrying a ``submission_id`` already stored for the same
        player is a replay: the stored record is returned and nothing
        changes. Returns (score, player, created).

        Raises:
            NotFoundError: if the player is not registered.
            ConflictError: if the submission id was used with another payload.
        """
        pass

    @abstractmethod
    def recent_scores(self, limit: int) -> List[ScoreRecord]:
        """Most recent first (submitted_at desc, id desc)."""
        pass

    @abstractmethod
    def scores_for_game(self, game_type: GameType, limit: int) -> List[ScoreRecord]:
        """Raw score desc, then earliest submission first."""
        pass

    @abstractmethod
    def all_scores_for_game(self, game_type: GameType) -> List[ScoreRecord]:
        """Every score of a game in id order."""
        pass

    # Global counters

    @abstractmethod
    def increment_stat(self, key: str, amount: int = 1) -> int:
        """Atomically add ``amount`` to a counter and return the new value."""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def stats_snapshot(self) -> Tuple[Dict[str, int], Optional[PlayerRecord]]:
        """Counters and the rank-1 player, read together."""
        pass
