"""
Total orders used by the ranked views.

Ranks are contiguous: every row gets a distinct successive integer
starting at 1, even when two rows tie on the ranked value. This is not
"dense" ranking (1, 1, 2) nor "competition" ranking (1, 1, 3); ties are
split by a deterministic secondary key so the order, and therefore
pagination, is stable.
"""
from typing import Iterable, List, Optional, Tuple, TypeVar

from arcade_index.models.schemas import PlayerRecord, ScoreRecord

T = TypeVar("T")


def player_sort_key(player: PlayerRecord) -> Tuple[int, str]:
    """Leaderboard order: total XP descending, then identity key ascending."""
    return (-player.total_xp, player.identity_key)


def ranks_ahead(player: PlayerRecord, other: PlayerRecord) -> bool:
    """True if ``other`` is ranked strictly before ``player``."""
    return player_sort_key(other) < player_sort_key(player)


def sort_players(players: Iterable[PlayerRecord]) -> List[PlayerRecord]:
    return sorted(players, key=player_sort_key)


def is_better_score(candidate: ScoreRecord, current: Optional[ScoreRecord]) -> bool:
    """
    Decide whether ``candidate`` replaces ``current`` as a player's best.

    Higher raw score wins. On equal raw score the earlier submission keeps
    priority, and on equal timestamps the lower id does.
    """
    if current is None:
        return True
    if candidate.raw_score != current.raw_score:
        return candidate.raw_score > current.raw_score
    return (candidate.submitted_at, candidate.id) < (current.submitted_at, current.id)


def high_score_sort_key(score: ScoreRecord) -> Tuple[int, object, int, str]:
    """High-score board order: raw score descending, first achiever first."""
    return (-score.raw_score, score.submitted_at, score.id, score.player_key)


def with_ranks(rows: Iterable[T]) -> List[Tuple[int, T]]:
    return list(enumerate(rows, start=1))
