"""
Validators for facts arriving at the sync gateway.

Every check runs before any storage call, so a rejected request never
leaves a partial write behind.
"""
import re
from typing import Optional

from arcade_index.errors import InvalidInputError
from arcade_index.models.schemas import GameType

DISPLAY_NAME_MIN_LENGTH = 3
DISPLAY_NAME_MAX_LENGTH = 20
SHARD_REF_MAX_LENGTH = 128
SUBMISSION_ID_MAX_LENGTH = 128

_DISPLAY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_SUBMISSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]+$")


def validate_display_name(display_name) -> str:
    if not isinstance(display_name, str):
        raise InvalidInputError("displayName must be a string")
    if not DISPLAY_NAME_MIN_LENGTH <= len(display_name) <= DISPLAY_NAME_MAX_LENGTH:
        raise InvalidInputError(
            f"displayName must be {DISPLAY_NAME_MIN_LENGTH}-{DISPLAY_NAME_MAX_LENGTH} characters"
        )
    if not _DISPLAY_NAME_PATTERN.match(display_name):
        raise InvalidInputError("displayName may only contain letters, digits, '_' and '-'")
    return display_name


def validate_game_type(game_type) -> GameType:
    """Resolve a game type name; unknown names are rejected, never ignored."""
    if isinstance(game_type, GameType):
        return game_type
    try:
        return GameType(game_type)
    except ValueError:
        known = ", ".join(g.value for g in GameType)
        raise InvalidInputError(f"Unknown gameType {game_type!r}; expected one of: {known}")


def validate_non_negative_int(value, field: str) -> int:
    # bool is an int subclass but never a valid score
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be an integer")
    if value < 0:
        raise InvalidInputError(f"{field} must not be negative")
    return value


def validate_optional_int(value, field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field} must be an integer")
    return value


def validate_shard_ref(shard_ref) -> Optional[str]:
    if shard_ref is None:
        return None
    if not isinstance(shard_ref, str) or len(shard_ref) > SHARD_REF_MAX_LENGTH:
        raise InvalidInputError(f"shardRef must be a string of at most {SHARD_REF_MAX_LENGTH} characters")
    return shard_ref or None


def validate_submission_id(submission_id) -> Optional[str]:
    if submission_id is None:
        return None
    if (
        not isinstance(submission_id, str)
        or not 1 <= len(submission_id) <= SUBMISSION_ID_MAX_LENGTH
        or not _SUBMISSION_ID_PATTERN.match(submission_id)
    ):
        raise InvalidInputError(
            f"submissionId must be 1-{SUBMISSION_ID_MAX_LENGTH} characters of letters, digits, '_', '.', ':' or '-'"
        )
    return submission_id


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    """Bound a caller-supplied page size to [1, maximum]; None means default."""
    if limit is None:
        return default
    return max(1, min(limit, maximum))
