from pydantic import BaseModel, ConfigDict, Field, StrictInt, computed_field
from pydantic.alias_generators import to_camel
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from arcade_index.progression import level_for_xp, next_level_xp


class GameType(str, Enum):
    """Games known to the index. Anything else is rejected at the gateway."""
    SPEED_CLICKER = "SPEED_CLICKER"
    MEMORY_MATRIX = "MEMORY_MATRIX"
    REACTION_STRIKE = "REACTION_STRIKE"
    MATH_BLITZ = "MATH_BLITZ"
    SNAKE_SPRINT = "SNAKE_SPRINT"
    AIM_TRAINER = "AIM_TRAINER"
    COLOR_RUSH = "COLOR_RUSH"
    TYPING_BLITZ = "TYPING_BLITZ"


GAME_CATALOGUE = {
    GameType.SPEED_CLICKER: (1, "Speed Clicker"),
    GameType.MEMORY_MATRIX: (2, "Memory Matrix"),
    GameType.REACTION_STRIKE: (3, "Reaction Strike"),
    GameType.MATH_BLITZ: (4, "Math Blitz"),
    GameType.SNAKE_SPRINT: (5, "Snake Sprint"),
    GameType.AIM_TRAINER: (6, "Aim Trainer"),
    GameType.COLOR_RUSH: (7, "Color Rush"),
    GameType.TYPING_BLITZ: (8, "Typing Blitz"),
}

STAT_TOTAL_PLAYERS = "total_players"
STAT_TOTAL_GAMES_PLAYED = "total_games_played"
STAT_TOTAL_XP_EARNED = "total_xp_earned"
STAT_KEYS = (STAT_TOTAL_PLAYERS, STAT_TOTAL_GAMES_PLAYED, STAT_TOTAL_XP_EARNED)


class ArcadeModel(BaseModel):
    """Base for everything that crosses the HTTP boundary (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlayerRecord(ArcadeModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    identity_key: str
    display_name: str
    total_xp: int = 0
    games_played: int = 0
    shard_ref: Optional[str] = None
    registered_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def level(self) -> int:
        return level_for_xp(self.total_xp)


class ScoreSubmission(ArcadeModel):
    """An accepted, validated score fact ready to be written."""
    player_key: str
    game_type: GameType
    raw_score: int
    xp_earned: int
    bonus_data: Optional[int] = None
    shard_ref: Optional[str] = None
    submission_id: Optional[str] = None

    def same_payload(self, record: "ScoreRecord") -> bool:
        return (
            record.game_type == self.game_type
            and record.raw_score == self.raw_score
            and record.xp_earned == self.xp_earned
            and record.bonus_data == self.bonus_data
        )


class ScoreRecord(ArcadeModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    player_key: str
    game_type: GameType
    raw_score: int
    xp_earned: int
    bonus_data: Optional[int] = None
    shard_ref: Optional[str] = None
    submission_id: Optional[str] = None
    submitted_at: datetime
    player_name: Optional[str] = None  # joined from players at read time


class LeaderboardEntry(ArcadeModel):
    identity_key: str
    display_name: str
    total_xp: int
    level: int
    rank: int


class HighScoreEntry(ArcadeModel):
    identity_key: str
    display_name: str
    raw_score: int
    xp_earned: int
    submitted_at: datetime
    rank: int


class GlobalStats(ArcadeModel):
    total_players: int = 0
    total_games_played: int = 0
    total_xp_earned: int = 0
    top_xp: int = 0
    highest_level: int = 1


class PlayerSnapshot(ArcadeModel):
    player: PlayerRecord
    rank: int

    @computed_field
    @property
    def next_level_xp(self) -> int:
        return next_level_xp(self.player.total_xp)


class SubmitResult(ArcadeModel):
    score: ScoreRecord
    player: PlayerRecord
    replayed: bool = False


class GameInfo(ArcadeModel):
    game_type: GameType
    game_id: int
    name: str


# Request bodies for the write endpoints. Shape checks only; the sync
# gateway owns the domain validation.

class RegisterPlayerRequest(ArcadeModel):
    identity: str
    display_name: str
    shard_ref: Optional[str] = Field(None, max_length=128)


class SubmitScoreRequest(ArcadeModel):
    identity: str
    game_type: str
    raw_score: StrictInt
    xp_earned: StrictInt
    bonus_data: Optional[StrictInt] = None
    shard_ref: Optional[str] = Field(None, max_length=128)
    submission_id: Optional[str] = None


# Response envelope

def envelope(data: Any) -> Dict[str, Any]:
    """Wrap a successful payload; pydantic models are dumped with camelCase keys."""
    return {"success": True, "data": _dump(data)}


def error_envelope(kind: str, message: str) -> Dict[str, Any]:
    return {"success": False, "error": {"kind": kind, "message": message}}


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_dump(item) for item in data]
    if isinstance(data, dict):
        return {key: _dump(value) for key, value in data.items()}
    return data
