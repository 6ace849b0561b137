"""
Sync Gateway
The only write entry point. Accepts "register player" and "submit score"
facts that the authoritative ledger has already confirmed.
"""
import logging
from typing import Optional

from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import ConflictError, NotFoundError, UnavailableError
from arcade_index.identity import normalize_identity
from arcade_index.models.schemas import PlayerRecord, ScoreSubmission, SubmitResult
from arcade_index.services.player_directory import PlayerDirectory
from arcade_index.validators.sync_validators import (
    validate_display_name,
    validate_game_type,
    validate_non_negative_int,
    validate_optional_int,
    validate_shard_ref,
    validate_submission_id,
)

logger = logging.getLogger(__name__)


class SyncGateway:
    """Validates incoming facts, then applies them to the store as one unit."""

    def __init__(self, store: ArcadeStore):
        self.store = store
        self.directory = PlayerDirectory(store)

    def register_player(self, identity: str, display_name: str, shard_ref: Optional[str] = None) -> PlayerRecord:
        """
        Register a player, or rename one that already exists.

        Calling this twice for the same identity never touches XP, games
        played or the player counter.

        Raises:
            InvalidInputError: bad identity, display name or shard reference
        """
        identity_key = normalize_identity(identity)
        display_name = validate_display_name(display_name)
        shard_ref = validate_shard_ref(shard_ref)
        return self.directory.upsert_player(identity_key, display_name, shard_ref)

    def submit_score(
        self,
        identity: str,
        game_type: str,
        raw_score: int,
        xp_earned: int,
        bonus_data: Optional[int] = None,
        shard_ref: Optional[str] = None,
        submission_id: Optional[str] = None,
    ) -> SubmitResult:
        """
        Record a confirmed score and credit its XP.

        The score row, the player's XP and games played, and the
        total_games_played / total_xp_earned counters are written in one
        transaction: either all of them are visible or none is.

        A ``submission_id`` makes retries safe. Resending the same
        submission returns the stored score with ``replayed=True``.

        Raises:
            InvalidInputError: validation failed; nothing was written
            NotFoundError: the identity is not registered
            ConflictError: ``submission_id`` was already used for another score
            UnavailableError: storage failed; nothing was written
        """
        submission = ScoreSubmission(
            player_key=normalize_identity(identity),
            game_type=validate_game_type(game_type),
            raw_score=validate_non_negative_int(raw_score, "rawScore"),
            xp_earned=validate_non_negative_int(xp_earned, "xpEarned"),
            bonus_data=validate_optional_int(bonus_data, "bonusData"),
            shard_ref=validate_shard_ref(shard_ref),
            submission_id=validate_submission_id(submission_id),
        )

        try:
            score, player, created = self.store.record_submission(submission)
        except NotFoundError:
            logger.warning(f"Score rejected, player not registered: {submission.player_key}")
            raise
        except ConflictError:
            logger.warning(
                f"Score rejected, submission id reused: {submission.player_key}/{submission.submission_id}"
            )
            raise
        except UnavailableError as e:
            logger.error(f"Storage unavailable while recording score for {submission.player_key}: {e.message}")
            raise

        if created:
            logger.info(
                f"Score {score.id} recorded: {player.identity_key} {score.game_type.value} "
                f"raw={score.raw_score} xp+{score.xp_earned} -> {player.total_xp} (level {player.level})"
            )
        else:
            logger.info(f"Replayed submission {submission.submission_id} for {player.identity_key}")
        return SubmitResult(score=score, player=player, replayed=not created)
