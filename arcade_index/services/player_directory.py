"""
Player Directory
One record per identity: display name, XP, derived level, games played.
"""
import logging
from typing import List, Optional

from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import InvalidInputError, NotFoundError, UnavailableError
from arcade_index.models.schemas import PlayerRecord

logger = logging.getLogger(__name__)


class PlayerDirectory:
    """Service over the players table of a store."""

    def __init__(self, store: ArcadeStore):
        self.store = store

    def upsert_player(self, identity_key: str, display_name: str, shard_ref: Optional[str] = None) -> PlayerRecord:
        """
        Create a player with zero counters, or rename an existing one.

        Re-registration only changes ``display_name`` and ``updated_at``;
        XP and games played are never reset.
        """
        try:
            player, created = self.store.upsert_player(identity_key, display_name, shard_ref)
        except UnavailableError as e:
            logger.error(f"Storage unavailable while upserting player {identity_key}: {e.message}")
            raise
        if created:
            logger.info(f"Player registered: {identity_key} as {display_name}")
        else:
            logger.info(f"Player re-registered: {identity_key} as {display_name}")
        return player

    def get_player(self, identity_key: str) -> Optional[PlayerRecord]:
        return self.store.get_player(identity_key)

    def require_player(self, identity_key: str) -> PlayerRecord:
        player = self.store.get_player(identity_key)
        if player is None:
            raise NotFoundError(f"Player not found: {identity_key}")
        return player

    def list_all(self) -> List[PlayerRecord]:
        """Full directory snapshot, XP descending (identity key breaks ties)."""
        players = self.store.list_players()
        logger.debug(f"Listed {len(players)} players")
        return players

    def apply_xp_delta(self, identity_key: str, xp_delta: int) -> PlayerRecord:
        """
        Add XP and one game to a player in a single storage-side update.

        Raises:
            InvalidInputError: if the delta is not an integer or would take the total below zero
            NotFoundError: if the player is not registered
        """
        if isinstance(xp_delta, bool) or not isinstance(xp_delta, int):
            raise InvalidInputError(f"XP delta must be an integer, got {xp_delta!r}")
        player = self.store.apply_xp_delta(identity_key, xp_delta)
        logger.debug(f"Applied {xp_delta} XP to {identity_key}: total {player.total_xp}, level {player.level}")
        return player

    def remove_player(self, identity_key: str) -> None:
        """Delete a player and its scores. Global counters are not decremented."""
        if not self.store.delete_player(identity_key):
            raise NotFoundError(f"Player not found: {identity_key}")
        logger.info(f"Player removed with its scores: {identity_key}")
