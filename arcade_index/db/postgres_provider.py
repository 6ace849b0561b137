import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool

from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import ConflictError, InvalidInputError, NotFoundError, UnavailableError
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

logger = logging.getLogger(__name__)

PLAYER_COLUMNS = "identity_key, display_name, total_xp, games_played, shard_ref, registered_at, updated_at"

# Identity keys are compared bytewise so SQL order matches the in-process order.
PLAYER_ORDER = 'total_xp DESC, identity_key COLLATE "C" ASC'

SCORE_SELECT = """
    SELECT s.id, s.player_key, s.game_type, s.raw_score, s.xp_earned, s.bonus_data,
           s.shard_ref, s.submission_id, s.submitted_at, p.display_name AS player_name
    FROM scores s
    LEFT JOIN players p ON p.identity_key = s.player_key
"""

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS players (
        identity_key VARCHAR(128) PRIMARY KEY,
        display_name VARCHAR(20) NOT NULL,
        total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
        games_played BIGINT NOT NULL DEFAULT 0 CHECK (games_played >= 0),
        shard_ref VARCHAR(128),
        registered_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    'CREATE INDEX IF NOT EXISTS idx_players_xp ON players (total_xp DESC, identity_key COLLATE "C")',
    """
    CREATE TABLE IF NOT EXISTS scores (
        id BIGSERIAL PRIMARY KEY,
        player_key VARCHAR(128) NOT NULL REFERENCES players (identity_key) ON DELETE CASCADE,
        game_type VARCHAR(50) NOT NULL,
        raw_score BIGINT NOT NULL,
        xp_earned BIGINT NOT NULL,
        bonus_data BIGINT,
        shard_ref VARCHAR(128),
        submission_id VARCHAR(128),
        submitted_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_scores_player ON scores (player_key)",
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_scores_player_submission ON scores (player_key, submission_id)",
    "CREATE INDEX IF NOT EXISTS idx_scores_game_score ON scores (game_type, raw_score DESC)",
    "CREATE INDEX IF NOT EXISTS idx_scores_submitted ON scores (submitted_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS stats (
        key VARCHAR(100) PRIMARY KEY,
        value BIGINT NOT NULL DEFAULT 0,
        updated_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
]


class PostgresStore(ArcadeStore):
    """PostgreSQL implementation of the store for production deployments."""

    name = "postgres"

    def __init__(self, dsn: str, min_connections: int = 1, max_connections: int = 20):
        """
        Initialize the PostgreSQL store. No connection is made until ``init_db``.

        Args:
            dsn: libpq connection string or URL
            min_connections: Connections kept open by the pool
            max_connections: Upper bound on concurrently checked-out connections
        """
        self.dsn = dsn
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool = None

    def init_db(self) -> None:
        """Open the connection pool and create the schema if it doesn't exist."""
        try:
            self._pool = ThreadedConnectionPool(self.min_connections, self.max_connections, dsn=self.dsn)
        except psycopg2.OperationalError as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise UnavailableError(f"Storage unavailable: {e}") from e

        with self._transaction() as cursor:
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)
            for key in STAT_KEYS:
                cursor.execute(
                    "INSERT INTO stats (key, value) VALUES (%s, 0) ON CONFLICT (key) DO NOTHING", (key,)
                )
        logger.info("Successfully initialized PostgreSQL database with all tables")

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("PostgreSQL connection pool closed")

    @contextmanager
    def _transaction(self, read_only: bool = False):
        """
        Check out a connection and run a block in one transaction.

        Read-only blocks run at REPEATABLE READ so multi-statement reads see
        one snapshot.
        """
        if self._pool is None:
            raise UnavailableError("Storage not initialized")
        try:
            conn = self._pool.getconn()
        except (PoolError, psycopg2.OperationalError) as e:
            logger.error(f"Could not get a PostgreSQL connection: {e}")
            raise UnavailableError(f"Storage unavailable: {e}") from e

        broken = False
        try:
            if read_only:
                conn.set_session(isolation_level="REPEATABLE READ", readonly=True)
            else:
                conn.set_session(isolation_level="READ COMMITTED", readonly=False)
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield cursor
                conn.commit()
            finally:
                cursor.close()
        except psycopg2.OperationalError as e:
            broken = True
            logger.error(f"PostgreSQL operational error: {e}")
            raise UnavailableError(f"Storage unavailable: {e}") from e
        except psycopg2.IntegrityError as e:
            conn.rollback()
            logger.error(f"PostgreSQL integrity error: {e}")
            raise ConflictError(f"Write rejected by a storage constraint: {e}") from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn, close=broken)

    # Row helpers

    @staticmethod
    def _select_player(cursor, identity_key: str, for_update: bool = False) -> Optional[PlayerRecord]:
        cursor.execute(
            f"SELECT {PLAYER_COLUMNS} FROM players WHERE identity_key = %s"
            + (" FOR UPDATE" if for_update else ""),
            (identity_key,),
        )
        row = cursor.fetchone()
        return PlayerRecord(**row) if row else None

    @staticmethod
    def _increment_stat(cursor, key: str, amount: int) -> int:
        cursor.execute(
            "UPDATE stats SET value = value + %s, updated_at = NOW() WHERE key = %s RETURNING value",
            (amount, key),
        )
        row = cursor.fetchone()
        if row is None:
            raise KeyError(f"Unknown stat: {key}")
        return row["value"]

    @staticmethod
    def _add_xp(cursor, identity_key: str, xp_delta: int) -> PlayerRecord:
        try:
            cursor.execute(f"""
                UPDATE players SET
                    total_xp = total_xp + %s,
                    games_played = games_played + 1,
                    updated_at = NOW()
                WHERE identity_key = %s
                RETURNING {PLAYER_COLUMNS}
            """, (xp_delta, identity_key))
        except psycopg2.IntegrityError as e:
            # total_xp >= 0 is a CHECK constraint; the transaction is rolled back by the caller
            raise InvalidInputError(f"XP delta {xp_delta} would make total XP of {identity_key} negative") from e
        row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Player not registered: {identity_key}")
        return PlayerRecord(**row)

    @staticmethod
    def _insert_score(cursor, submission: ScoreSubmission, player_name: str) -> ScoreRecord:
        cursor.execute("""
            INSERT INTO scores
            (player_key, game_type, raw_score, xp_earned, bonus_data, shard_ref, submission_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING id, player_key, game_type, raw_score, xp_earned, bonus_data,
                      shard_ref, submission_id, submitted_at
        """, (
            submission.player_key,
            submission.game_type.value,
            submission.raw_score,
            submission.xp_earned,
            submission.bonus_data,
            submission.shard_ref,
            submission.submission_id,
        ))
        return ScoreRecord(**cursor.fetchone(), player_name=player_name)

    # Player directory

    def upsert_player(self, identity_key: str, display_name: str, shard_ref: Optional[str] = None) -> Tuple[PlayerRecord, bool]:
        with self._transaction() as cursor:
            cursor.execute(f"""
                INSERT INTO players (identity_key, display_name, shard_ref)
                VALUES (%s, %s, %s)
                ON CONFLICT (identity_key) DO NOTHING
                RETURNING {PLAYER_COLUMNS}
            """, (identity_key, display_name, shard_ref))
            row = cursor.fetchone()
            created = row is not None
            if created:
                self._increment_stat(cursor, STAT_TOTAL_PLAYERS, 1)
            else:
                cursor.execute(f"""
                    UPDATE players SET display_name = %s, updated_at = NOW()
                    WHERE identity_key = %s
                    RETURNING {PLAYER_COLUMNS}
                """, (display_name, identity_key))
                row = cursor.fetchone()
        logger.debug(f"Player upserted: {identity_key} (created={created})")
        return PlayerRecord(**row), created

    def get_player(self, identity_key: str) -> Optional[PlayerRecord]:
        with self._transaction(read_only=True) as cursor:
            return self._select_player(cursor, identity_key)

    def list_players(self) -> List[PlayerRecord]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute(f"SELECT {PLAYER_COLUMNS} FROM players ORDER BY {PLAYER_ORDER}")
            rows = cursor.fetchall()
        return [PlayerRecord(**row) for row in rows]

    def top_players(self, limit: int) -> List[PlayerRecord]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute(f"SELECT {PLAYER_COLUMNS} FROM players ORDER BY {PLAYER_ORDER} LIMIT %s", (limit,))
            rows = cursor.fetchall()
        return [PlayerRecord(**row) for row in rows]

    def player_rank(self, identity_key: str) -> Optional[int]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute("""
                SELECT (
                    SELECT COUNT(*) FROM players p
                    WHERE p.total_xp > me.total_xp
                       OR (p.total_xp = me.total_xp
                           AND p.identity_key COLLATE "C" < me.identity_key COLLATE "C")
                ) + 1 AS rank
                FROM players me
                WHERE me.identity_key = %s
            """, (identity_key,))
            row = cursor.fetchone()
        return int(row["rank"]) if row else None

    def apply_xp_delta(self, identity_key: str, xp_delta: int) -> PlayerRecord:
        with self._transaction() as cursor:
            return self._add_xp(cursor, identity_key, xp_delta)

    def delete_player(self, identity_key: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM players WHERE identity_key = %s", (identity_key,))
            return cursor.rowcount > 0

    # Score ledger mirror

    def append_score(self, submission: ScoreSubmission) -> ScoreRecord:
        with self._transaction() as cursor:
            # FOR SHARE keeps the player from being deleted before the insert commits.
            cursor.execute(
                "SELECT display_name FROM players WHERE identity_key = %s FOR SHARE",
                (submission.player_key,),
            )
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError(f"Player not registered: {submission.player_key}")
            return self._insert_score(cursor, submission, row["display_name"])

    def record_submission(self, submission: ScoreSubmission) -> Tuple[ScoreRecord, PlayerRecord, bool]:
        key = submission.player_key
        with self._transaction() as cursor:
            # The row lock serializes submissions for one player without
            # touching other players.
            player = self._select_player(cursor, key, for_update=True)
            if player is None:
                raise NotFoundError(f"Player not registered: {key}")

            if submission.submission_id is not None:
                cursor.execute(
                    f"{SCORE_SELECT} WHERE s.player_key = %s AND s.submission_id = %s",
                    (key, submission.submission_id),
                )
                row = cursor.fetchone()
                if row is not None:
                    previous = ScoreRecord(**row)
                    if not submission.same_payload(previous):
                        raise ConflictError(
                            f"Submission id {submission.submission_id!r} already used with a different score"
                        )
                    return previous, player, False

            # Append first, then accumulate.
            score = self._insert_score(cursor, submission, player.display_name)
            player = self._add_xp(cursor, key, submission.xp_earned)
            self._increment_stat(cursor, STAT_TOTAL_GAMES_PLAYED, 1)
            self._increment_stat(cursor, STAT_TOTAL_XP_EARNED, submission.xp_earned)
        return score, player, True

    def recent_scores(self, limit: int) -> List[ScoreRecord]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute(f"{SCORE_SELECT} ORDER BY s.submitted_at DESC, s.id DESC LIMIT %s", (limit,))
            rows = cursor.fetchall()
        return [ScoreRecord(**row) for row in rows]

    def scores_for_game(self, game_type: GameType, limit: int) -> List[ScoreRecord]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute(
                f"{SCORE_SELECT} WHERE s.game_type = %s "
                "ORDER BY s.raw_score DESC, s.submitted_at ASC, s.id ASC LIMIT %s",
                (game_type.value, limit),
            )
            rows = cursor.fetchall()
        return [ScoreRecord(**row) for row in rows]

    def all_scores_for_game(self, game_type: GameType) -> List[ScoreRecord]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute(f"{SCORE_SELECT} WHERE s.game_type = %s ORDER BY s.id ASC", (game_type.value,))
            rows = cursor.fetchall()
        return [ScoreRecord(**row) for row in rows]

    # Global counters

    def increment_stat(self, key: str, amount: int = 1) -> int:
        with self._transaction() as cursor:
            return self._increment_stat(cursor, key, amount)

    def get_stats(self) -> Dict[str, int]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute("SELECT key, value FROM stats")
            rows = cursor.fetchall()
        return {row["key"]: row["value"] for row in rows}

    def stats_snapshot(self) -> Tuple[Dict[str, int], Optional[PlayerRecord]]:
        with self._transaction(read_only=True) as cursor:
            cursor.execute("SELECT key, value FROM stats")
            stats = {row["key"]: row["value"] for row in cursor.fetchall()}
            cursor.execute(f"SELECT {PLAYER_COLUMNS} FROM players ORDER BY {PLAYER_ORDER} LIMIT 1")
            top = cursor.fetchone()
        return stats, PlayerRecord(**top) if top else None
