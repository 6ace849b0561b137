import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, UTC
from typing import Dict, List, Optional, Tuple

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

SCORE_SELECT = """
    SELECT s.id, s.player_key, s.game_type, s.raw_score, s.xp_earned, s.bonus_data,
           s.shard_ref, s.submission_id, s.submitted_at, p.display_name AS player_name
    FROM scores s
    LEFT JOIN players p ON p.identity_key = s.player_key
"""


def _now() -> str:
    # Fixed-width ISO text keeps lexical order equal to time order.
    return datetime.now(UTC).isoformat(timespec="microseconds")


class SQLiteStore(ArcadeStore):
    """SQLite implementation of the store for single-node deployments and tests."""

    name = "sqlite"

    def __init__(self, db_path: str = "./arcade_index.db", busy_timeout: float = 5.0):
        """
        Initialize the SQLite store with database path.

        Args:
            db_path: Path to the SQLite database file
            busy_timeout: Seconds a writer waits for the database lock
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        logger.info(f"Initializing SQLite store with database at: {db_path}")

    def _get_connection(self):
        """Create and return a new database connection in autocommit mode."""
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self):
        conn = None
        try:
            conn = self._get_connection()
            yield conn
        except sqlite3.OperationalError as e:
            logger.error(f"SQLite operational error: {e}")
            raise UnavailableError(f"Storage unavailable: {e}") from e
        except sqlite3.IntegrityError as e:
            logger.error(f"SQLite integrity error: {e}")
            raise ConflictError(f"Write rejected by a storage constraint: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def _transaction(self, write: bool = True):
        """
        Run a block in one transaction. Write transactions take the database
        write lock up front so read-modify-write sequences cannot interleave.
        """
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def init_db(self) -> None:
        """Create players, scores and stats tables if they don't exist."""
        with self._connection() as conn:
            logger.info(f"Connected to SQLite database at {self.db_path}")
            conn.execute("PRAGMA journal_mode = WAL")

            conn.executescript("""
                CREATE TABLE IF NOT EXISTS players (
                    identity_key VARCHAR(128) PRIMARY KEY,
                    display_name VARCHAR(20) NOT NULL,
                    total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
                    games_played BIGINT NOT NULL DEFAULT 0 CHECK (games_played >= 0),
                    shard_ref VARCHAR(128),
                    registered_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_players_xp ON players (total_xp DESC, identity_key);

                CREATE TABLE IF NOT EXISTS scores (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_key VARCHAR(128) NOT NULL
                        REFERENCES players (identity_key) ON DELETE CASCADE,
                    game_type VARCHAR(50) NOT NULL,
                    raw_score BIGINT NOT NULL,
                    xp_earned BIGINT NOT NULL,
                    bonus_data BIGINT,
                    shard_ref VARCHAR(128),
                    submission_id VARCHAR(128),
                    submitted_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_scores_player ON scores (player_key);
                CREATE UNIQUE INDEX IF NOT EXISTS uq_scores_player_submission
                    ON scores (player_key, submission_id);
                CREATE INDEX IF NOT EXISTS idx_scores_game_score ON scores (game_type, raw_score DESC);
                CREATE INDEX IF NOT EXISTS idx_scores_submitted ON scores (submitted_at DESC);

                CREATE TABLE IF NOT EXISTS stats (
                    key VARCHAR(100) PRIMARY KEY,
                    value BIGINT NOT NULL DEFAULT 0,
                    updated_at TEXT
                );
            """)
            conn.executemany(
                "INSERT INTO stats (key, value, updated_at) VALUES (?, 0, ?) ON CONFLICT (key) DO NOTHING",
                [(key, _now()) for key in STAT_KEYS],
            )
            logger.info("Successfully initialized SQLite database with all tables")

    def close(self) -> None:
        # Connections are opened per operation.
        logger.debug("SQLite store closed")

    # Row helpers

    @staticmethod
    def _row_to_player(row) -> PlayerRecord:
        return PlayerRecord(**dict(row))

    @staticmethod
    def _row_to_score(row) -> ScoreRecord:
        return ScoreRecord(**dict(row))

    def _select_player(self, conn, identity_key: str) -> Optional[PlayerRecord]:
        row = conn.execute(
            f"SELECT {PLAYER_COLUMNS} FROM players WHERE identity_key = ?", (identity_key,)
        ).fetchone()
        return self._row_to_player(row) if row else None

    def _select_score(self, conn, score_id: int) -> ScoreRecord:
        row = conn.execute(f"{SCORE_SELECT} WHERE s.id = ?", (score_id,)).fetchone()
        return self._row_to_score(row)

    @staticmethod
    def _increment_stat(conn, key: str, amount: int, now: str) -> None:
        cursor = conn.execute(
            "UPDATE stats SET value = value + ?, updated_at = ? WHERE key = ?", (amount, now, key)
        )
        if cursor.rowcount == 0:
            raise KeyError(f"Unknown stat: {key}")

    def _add_xp(self, conn, identity_key: str, xp_delta: int, now: str) -> PlayerRecord:
        try:
            cursor = conn.execute("""
                UPDATE players SET
                    total_xp = total_xp + ?,
                    games_played = games_played + 1,
                    updated_at = ?
                WHERE identity_key = ?
            """, (xp_delta, now, identity_key))
        except sqlite3.IntegrityError as e:
            # total_xp >= 0 is a CHECK constraint
            raise InvalidInputError(f"XP delta {xp_delta} would make total XP of {identity_key} negative") from e
        if cursor.rowcount == 0:
            raise NotFoundError(f"Player not registered: {identity_key}")
        return self._select_player(conn, identity_key)

    def _insert_score(self, conn, submission: ScoreSubmission, now: str) -> ScoreRecord:
        cursor = conn.execute("""
            INSERT INTO scores
            (player_key, game_type, raw_score, xp_earned, bonus_data, shard_ref, submission_id, submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            submission.player_key,
            submission.game_type.value,
            submission.raw_score,
            submission.xp_earned,
            submission.bonus_data,
            submission.shard_ref,
            submission.submission_id,
            now,
        ))
        return self._select_score(conn, cursor.lastrowid)

    # Player directory

    def upsert_player(self, identity_key: str, display_name: str, shard_ref: Optional[str] = None) -> Tuple[PlayerRecord, bool]:
        now = _now()
        with self._transaction() as conn:
            cursor = conn.execute(f"""
                INSERT INTO players ({PLAYER_COLUMNS})
                VALUES (?, ?, 0, 0, ?, ?, ?)
                ON CONFLICT (identity_key) DO NOTHING
            """, (identity_key, display_name, shard_ref, now, now))
            created = cursor.rowcount == 1
            if created:
                self._increment_stat(conn, STAT_TOTAL_PLAYERS, 1, now)
            else:
                conn.execute(
                    "UPDATE players SET display_name = ?, updated_at = ? WHERE identity_key = ?",
                    (display_name, now, identity_key),
                )
            player = self._select_player(conn, identity_key)
        logger.debug(f"Player upserted: {identity_key} (created={created})")
        return player, created

    def get_player(self, identity_key: str) -> Optional[PlayerRecord]:
        with self._connection() as conn:
            return self._select_player(conn, identity_key)

    def list_players(self) -> List[PlayerRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {PLAYER_COLUMNS} FROM players ORDER BY total_xp DESC, identity_key ASC"
            ).fetchall()
        return [self._row_to_player(row) for row in rows]

    def top_players(self, limit: int) -> List[PlayerRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {PLAYER_COLUMNS} FROM players ORDER BY total_xp DESC, identity_key ASC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_player(row) for row in rows]

    def player_rank(self, identity_key: str) -> Optional[int]:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT (
                    SELECT COUNT(*) FROM players p
                    WHERE p.total_xp > me.total_xp
                       OR (p.total_xp = me.total_xp AND p.identity_key < me.identity_key)
                ) + 1 AS rank
                FROM players me
                WHERE me.identity_key = ?
            """, (identity_key,)).fetchone()
        return row["rank"] if row else None

    def apply_xp_delta(self, identity_key: str, xp_delta: int) -> PlayerRecord:
        with self._transaction() as conn:
            return self._add_xp(conn, identity_key, xp_delta, _now())

    def delete_player(self, identity_key: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM players WHERE identity_key = ?", (identity_key,))
            return cursor.rowcount > 0

    # Score ledger mirror

    def append_score(self, submission: ScoreSubmission) -> ScoreRecord:
        with self._transaction() as conn:
            if self._select_player(conn, submission.player_key) is None:
                raise NotFoundError(f"Player not registered: {submission.player_key}")
            return self._insert_score(conn, submission, _now())

    def record_submission(self, submission: ScoreSubmission) -> Tuple[ScoreRecord, PlayerRecord, bool]:
        key = submission.player_key
        now = _now()
        with self._transaction() as conn:
            player = self._select_player(conn, key)
            if player is None:
                raise NotFoundError(f"Player not registered: {key}")

            if submission.submission_id is not None:
                row = conn.execute(
                    f"{SCORE_SELECT} WHERE s.player_key = ? AND s.submission_id = ?",
                    (key, submission.submission_id),
                ).fetchone()
                if row is not None:
                    previous = self._row_to_score(row)
                    if not submission.same_payload(previous):
                        raise ConflictError(
                            f"Submission id {submission.submission_id!r} already used with a different score"
                        )
                    return previous, player, False

            # Append first, then accumulate.
            score = self._insert_score(conn, submission, now)
            player = self._add_xp(conn, key, submission.xp_earned, now)
            self._increment_stat(conn, STAT_TOTAL_GAMES_PLAYED, 1, now)
            self._increment_stat(conn, STAT_TOTAL_XP_EARNED, submission.xp_earned, now)
        return score, player, True

    def recent_scores(self, limit: int) -> List[ScoreRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                f"{SCORE_SELECT} ORDER BY s.submitted_at DESC, s.id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_score(row) for row in rows]

    def scores_for_game(self, game_type: GameType, limit: int) -> List[ScoreRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                f"{SCORE_SELECT} WHERE s.game_type = ? "
                "ORDER BY s.raw_score DESC, s.submitted_at ASC, s.id ASC LIMIT ?",
                (game_type.value, limit),
            ).fetchall()
        return [self._row_to_score(row) for row in rows]

    def all_scores_for_game(self, game_type: GameType) -> List[ScoreRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                f"{SCORE_SELECT} WHERE s.game_type = ? ORDER BY s.id ASC", (game_type.value,)
            ).fetchall()
        return [self._row_to_score(row) for row in rows]

    # Global counters

    def increment_stat(self, key: str, amount: int = 1) -> int:
        with self._transaction() as conn:
            self._increment_stat(conn, key, amount, _now())
            return conn.execute("SELECT value FROM stats WHERE key = ?", (key,)).fetchone()["value"]

    def get_stats(self) -> Dict[str, int]:
        with self._connection() as conn:
            rows = conn.execute("SELECT key, value FROM stats").fetchall()
        return {row["key"]: row["value"] for row in rows}

    def stats_snapshot(self) -> Tuple[Dict[str, int], Optional[PlayerRecord]]:
        with self._transaction(write=False) as conn:
            rows = conn.execute("SELECT key, value FROM stats").fetchall()
            top = conn.execute(
                f"SELECT {PLAYER_COLUMNS} FROM players ORDER BY total_xp DESC, identity_key ASC LIMIT 1"
            ).fetchone()
        stats = {row["key"]: row["value"] for row in rows}
        return stats, self._row_to_player(top) if top else None
