from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, create_engine, func
from sqlalchemy.orm import declarative_base, relationship

# Create a base class for declarative class definitions
Base = declarative_base()


class Player(Base):
    """One row per identity key; level is derived from total_xp, never stored."""
    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="ck_players_total_xp"),
        CheckConstraint("games_played >= 0", name="ck_players_games_played"),
    )

    identity_key = Column(String(128), primary_key=True)  # Lower-cased wallet/account address
    display_name = Column(String(20), nullable=False)
    total_xp = Column(BigInteger, nullable=False, default=0, server_default="0")
    games_played = Column(BigInteger, nullable=False, default=0, server_default="0")
    shard_ref = Column(String(128), nullable=True)  # Authoritative ledger chain, informational
    registered_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    scores = relationship("Score", back_populates="player", cascade="all, delete-orphan", passive_deletes=True)


# Leaderboard order; PostgreSQL builds it with COLLATE "C" on identity_key, see migration 001
Index("idx_players_xp", Player.total_xp.desc(), Player.identity_key)


class Score(Base):
    """Append-only mirror of accepted score submissions."""
    __tablename__ = "scores"
    __table_args__ = (
        Index("idx_scores_player", "player_key"),
        Index("uq_scores_player_submission", "player_key", "submission_id", unique=True),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_key = Column(String(128), ForeignKey("players.identity_key", ondelete="CASCADE"), nullable=False)
    game_type = Column(String(50), nullable=False)
    raw_score = Column(BigInteger, nullable=False)
    xp_earned = Column(BigInteger, nullable=False)
    bonus_data = Column(BigInteger, nullable=True)  # Game-specific, opaque to the index
    shard_ref = Column(String(128), nullable=True)
    submission_id = Column(String(128), nullable=True)  # Client idempotency key
    submitted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    player = relationship("Player", back_populates="scores")


class Stat(Base):
    """Named running totals: total_players, total_games_played, total_xp_earned."""
    __tablename__ = "stats"

    key = Column(String(100), primary_key=True)
    value = Column(BigInteger, nullable=False, default=0, server_default="0")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)


def get_engine(url: str):
    """Get a SQLAlchemy engine instance."""
    return create_engine(url)
