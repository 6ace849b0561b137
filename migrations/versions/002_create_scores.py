"""Create scores table

Revision ID: 002
Revises: 001
Create Date: 2026-09-02 10:05:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    """Create the append-only score ledger mirror.

    Deleting a player removes its scores (ON DELETE CASCADE).
    """
    op.create_table(
        'scores',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('player_key', sa.String(128),
                  sa.ForeignKey('players.identity_key', ondelete='CASCADE'), nullable=False),
        sa.Column('game_type', sa.String(50), nullable=False),
        sa.Column('raw_score', sa.BigInteger(), nullable=False),
        sa.Column('xp_earned', sa.BigInteger(), nullable=False),
        sa.Column('bonus_data', sa.BigInteger(), nullable=True),
        sa.Column('shard_ref', sa.String(128), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sqlite_autoincrement=True,
    )

    op.create_index('idx_scores_player', 'scores', ['player_key'])
    op.create_index('idx_scores_game_score', 'scores', ['game_type', sa.text('raw_score DESC')])
    op.create_index('idx_scores_submitted', 'scores', [sa.text('submitted_at DESC')])


def downgrade():
    """Remove scores table."""
    op.drop_index('idx_scores_submitted', table_name='scores')
    op.drop_index('idx_scores_game_score', table_name='scores')
    op.drop_index('idx_scores_player', table_name='scores')
    op.drop_table('scores')
