"""Create players table

Revision ID: 001
Revises:
Create Date: 2026-09-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the player directory.

    Level is not a column: it is derived from total_xp when records are read.
    """
    op.create_table(
        'players',
        sa.Column('identity_key', sa.String(128), primary_key=True),
        sa.Column('display_name', sa.String(20), nullable=False),
        sa.Column('total_xp', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('games_played', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('shard_ref', sa.String(128), nullable=True),
        sa.Column('registered_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('total_xp >= 0', name='ck_players_total_xp'),
        sa.CheckConstraint('games_played >= 0', name='ck_players_games_played'),
    )

    # Leaderboard order: total_xp desc, identity_key asc in byte order
    if op.get_context().dialect.name == 'postgresql':
        key_column = sa.text('identity_key COLLATE "C"')
    else:
        key_column = 'identity_key'
    op.create_index('idx_players_xp', 'players', [sa.text('total_xp DESC'), key_column])


def downgrade():
    """Remove players table."""
    op.drop_index('idx_players_xp', table_name='players')
    op.drop_table('players')
