"""Create stats table with the global counters

Revision ID: 003
Revises: 002
Create Date: 2026-09-02 10:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None

STAT_KEYS = ('total_players', 'total_games_played', 'total_xp_earned')


def upgrade():
    """Create the counters table and seed every counter at zero."""
    stats = op.create_table(
        'stats',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
    )

    op.bulk_insert(stats, [{'key': key, 'value': 0} for key in STAT_KEYS])


def downgrade():
    """Remove stats table."""
    op.drop_table('stats')
