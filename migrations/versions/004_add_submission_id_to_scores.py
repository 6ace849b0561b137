"""Add submission_id to scores for idempotent score submission

Revision ID: 004
Revises: 003
Create Date: 2026-09-16 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '004'
down_revision = '003'
branch_labels = None
depends_on = None


def upgrade():
    """Add the client-supplied submission id, unique per player.

    Rows without an id (NULL) never collide, so existing scores are unaffected.
    """
    op.add_column('scores', sa.Column('submission_id', sa.String(128), nullable=True))
    op.create_index('uq_scores_player_submission', 'scores', ['player_key', 'submission_id'], unique=True)


def downgrade():
    """Remove submission_id from scores."""
    op.drop_index('uq_scores_player_submission', table_name='scores')
    op.drop_column('scores', 'submission_id')
