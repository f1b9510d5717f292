"""add canvas_snapshot table

Revision ID: 5c2a9e71b0d4
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e71b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'canvas_snapshot' in insp.get_table_names():
        return
    op.create_table(
        'canvas_snapshot',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('saved_at', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('canvas_snapshot') as batch_op:
        batch_op.create_index('ix_canvas_snapshot_key', ['key'], unique=True)


def downgrade():
    with op.batch_alter_table('canvas_snapshot') as batch_op:
        batch_op.drop_index('ix_canvas_snapshot_key')
    op.drop_table('canvas_snapshot')
