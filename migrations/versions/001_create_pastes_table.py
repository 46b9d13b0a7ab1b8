"""create pastes table

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'pastes',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_views', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('view_count >= 0', name='ck_pastes_view_count_non_negative'),
        sa.CheckConstraint('max_views IS NULL OR max_views >= 1', name='ck_pastes_max_views_min_1'),
        sa.CheckConstraint(
            'max_views IS NULL OR view_count <= max_views',
            name='ck_pastes_view_count_within_quota',
        ),
    )


def downgrade() -> None:
    op.drop_table('pastes')
