"""Initial schema - users and saved venues

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, TEXT

revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('telegram_id', sa.BigInteger(), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('username', sa.String(255), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('owned_venue_ids', ARRAY(TEXT), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )

    op.create_table(
        'saved_venues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'user_id', sa.BigInteger(),
            sa.ForeignKey('users.telegram_id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('venue_id', sa.String(128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('user_id', 'venue_id', name='uq_saved_venue'),
    )
    op.create_index('ix_saved_venues_user_id', 'saved_venues', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_saved_venues_user_id', table_name='saved_venues')
    op.drop_table('saved_venues')
    op.drop_table('users')
