"""add transcriptions table

Revision ID: add_transcriptions
Revises:
Create Date: 2026-10-19

Creates the append-only transcriptions table.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'add_transcriptions'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)

    if 'transcriptions' not in inspector.get_table_names():
        op.create_table(
            'transcriptions',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('user_id', sa.String(64), nullable=False),
            sa.Column('filename', sa.String(512), nullable=False),
            sa.Column('transcript', sa.Text(), nullable=False, server_default=''),
            sa.Column(
                'created_at',
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now()
            ),
        )
        op.create_index('ix_transcriptions_user_id', 'transcriptions', ['user_id'])
        op.create_index('ix_transcriptions_created_at', 'transcriptions', ['created_at'])


def downgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)

    if 'transcriptions' in inspector.get_table_names():
        op.drop_index('ix_transcriptions_created_at', table_name='transcriptions')
        op.drop_index('ix_transcriptions_user_id', table_name='transcriptions')
        op.drop_table('transcriptions')
