"""create webhook_queue table

Revision ID: 001
Revises: 
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create webhook_queue table (type and status as VARCHAR, not enum)
    op.create_table(
        'webhook_queue',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('webhook_type', sa.String(32), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('webhook_url', sa.Text(), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('next_retry_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending_retry'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('claimed_until', sa.DateTime(), nullable=True),
    )
    
    op.create_index('ix_webhook_queue_event_id', 'webhook_queue', ['event_id'])
    op.create_index(
        'ix_webhook_queue_status_next_retry_at',
        'webhook_queue',
        ['status', 'next_retry_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_webhook_queue_status_next_retry_at', table_name='webhook_queue')
    op.drop_index('ix_webhook_queue_event_id', table_name='webhook_queue')
    op.drop_table('webhook_queue')
