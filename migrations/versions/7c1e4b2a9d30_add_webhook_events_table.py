"""Add webhook_events table

Revision ID: 7c1e4b2a9d30
Revises:
Create Date: 2026-10-19 12:00:00.000000

transactions, user_subscriptions, payment_gateways and shipments are owned
by the Supabase schema; only the idempotency ledger is created here.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c1e4b2a9d30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('webhook_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('provider_event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=255), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider', 'provider_event_id', name='uq_webhook_events_provider_event')
    )


def downgrade():
    op.drop_table('webhook_events')
