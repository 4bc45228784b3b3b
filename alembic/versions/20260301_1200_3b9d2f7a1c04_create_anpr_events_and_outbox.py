"""create anpr_events and anpr_event_outbox

Revision ID: 3b9d2f7a1c04
Revises:
Create Date: 2026-03-01 12:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3b9d2f7a1c04'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'anpr_events',
        sa.Column('plate', sa.String(length=32), nullable=False, comment='Recognized plate text'),
        sa.Column('confidence', sa.Float(), nullable=False, comment='Recognition confidence reported by the camera'),
        sa.Column('image_url', sa.Text(), nullable=True, comment='Reference to the captured image, if any'),
        sa.Column('camera_id', sa.String(length=64), nullable=False, comment='Authenticated camera identifier'),
        sa.Column('id', sa.String(length=36), nullable=False, comment='UUID v7 primary key (time-sortable)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Record creation timestamp (UTC)'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_anpr_events')),
    )
    op.create_index('ix_anpr_events_camera_created', 'anpr_events', ['camera_id', 'created_at'], unique=False)
    op.create_index('ix_anpr_events_plate', 'anpr_events', ['plate'], unique=False)

    op.create_table(
        'anpr_event_outbox',
        sa.Column('event_id', sa.String(length=36), nullable=False, comment='The event this record delivers (1:1)'),
        sa.Column(
            'payload',
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'),
            nullable=False,
            comment='Versioned message body, fixed at creation',
        ),
        sa.Column('status', sa.String(length=16), nullable=False, comment='PENDING | PROCESSING | PUBLISHED | FAILED'),
        sa.Column('attempts', sa.Integer(), nullable=False, comment='Failed publish attempts so far'),
        sa.Column('next_retry_at', sa.DateTime(timezone=True), nullable=True, comment='Earliest time the record may be claimed again'),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True, comment='When the current claim was taken'),
        sa.Column('locked_by', sa.String(length=200), nullable=True, comment='Worker holding the current claim'),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True, comment='Broker acceptance time'),
        sa.Column('last_error', sa.Text(), nullable=True, comment='Most recent publish error (truncated)'),
        sa.Column('id', sa.String(length=36), nullable=False, comment='UUID v7 primary key (time-sortable)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Record creation timestamp (UTC)'),
        sa.CheckConstraint('attempts >= 0', name=op.f('ck_anpr_event_outbox_attempts_non_negative')),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'PUBLISHED', 'FAILED')",
            name=op.f('ck_anpr_event_outbox_status_valid'),
        ),
        sa.ForeignKeyConstraint(
            ['event_id'],
            ['anpr_events.id'],
            name=op.f('fk_anpr_event_outbox_event_id_anpr_events'),
            ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_anpr_event_outbox')),
        sa.UniqueConstraint('event_id', name=op.f('uq_anpr_event_outbox_event_id')),
    )
    op.create_index(
        'ix_anpr_event_outbox_claim',
        'anpr_event_outbox',
        ['status', 'next_retry_at', 'created_at'],
        unique=False,
    )
    op.create_index('ix_anpr_event_outbox_lock', 'anpr_event_outbox', ['status', 'locked_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_anpr_event_outbox_lock', table_name='anpr_event_outbox')
    op.drop_index('ix_anpr_event_outbox_claim', table_name='anpr_event_outbox')
    op.drop_table('anpr_event_outbox')
    op.drop_index('ix_anpr_events_plate', table_name='anpr_events')
    op.drop_index('ix_anpr_events_camera_created', table_name='anpr_events')
    op.drop_table('anpr_events')
