"""Initial migration - mapping cache and normalized webhook events

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

- key_value_entries: durable store behind the Channex identifier mapping
- events / event_details: one header per webhook envelope, one detail per payload
- event_attachments / event_review_scores / event_review_ota_scores: per-detail sub-entities
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _detail_fk():
    return sa.Column(
        'event_detail_id', sa.String(36),
        sa.ForeignKey('event_details.id', ondelete='CASCADE'), nullable=False
    )


def upgrade():
    op.create_table(
        'key_value_entries',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        'events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('property_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_events_property_type', 'events', ['property_id', 'event_type'])
    op.create_index('ix_events_created_at', 'events', ['created_at'])

    op.create_table(
        'event_details',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_id', sa.String(36), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        # message
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('sender', sa.String(100), nullable=True),
        sa.Column('message_thread_id', sa.String(255), nullable=True),
        sa.Column('ota_message_id', sa.String(255), nullable=True),
        sa.Column('have_attachment', sa.Boolean(), nullable=True),
        sa.Column('booking_id', sa.String(255), nullable=True),
        sa.Column('live_feed_event_id', sa.String(255), nullable=True),
        # ari
        sa.Column('availability', sa.Integer(), nullable=True),
        sa.Column('booked', sa.Integer(), nullable=True),
        sa.Column('date', sa.String(10), nullable=True),
        sa.Column('rate_plan_id', sa.String(255), nullable=True),
        sa.Column('room_type_id', sa.String(255), nullable=True),
        sa.Column('stop_sell', sa.Boolean(), nullable=True),
        # booking
        sa.Column('revision_id', sa.String(255), nullable=True),
        sa.Column('booking_revision_id', sa.String(255), nullable=True),
        # sync_error
        sa.Column('channel', sa.String(100), nullable=True),
        sa.Column('channel_event_id', sa.String(255), nullable=True),
        sa.Column('channel_id', sa.String(255), nullable=True),
        sa.Column('channel_name', sa.String(255), nullable=True),
        sa.Column('error_type', sa.String(100), nullable=True),
        sa.Column('property_name', sa.String(255), nullable=True),
        # reservation_request
        sa.Column('bms', sa.JSON(), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=True),
        # review
        sa.Column('review_id', sa.String(255), nullable=True),
        sa.Column('reply', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('ota', sa.String(100), nullable=True),
        sa.Column('review_property_id', sa.String(255), nullable=True),
        sa.Column('review_channel_id', sa.String(255), nullable=True),
        sa.Column('expired_at', sa.String(40), nullable=True),
        sa.Column('is_hidden', sa.Boolean(), nullable=True),
        sa.Column('is_replied', sa.Boolean(), nullable=True),
        sa.Column('ota_overall_score', sa.Float(), nullable=True),
        sa.Column('ota_reservation_id', sa.String(255), nullable=True),
        sa.Column('ota_review_id', sa.String(255), nullable=True),
        sa.Column('overall_score', sa.Float(), nullable=True),
        sa.Column('raw_content', sa.JSON(), nullable=True),
        sa.Column('received_at', sa.String(40), nullable=True),
        sa.Column('reviewer_name', sa.String(255), nullable=True),
        sa.Column('ota_inserted_at', sa.String(40), nullable=True),
        sa.Column('reply_scheduled_at', sa.String(40), nullable=True),
        sa.Column('reply_sent_at', sa.String(40), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_event_details_event', 'event_details', ['event_id'])

    op.create_table(
        'event_attachments',
        sa.Column('id', sa.String(36), primary_key=True),
        _detail_fk(),
        sa.Column('filename', sa.String(500), nullable=True),
        sa.Column('type', sa.String(100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    for table in ('event_review_scores', 'event_review_ota_scores'):
        op.create_table(
            table,
            sa.Column('id', sa.String(36), primary_key=True),
            _detail_fk(),
            sa.Column('category', sa.String(100), nullable=False, server_default=''),
            sa.Column('score', sa.Float(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )


def downgrade():
    op.drop_table('event_review_ota_scores')
    op.drop_table('event_review_scores')
    op.drop_table('event_attachments')
    op.drop_index('ix_event_details_event', table_name='event_details')
    op.drop_table('event_details')
    op.drop_index('ix_events_created_at', table_name='events')
    op.drop_index('ix_events_property_type', table_name='events')
    op.drop_table('events')
    op.drop_table('key_value_entries')
