"""create_store_tables

Revision ID: 3f9c2a71d0b4
Revises:
Create Date: 2026-10-18 10:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a71d0b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'app_settings',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('first_name', sa.String(length=128), nullable=True),
        sa.Column('last_name', sa.String(length=128), nullable=True),
        sa.Column('username', sa.String(length=128), nullable=True),
        sa.Column('preferences', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('id = 1', name='ck_app_settings_singleton'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'folders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'event_categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('color', sa.String(length=7), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'calendar_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('is_all_day', sa.Boolean(), nullable=False),
        sa.Column('is_lecture', sa.Boolean(), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('recurrence_rule', sa.String(length=255), nullable=True),
        sa.Column('recurrence_parent_id', sa.Integer(), nullable=True),
        sa.Column('recurrence_date', sa.DateTime(), nullable=True),
        sa.Column('is_recurrence_exception', sa.Boolean(), nullable=False),
        sa.Column('is_cancelled', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'recurrence_rule IS NULL OR recurrence_parent_id IS NULL',
            name='ck_calendar_events_template_xor_instance',
        ),
        sa.ForeignKeyConstraint(['category_id'], ['event_categories.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['recurrence_parent_id'], ['calendar_events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calendar_events_category_id', 'calendar_events', ['category_id'])
    op.create_index('ix_calendar_events_start', 'calendar_events', ['start_time'])
    op.create_index('ix_calendar_events_parent_date', 'calendar_events', ['recurrence_parent_id', 'recurrence_date'])

    op.create_table(
        'event_reminders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('reminder_time', sa.Integer(), nullable=False),
        sa.Column('reminder_type', sa.String(length=16), nullable=False),
        sa.Column('is_triggered', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['event_id'], ['calendar_events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_event_reminders_event_id', 'event_reminders', ['event_id'])

    op.create_table(
        'calendar_settings',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('default_view', sa.String(length=16), nullable=False),
        sa.Column('week_starts_on', sa.Integer(), nullable=False),
        sa.Column('working_hours_start', sa.String(length=5), nullable=False),
        sa.Column('working_hours_end', sa.String(length=5), nullable=False),
        sa.Column('default_event_duration', sa.Integer(), nullable=False),
        sa.Column('show_week_numbers', sa.Boolean(), nullable=False),
        sa.Column('default_reminders', sa.JSON(), nullable=True),
        sa.Column('time_format', sa.String(length=3), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('id = 1', name='ck_calendar_settings_singleton'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'recordings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('folder_id', sa.Integer(), nullable=True),
        sa.Column('calendar_event_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('audio_file_path', sa.Text(), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['calendar_event_id'], ['calendar_events.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recordings_folder_id', 'recordings', ['folder_id'])
    op.create_index('ix_recordings_calendar_event_id', 'recordings', ['calendar_event_id'])

    for table in ('transcripts', 'summaries'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('recording_id', sa.Integer(), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(['recording_id'], ['recordings.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table}_recording_id', table, ['recording_id'])

    # Append-only change journal
    op.create_table(
        'change_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('table_name', sa.String(length=64), nullable=False),
        sa.Column('row_id', sa.Integer(), nullable=False),
        sa.Column('operation', sa.String(length=16), nullable=False),
        sa.Column('payload_json', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_change_log_table_name', 'change_log', ['table_name'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_change_log_table_name', table_name='change_log')
    op.drop_table('change_log')
    for table in ('summaries', 'transcripts'):
        op.drop_index(f'ix_{table}_recording_id', table_name=table)
        op.drop_table(table)
    op.drop_index('ix_recordings_calendar_event_id', table_name='recordings')
    op.drop_index('ix_recordings_folder_id', table_name='recordings')
    op.drop_table('recordings')
    op.drop_table('calendar_settings')
    op.drop_index('ix_event_reminders_event_id', table_name='event_reminders')
    op.drop_table('event_reminders')
    op.drop_index('ix_calendar_events_parent_date', table_name='calendar_events')
    op.drop_index('ix_calendar_events_start', table_name='calendar_events')
    op.drop_index('ix_calendar_events_category_id', table_name='calendar_events')
    op.drop_table('calendar_events')
    op.drop_table('event_categories')
    op.drop_table('folders')
    op.drop_table('app_settings')
