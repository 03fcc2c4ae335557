"""
SQLAlchemy ORM models (local store tables)

Timestamps are naive UTC datetimes and are written by the MutationGateway only.
Delete policies live on the ForeignKey declarations (ondelete=...) and are
read back by lecturevault.infrastructure.db.schema.
"""
from datetime import datetime
from sqlalchemy import (
    String, DateTime, Integer, Text, Boolean, JSON, ForeignKey,
    CheckConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from lecturevault.infrastructure.db.session import Base


class AppSettingsModel(Base):
    """
    Singleton: user profile and opaque UI preferences (id is always 1)
    """
    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    username: Mapped[str | None] = mapped_column(String(128), nullable=True)
    preferences: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # opaque key-value map

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_app_settings_singleton"),
    )


class FolderModel(Base):
    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class EventCategoryModel(Base):
    __tablename__ = "event_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False)  # "#RRGGBB"
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CalendarEventModel(Base):
    """
    Calendar event row. Three shapes share the table:

    - standalone: no recurrence_rule, no recurrence_parent_id
    - template: recurrence_rule set, occurrences are expanded on read
    - instance: recurrence_parent_id + recurrence_date set, overrides one
      occurrence of its template (is_cancelled drops it)
    """
    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_lecture: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")  # display only
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("event_categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    recurrence_rule: Mapped[str | None] = mapped_column(String(255), nullable=True)
    recurrence_parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=True
    )
    recurrence_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # anchor of the overridden occurrence
    is_recurrence_exception: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "recurrence_rule IS NULL OR recurrence_parent_id IS NULL",
            name="ck_calendar_events_template_xor_instance",
        ),
        Index("ix_calendar_events_start", "start_time"),
        Index("ix_calendar_events_parent_date", "recurrence_parent_id", "recurrence_date"),
    )


class EventReminderModel(Base):
    __tablename__ = "event_reminders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reminder_time: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes before start
    reminder_type: Mapped[str] = mapped_column(String(16), nullable=False)  # notification | email | popup
    is_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CalendarSettingsModel(Base):
    """
    Singleton: calendar view preferences (id is always 1)
    """
    __tablename__ = "calendar_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    default_view: Mapped[str] = mapped_column(String(16), nullable=False, default="month")
    week_starts_on: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 = Sunday, 1 = Monday
    working_hours_start: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    working_hours_end: Mapped[str] = mapped_column(String(5), nullable=False, default="17:00")
    default_event_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)  # minutes
    show_week_numbers: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_reminders: Mapped[list | None] = mapped_column(JSON, nullable=True)  # [15, 60] minutes before
    time_format: Mapped[str] = mapped_column(String(3), nullable=False, default="12h")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_calendar_settings_singleton"),
    )


class RecordingModel(Base):
    __tablename__ = "recordings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    folder_id: Mapped[int | None] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    calendar_event_id: Mapped[int | None] = mapped_column(
        ForeignKey("calendar_events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    audio_file_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)  # bytes

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TranscriptModel(Base):
    __tablename__ = "transcripts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    recording_id: Mapped[int] = mapped_column(
        ForeignKey("recordings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SummaryModel(Base):
    __tablename__ = "summaries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    recording_id: Mapped[int] = mapped_column(
        ForeignKey("recordings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# ============================================================================
# Change journal
# ============================================================================


class ChangeLog(Base):
    """
    Append-only journal of committed row changes, written by the MutationGateway
    in the same transaction as the change. The id doubles as the store version.
    """
    __tablename__ = "change_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    row_id: Mapped[int] = mapped_column(Integer, nullable=False)
    operation: Mapped[str] = mapped_column(String(16), nullable=False)  # insert | update | delete | nullify
    payload_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
