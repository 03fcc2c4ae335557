"""
Tests for CalendarService use cases
"""
import pytest
from datetime import datetime

from lecturevault.application.calendar import CalendarService, DEFAULT_EVENT_CATEGORIES
from lecturevault.application.settings import SettingsService
from lecturevault.domain.errors import FieldError, InvariantViolation, NotFound
from lecturevault.domain.recurrence import parse_rule


@pytest.fixture
def service(store):
    return CalendarService(store)


@pytest.fixture
def weekly_id(service):
    """Monday 2024-01-01 09:00-10:00, every week"""
    return service.create_event({
        "title": "Physics",
        "start_time": datetime(2024, 1, 1, 9),
        "end_time": datetime(2024, 1, 1, 10),
        "recurrence_rule": "FREQ=WEEKLY",
    }, reminders=[])


JANUARY = (datetime(2024, 1, 1), datetime(2024, 2, 1))


def test_create_event_with_explicit_reminders(service, store, event_fields):
    event_id = service.create_event(event_fields, reminders=[10, {"reminder_time": 60, "reminder_type": "email"}])

    reminders = store.find_many("event_reminders", {"event_id": event_id}, ("reminder_time",))
    assert [(r.reminder_time, r.reminder_type) for r in reminders] == [(10, "notification"), (60, "email")]


def test_create_event_uses_default_reminders(service, store, event_fields):
    SettingsService(store).update_calendar_settings(default_reminders=[15, 30])

    event_id = service.create_event(event_fields)

    reminders = store.find_many("event_reminders", {"event_id": event_id}, ("reminder_time",))
    assert [r.reminder_time for r in reminders] == [15, 30]
    assert all(r.reminder_type == "notification" for r in reminders)


def test_create_event_rolls_back_with_bad_reminder(service, store, event_fields):
    with pytest.raises(FieldError):
        service.create_event(event_fields, reminders=[-1])
    assert store.find_many("calendar_events") == []


def test_rescheduled_exception(service, store, weekly_id):
    service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="Rescheduled")

    out = store.expand_occurrences(weekly_id, datetime(2024, 1, 1), datetime(2024, 1, 22))

    assert [o.title for o in out] == ["Physics", "Rescheduled", "Physics"]


def test_exception_copies_template_fields(service, store, weekly_id):
    exception_id = service.create_recurrence_exception(
        weekly_id, datetime(2024, 1, 15, 9), start_time=datetime(2024, 1, 15, 13), end_time=datetime(2024, 1, 15, 14),
    )

    row = store.find_by_id("calendar_events", exception_id)
    assert row.title == "Physics"
    assert row.recurrence_parent_id == weekly_id
    assert row.recurrence_date == datetime(2024, 1, 15, 9)
    assert row.is_recurrence_exception is True
    assert row.start_time == datetime(2024, 1, 15, 13)


def test_second_exception_for_same_occurrence_updates_first(service, store, weekly_id):
    first = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="A")
    second = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="B")

    assert first == second
    assert store.find_by_id("calendar_events", first).title == "B"


def test_exception_must_match_an_occurrence(service, weekly_id):
    with pytest.raises(InvariantViolation):
        service.create_recurrence_exception(weekly_id, datetime(2024, 1, 9, 9), title="Tuesday")


def test_exception_on_standalone_event(service, event_fields):
    event_id = service.create_event(event_fields, reminders=[])
    with pytest.raises(InvariantViolation):
        service.create_recurrence_exception(event_id, event_fields["start_time"])


def test_cancel_occurrence(service, store, weekly_id):
    service.cancel_occurrence(weekly_id, datetime(2024, 1, 8, 9))

    out = store.expand_occurrences(weekly_id, *JANUARY)
    assert [o.start_time.day for o in out] == [1, 15, 22, 29]


def test_delete_single_occurrence_of_template(service, store, weekly_id):
    plan = service.delete_event(weekly_id, scope="single", occurrence_date=datetime(2024, 1, 15, 9))

    assert plan is None
    out = store.expand_occurrences(weekly_id, *JANUARY)
    assert [o.start_time.day for o in out] == [1, 8, 22, 29]


def test_delete_single_on_exception_instance(service, store, weekly_id):
    exception_id = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="Moved")

    service.delete_event(exception_id, scope="single")

    out = store.expand_occurrences(weekly_id, *JANUARY)
    assert "Moved" not in [o.title for o in out]
    assert len(out) == 4


def test_delete_single_requires_occurrence_date(service, weekly_id):
    with pytest.raises(FieldError):
        service.delete_event(weekly_id, scope="single")


def test_delete_all_from_instance_removes_series(service, store, weekly_id):
    exception_id = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="Moved")

    plan = service.delete_event(exception_id, scope="all")

    assert plan.root_id == weekly_id
    assert store.find_many("calendar_events") == []


def test_delete_future_truncates_series(service, store, weekly_id):
    late_exception = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 22, 9), title="Late")
    early_exception = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="Early")

    service.delete_event(weekly_id, scope="future", occurrence_date=datetime(2024, 1, 15, 9))

    out = store.expand_occurrences(weekly_id, datetime(2024, 1, 1), datetime(2024, 3, 1))
    assert [o.start_time.day for o in out] == [1, 8]
    assert out[1].title == "Early"
    rule = parse_rule(store.find_by_id("calendar_events", weekly_id).recurrence_rule)
    assert rule.until == datetime(2024, 1, 15, 8, 59, 59)
    with pytest.raises(NotFound):
        store.find_by_id("calendar_events", late_exception)
    assert store.find_by_id("calendar_events", early_exception).title == "Early"


def test_delete_future_from_first_occurrence_deletes_all(service, store, weekly_id):
    service.delete_event(weekly_id, scope="future", occurrence_date=datetime(2024, 1, 1, 9))
    assert store.find_many("calendar_events") == []


def test_delete_standalone_ignores_scope(service, store, event_fields):
    event_id = service.create_event(event_fields, reminders=[5])
    plan = service.delete_event(event_id, scope="future")
    assert plan.deleted_ids("calendar_events") == {event_id}
    assert store.find_many("event_reminders") == []


def test_delete_bad_scope(service, weekly_id):
    with pytest.raises(FieldError):
        service.delete_event(weekly_id, scope="everything")


def test_duplicate_event(service, store, event_fields):
    event_id = service.create_event(event_fields, reminders=[10])
    store.update("event_reminders", store.find_many("event_reminders")[0].id, {"is_triggered": True})

    copy_id = service.duplicate_event(event_id)

    copy = store.find_by_id("calendar_events", copy_id)
    assert copy.title == "Physics lecture (copy)"
    assert copy.start_time == event_fields["start_time"]
    reminders = store.find_many("event_reminders", {"event_id": copy_id})
    assert [(r.reminder_time, r.is_triggered) for r in reminders] == [(10, False)]


def test_duplicate_instance_becomes_standalone(service, store, weekly_id):
    exception_id = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 8, 9), title="Moved")

    copy = store.find_by_id("calendar_events", service.duplicate_event(exception_id))

    assert copy.recurrence_parent_id is None
    assert copy.recurrence_rule is None
    assert copy.is_recurrence_exception is False


def test_default_categories_seeded_once(service, store):
    created = service.ensure_default_categories()
    assert len(created) == len(DEFAULT_EVENT_CATEGORIES) == 7
    assert service.ensure_default_categories() == []

    names = [c.name for c in store.find_many("event_categories", order_by=("id",))]
    assert names == ["Study", "Lecture", "Assignment", "Exam", "Meeting", "Personal", "Break"]


def test_series_running_past_calendar_limit_keeps_window_readable(service, store, event_fields):
    service.create_event(event_fields, reminders=[])
    never = service.create_event({
        "title": "Leap lab",
        "start_time": datetime(2024, 1, 1, 12),
        "end_time": datetime(2024, 1, 1, 13),
        "recurrence_rule": "FREQ=YEARLY;INTERVAL=10;BYMONTH=2;BYMONTHDAY=30",
    }, reminders=[])
    service.create_event({
        "title": "Millennium",
        "start_time": datetime(2024, 1, 1, 15),
        "end_time": datetime(2024, 1, 1, 16),
        "recurrence_rule": "FREQ=YEARLY;INTERVAL=9000",
    }, reminders=[])

    assert store.expand_occurrences(never, datetime(2024, 1, 1), datetime(2025, 1, 1)) == []
    out = store.list_occurrences(datetime(2024, 1, 1), datetime(2025, 1, 1))
    assert [o.title for o in out] == ["Physics lecture", "Millennium"]


def test_delete_future_reports_every_removed_exception(service, store, weekly_id):
    moved = service.create_recurrence_exception(weekly_id, datetime(2024, 1, 15, 9), title="Moved")
    cancelled = service.cancel_occurrence(weekly_id, datetime(2024, 1, 22, 9))
    store.insert("event_reminders", {"event_id": moved, "reminder_time": 10, "reminder_type": "popup"})

    plan = service.delete_event(weekly_id, scope="future", occurrence_date=datetime(2024, 1, 15, 9))

    assert plan.deleted_ids("calendar_events") == {moved, cancelled}
    assert len(plan.deleted_ids("event_reminders")) == 1
