"""
Tests for live query subscriptions
"""
import queue
import threading

import pytest
from datetime import datetime

from lecturevault.application.calendar import CalendarService
from lecturevault.domain.errors import FieldError, UnknownEntity
from lecturevault.readmodels.queries import CalendarWindowQuery, EntityQuery, OccurrenceQuery


def test_subscription_before_insert_receives_new_row(store):
    sub = store.subscribe(EntityQuery("recordings"))
    assert sub.initial == []

    recording_id = store.insert("recordings", {"name": "Lecture 1"})

    update = sub.get(timeout=1)
    assert [r.id for r in update] == [recording_id]
    assert sub.latest == update


def test_subscription_after_insert_sees_row_initially(store):
    recording_id = store.insert("recordings", {"name": "Lecture 1"})

    sub = store.subscribe(EntityQuery("recordings"))

    assert [r.id for r in sub.initial] == [recording_id]
    assert sub.drain() == []


def test_unrelated_table_does_not_notify(store):
    sub = store.subscribe(EntityQuery("recordings"))

    store.insert("folders", {"name": "Physics"})

    with pytest.raises(queue.Empty):
        sub.get(timeout=0.05)


def test_filtered_query_and_ordering(store):
    folder_id = store.insert("folders", {"name": "Physics"})
    sub = store.subscribe(EntityQuery("recordings", {"folder_id": folder_id}, order_by=("-name",)))

    store.insert("recordings", {"name": "A", "folder_id": folder_id})
    store.insert("recordings", {"name": "B", "folder_id": folder_id})
    store.insert("recordings", {"name": "Elsewhere"})

    updates = sub.drain()
    assert [[r.name for r in u] for u in updates] == [["A"], ["B", "A"], ["B", "A"]]


def test_in_and_null_filters(store):
    a = store.insert("folders", {"name": "A"})
    b = store.insert("folders", {"name": "B"})
    store.insert("recordings", {"name": "in a", "folder_id": a})
    store.insert("recordings", {"name": "in b", "folder_id": b})
    store.insert("recordings", {"name": "loose"})

    assert [r.name for r in store.find_many("recordings", {"folder_id": [a, b]})] == ["in a", "in b"]
    assert [r.name for r in store.find_many("recordings", {"folder_id": None})] == ["loose"]


def test_query_validates_columns():
    with pytest.raises(FieldError):
        EntityQuery("recordings", {"colour": "red"})
    with pytest.raises(FieldError):
        EntityQuery("recordings", order_by=("-colour",))
    with pytest.raises(UnknownEntity):
        EntityQuery("notes")


def test_callback_receives_updates(store):
    received = []
    store.subscribe(EntityQuery("folders"), callback=received.append)

    store.insert("folders", {"name": "Physics"})

    assert len(received) == 1
    assert received[0][0].name == "Physics"


def test_failing_callback_does_not_affect_commit_or_others(store):
    def broken(result):
        raise RuntimeError("ui crashed")

    other = store.subscribe(EntityQuery("folders"))
    store.subscribe(EntityQuery("folders"), callback=broken)

    folder_id = store.insert("folders", {"name": "Physics"})

    assert store.find_by_id("folders", folder_id).name == "Physics"
    assert len(other.drain()) == 1


def test_unsubscribe_stops_updates(store):
    sub = store.subscribe(EntityQuery("folders"))
    store.unsubscribe(sub.handle)

    store.insert("folders", {"name": "Physics"})

    assert sub.drain() == []
    assert sub.active is False
    assert store.subscriptions.active_count() == 0


def test_close_handle_unsubscribes(store):
    sub = store.subscribe(EntityQuery("folders"))
    sub.close()
    store.insert("folders", {"name": "Physics"})
    assert sub.drain() == []


def test_cascade_notifies_every_affected_table(store):
    folder_id = store.insert("folders", {"name": "Physics"})
    recording_id = store.insert("recordings", {"name": "Lecture 1", "folder_id": folder_id})
    store.insert("transcripts", {"recording_id": recording_id, "text": "..."})
    transcripts = store.subscribe(EntityQuery("transcripts"))

    store.delete("folders", folder_id)

    assert transcripts.get(timeout=1) == []


def test_occurrence_query_follows_exceptions(store):
    calendar = CalendarService(store)
    template_id = calendar.create_event({
        "title": "Physics",
        "start_time": datetime(2024, 1, 1, 9),
        "end_time": datetime(2024, 1, 1, 10),
        "recurrence_rule": "FREQ=WEEKLY",
    }, reminders=[])
    sub = store.subscribe(OccurrenceQuery(template_id, datetime(2024, 1, 1), datetime(2024, 1, 22)))
    assert [o.title for o in sub.initial] == ["Physics"] * 3

    calendar.create_recurrence_exception(template_id, datetime(2024, 1, 8, 9), title="Rescheduled")

    assert [o.title for o in sub.get(timeout=1)] == ["Physics", "Rescheduled", "Physics"]


def test_occurrence_query_error_after_template_deleted(store):
    calendar = CalendarService(store)
    template_id = calendar.create_event({
        "title": "Physics",
        "start_time": datetime(2024, 1, 1, 9),
        "end_time": datetime(2024, 1, 1, 10),
        "recurrence_rule": "FREQ=WEEKLY",
    }, reminders=[])
    sub = store.subscribe(OccurrenceQuery(template_id, datetime(2024, 1, 1), datetime(2024, 1, 22)))

    store.delete("calendar_events", template_id)

    assert sub.drain() == []
    assert sub.error is not None


def test_calendar_window_query(store):
    sub = store.subscribe(CalendarWindowQuery(datetime(2024, 1, 1), datetime(2024, 1, 8)))
    assert sub.initial == []

    store.insert("calendar_events", {
        "title": "Seminar",
        "start_time": datetime(2024, 1, 3, 14),
        "end_time": datetime(2024, 1, 3, 15),
    })

    [occurrence] = sub.get(timeout=1)
    assert occurrence.title == "Seminar"
    assert occurrence.template_id is None


class _BreaksAfterFirstRun:
    """Query that works at subscribe time and then starts failing"""
    tables = frozenset({"folders"})

    def __init__(self):
        self.runs = 0

    def execute(self, db):
        self.runs += 1
        if self.runs > 1:
            raise RuntimeError("query bug")
        return []


def test_broken_query_does_not_starve_other_subscribers(store):
    broken = store.subscribe(_BreaksAfterFirstRun())
    healthy = store.subscribe(EntityQuery("folders"))

    store.insert("folders", {"name": "Physics"})

    assert [f.name for f in healthy.get(timeout=1)] == ["Physics"]
    assert isinstance(broken.error, RuntimeError)
    assert broken.drain() == []

    store.insert("folders", {"name": "Math"})
    assert len(healthy.get(timeout=1)) == 2


def test_callback_may_wait_for_a_write_from_another_thread(store):
    started = threading.Event()
    finished = []

    def on_update(result):
        if started.is_set():
            return
        started.set()
        worker = threading.Thread(target=store.insert, args=("folders", {"name": "From worker"}))
        worker.start()
        worker.join(timeout=5)
        finished.append(not worker.is_alive())

    store.subscribe(EntityQuery("folders"), callback=on_update)
    store.insert("folders", {"name": "Physics"})

    assert finished == [True]
    assert sorted(f.name for f in store.find_many("folders")) == ["From worker", "Physics"]
