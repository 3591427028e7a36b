import threading
import time
from datetime import date, datetime

import pytest
from django.db import DatabaseError, IntegrityError, connection, transaction

from trackguide.api import store
from trackguide.api.errors import NotFoundError, StoreError, ValidationError
from trackguide.api.models import ProgressEntry

pytestmark = pytest.mark.django_db


def test_create_task(user):
    task = store.create_task(user, "  Read  ", description="20 pages", category="Habits")

    assert task.id
    assert task.name == "Read"
    assert task.description == "20 pages"
    assert task.category == "Habits"
    assert task.is_active is True


@pytest.mark.parametrize("name", ["", "   ", None, "x" * 101])
def test_create_task_rejects_bad_name(user, name):
    with pytest.raises(ValidationError):
        store.create_task(user, name)


def test_get_task_of_other_user_is_not_found(user, other_user):
    task = store.create_task(other_user, "Meditate")

    with pytest.raises(NotFoundError):
        store.get_task(user, task.id)


def test_update_task(user):
    task = store.create_task(user, "Read")

    updated = store.update_task(user, task.id, name="Read more", category="Learning")

    assert updated.name == "Read more"
    assert updated.category == "Learning"
    assert store.get_task(user, task.id).name == "Read more"


def test_update_task_rejects_unknown_field(user):
    task = store.create_task(user, "Read")

    with pytest.raises(ValidationError):
        store.update_task(user, task.id, owner="someone")


def test_deactivate_task_keeps_progress(user):
    task = store.create_task(user, "Read")
    store.upsert_entry(user, task.id, "2024-03-01", completed=True)

    store.deactivate_task(user, task.id)

    assert store.list_active_tasks(user) == []
    assert store.get_task(user, task.id).is_active is False
    with pytest.raises(NotFoundError):
        store.get_task(user, task.id, active_only=True)
    assert len(store.query_range(user)) == 1


def test_upsert_normalizes_day(user):
    task = store.create_task(user, "Read")

    entry = store.upsert_entry(user, task.id, "2024-03-10T15:22:00", completed=True)

    assert entry.day == date(2024, 3, 10)
    found = store.query_range(user, "2024-03-10", "2024-03-10")
    assert len(found) == 1
    assert found[0].pk == entry.pk
    assert found[0].completed is True


@pytest.mark.parametrize("value", [
    "2024-03-10",
    "2024-03-10T00:00:00",
    "2024-03-10T23:59:59Z",
    datetime(2024, 3, 10, 8, 30),
    date(2024, 3, 10),
])
def test_normalize_day(value):
    assert store.normalize_day(value) == date(2024, 3, 10)


@pytest.mark.parametrize("value", ["yesterday", "2024-02-30", "", None])
def test_normalize_day_rejects_garbage(value):
    with pytest.raises(ValidationError):
        store.normalize_day(value)


def test_upsert_is_idempotent(user):
    task = store.create_task(user, "Read")

    first = store.upsert_entry(user, task.id, "2024-03-10", completed=True, notes="done")
    second = store.upsert_entry(user, task.id, "2024-03-10", completed=True, notes="done")

    assert first.pk == second.pk
    assert ProgressEntry.objects.filter(user=user).count() == 1


def test_upsert_overwrites_existing_row(user):
    task = store.create_task(user, "Read")
    store.upsert_entry(user, task.id, "2024-03-10T07:00:00", completed=True, notes="morning")

    entry = store.upsert_entry(user, task.id, "2024-03-10T21:00:00", completed=False, notes="undo")

    assert ProgressEntry.objects.count() == 1
    assert entry.completed is False
    assert entry.notes == "undo"


def test_upsert_without_notes_keeps_existing_notes(user):
    task = store.create_task(user, "Read")
    store.upsert_entry(user, task.id, "2024-03-10", completed=False, notes="started")

    entry = store.upsert_entry(user, task.id, "2024-03-10", completed=True)

    entry.refresh_from_db()
    assert entry.completed is True
    assert entry.notes == "started"


def test_upsert_on_inactive_task_is_allowed(user):
    task = store.create_task(user, "Read")
    store.deactivate_task(user, task.id)

    entry = store.upsert_entry(user, task.id, "2024-03-10", completed=True)

    assert entry.task_id == task.id


def test_upsert_on_other_users_task_is_not_found(user, other_user):
    task = store.create_task(other_user, "Read")

    with pytest.raises(NotFoundError):
        store.upsert_entry(user, task.id, "2024-03-10", completed=True)
    assert ProgressEntry.objects.count() == 0


@pytest.mark.parametrize("task_id, day", [(None, "2024-03-10"), ("", "2024-03-10"), ("t", None), ("t", "")])
def test_upsert_requires_task_and_day(user, task_id, day):
    with pytest.raises(ValidationError):
        store.upsert_entry(user, task_id, day)


def test_upsert_rejects_long_notes(user):
    task = store.create_task(user, "Read")

    with pytest.raises(ValidationError):
        store.upsert_entry(user, task.id, "2024-03-10", notes="n" * 201)


def test_unique_constraint_on_user_task_day(user):
    task = store.create_task(user, "Read")
    store.upsert_entry(user, task.id, "2024-03-10")

    with pytest.raises(IntegrityError):
        with transaction.atomic():
            ProgressEntry.objects.create(user=user, task=task, day=date(2024, 3, 10))


def test_query_range_orders_by_day_and_applies_bounds(user, other_user):
    read = store.create_task(user, "Read")
    walk = store.create_task(user, "Walk")
    store.upsert_entry(user, read.id, "2024-03-05")
    store.upsert_entry(user, walk.id, "2024-03-01")
    store.upsert_entry(user, read.id, "2024-03-03")
    theirs = store.create_task(other_user, "Read")
    store.upsert_entry(other_user, theirs.id, "2024-03-02")

    everything = store.query_range(user)
    assert [e.day.day for e in everything] == [1, 3, 5]
    assert everything[0].task.name == "Walk"

    assert [e.day.day for e in store.query_range(user, start="2024-03-02")] == [3, 5]
    assert [e.day.day for e in store.query_range(user, end="2024-03-03T12:00:00")] == [1, 3]
    assert [e.day.day for e in store.query_range(user, "2024-03-02", "2024-03-04")] == [3]


def test_database_errors_become_store_errors():
    with pytest.raises(StoreError) as excinfo:
        with store._store_access("fetch progress"):
            raise DatabaseError("disk I/O error")

    assert isinstance(excinfo.value.__cause__, DatabaseError)


@pytest.mark.django_db(transaction=True)
def test_concurrent_upserts_leave_one_row(user):
    task = store.create_task(user, "Read")
    barrier = threading.Barrier(2)
    outcomes = []

    def record(completed):
        barrier.wait()
        try:
            # SQLite reports a locked table instead of waiting, so retry those.
            for _ in range(50):
                try:
                    store.upsert_entry(user, task.id, "2024-03-10", completed=completed)
                except StoreError:
                    time.sleep(0.02)
                else:
                    outcomes.append(completed)
                    return
        finally:
            connection.close()

    threads = [threading.Thread(target=record, args=(flag,)) for flag in (True, False)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == [False, True]
    rows = ProgressEntry.objects.filter(user=user, task=task, day=date(2024, 3, 10))
    assert rows.count() == 1
