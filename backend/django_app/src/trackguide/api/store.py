"""Task and progress persistence.

Every function takes the resolved ``user`` explicitly; nothing here reads
request or session state. Database failures surface as ``StoreError``.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime

from django.db import DatabaseError
from django.utils.dateparse import parse_date, parse_datetime

from trackguide.api.errors import NotFoundError, StoreError, ValidationError
from trackguide.api.models import (
    NOTES_MAX_LENGTH,
    TASK_CATEGORY_MAX_LENGTH,
    TASK_NAME_MAX_LENGTH,
    ProgressEntry,
    Task,
)

logger = logging.getLogger(__name__)

TASK_FIELDS = ('name', 'description', 'category', 'is_active')


@contextmanager
def _store_access(action):
    try:
        yield
    except DatabaseError as exc:
        raise StoreError(f"Failed to {action}") from exc


def normalize_day(value):
    """Reduce a date, datetime or ISO string to its calendar day.

    The date part is taken as sent; time-of-day and offset are dropped.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or '').strip()
    try:
        parsed = parse_datetime(text) or parse_date(text)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"Invalid date: {value!r}")
    return parsed.date() if isinstance(parsed, datetime) else parsed


def to_bool(value, field):
    """Accept JSON booleans and the strings "true"/"false"; null counts as false."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ValidationError(f"{field} must be true or false")


def _clean_name(name):
    name = str(name or '').strip()
    if not name:
        raise ValidationError("Task name is required")
    if len(name) > TASK_NAME_MAX_LENGTH:
        raise ValidationError(f"Task name cannot exceed {TASK_NAME_MAX_LENGTH} characters")
    return name


def _clean_category(category):
    category = str(category or '').strip()
    if len(category) > TASK_CATEGORY_MAX_LENGTH:
        raise ValidationError(f"Category cannot exceed {TASK_CATEGORY_MAX_LENGTH} characters")
    return category


# ---- tasks ----

def list_active_tasks(user, newest_first=False):
    ordering = '-created_at' if newest_first else 'created_at'
    with _store_access("fetch tasks"):
        return list(Task.objects.filter(user=user, is_active=True).order_by(ordering))


def get_task(user, task_id, active_only=False):
    if not task_id:
        raise ValidationError("Task ID is required")
    filters = {'user': user, 'pk': task_id}
    if active_only:
        filters['is_active'] = True
    with _store_access("fetch task"):
        try:
            return Task.objects.get(**filters)
        except Task.DoesNotExist:
            raise NotFoundError("Task not found") from None


def create_task(user, name, description='', category=''):
    task = Task(
        user=user,
        name=_clean_name(name),
        description=description or '',
        category=_clean_category(category),
    )
    with _store_access("create task"):
        task.save()
    logger.info("Created task %s for user %s", task.pk, user.pk)
    return task


def update_task(user, task_id, **fields):
    unknown = set(fields) - set(TASK_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
    is_active = to_bool(fields['is_active'], 'isActive') if 'is_active' in fields else None
    task = get_task(user, task_id)
    if 'name' in fields:
        task.name = _clean_name(fields['name'])
    if 'description' in fields:
        task.description = fields['description'] or ''
    if 'category' in fields:
        task.category = _clean_category(fields['category'])
    if is_active is not None:
        task.is_active = is_active
    with _store_access("update task"):
        task.save()
    return task


def deactivate_task(user, task_id):
    """Soft delete: the task leaves listings and reports, its progress stays."""
    task = get_task(user, task_id)
    task.is_active = False
    with _store_access("delete task"):
        task.save(update_fields=['is_active'])
    logger.info("Deactivated task %s for user %s", task.pk, user.pk)
    return task


# ---- progress ----

def upsert_entry(user, task_id, day, completed=False, notes=None):
    """Set completion (and optionally notes) for one task on one day.

    The (user, task, day) unique constraint plus ``update_or_create`` keeps a
    single row per key even when two writes race; the last write wins.
    ``notes=None`` leaves existing notes untouched.
    """
    if not task_id or day is None or day == '':
        raise ValidationError("Task ID and date are required")
    day = normalize_day(day)
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
    defaults = {'completed': to_bool(completed, 'completed')}
    task = get_task(user, task_id)

    if notes is not None:
        defaults['notes'] = notes
    with _store_access("save progress"):
        entry, created = ProgressEntry.objects.select_related('task').update_or_create(
            user=user, task=task, day=day, defaults=defaults,
        )
    logger.debug("%s progress user=%s task=%s day=%s completed=%s",
                 "Created" if created else "Updated", user.pk, task.pk, day, entry.completed)
    return entry


def query_range(user, start=None, end=None):
    """Progress rows for ``user`` with ``start <= day <= end``, ascending by day.

    Either bound may be omitted.
    """
    queryset = ProgressEntry.objects.filter(user=user).select_related('task')
    if start not in (None, ''):
        queryset = queryset.filter(day__gte=normalize_day(start))
    if end not in (None, ''):
        queryset = queryset.filter(day__lte=normalize_day(end))
    with _store_access("fetch progress"):
        return list(queryset.order_by('day', 'id'))
