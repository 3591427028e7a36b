"""Monthly completion reports."""

import calendar
from decimal import ROUND_HALF_UP, Decimal
from datetime import date, datetime, time

from trackguide.api import store
from trackguide.api.errors import ValidationError


def month_window(year, month):
    """Inclusive (first_day, last_day) of the given month."""
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    if not date.min.year <= year <= date.max.year:
        raise ValidationError("Invalid year")
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def completion_rate(completed, total):
    if total <= 0:
        return 0
    # Half-up on the exact binary value, as the web client formats rates.
    rate = Decimal(completed / total * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(rate)


def aggregate_month(year, month, tasks, entries):
    """Build the report payload from active ``tasks`` and the month's ``entries``.

    Entries pointing at a task that is not in ``tasks`` (a deactivated task)
    count toward the summary but get no per-task block.
    """
    stats = {}
    for task in tasks:
        stats[task.pk] = {
            "taskName": task.name,
            "category": task.category,
            "totalDays": 0,
            "completedDays": 0,
            "completionRate": 0,
            "dates": [],
        }

    completed_entries = 0
    for entry in entries:
        if entry.completed:
            completed_entries += 1
        task_stats = stats.get(entry.task_id)
        if task_stats is None:
            continue
        task_stats["totalDays"] += 1
        if entry.completed:
            task_stats["completedDays"] += 1
        task_stats["dates"].append({
            "date": datetime.combine(entry.day, time.min).isoformat(),
            "completed": entry.completed,
            "notes": entry.notes,
        })

    for task_stats in stats.values():
        task_stats["completionRate"] = completion_rate(task_stats["completedDays"], task_stats["totalDays"])

    total_entries = len(entries)
    return {
        "month": f"{year:04d}-{month:02d}",
        "summary": {
            "totalTasks": len(stats),
            "totalEntries": total_entries,
            "completedEntries": completed_entries,
            "overallCompletionRate": completion_rate(completed_entries, total_entries),
        },
        "taskStats": list(stats.values()),
    }


def monthly_report(user, year, month):
    start, end = month_window(year, month)
    tasks = store.list_active_tasks(user)
    entries = store.query_range(user, start, end)
    return aggregate_month(year, month, tasks, entries)
