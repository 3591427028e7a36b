import uuid

from django.db import models
from django.contrib.auth.models import User

TASK_NAME_MAX_LENGTH = 100
TASK_CATEGORY_MAX_LENGTH = 50
NOTES_MAX_LENGTH = 200


def new_task_id():
    return str(uuid.uuid4())


class Task(models.Model):
    id = models.CharField(primary_key=True, max_length=64, default=new_task_id)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tasks')
    name = models.CharField(max_length=TASK_NAME_MAX_LENGTH)
    description = models.TextField(blank=True, default='')
    category = models.CharField(max_length=TASK_CATEGORY_MAX_LENGTH, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class ProgressEntry(models.Model):
    """One completion record per (user, task, calendar day)."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='progress')
    # Tasks are only soft-deleted; their progress rows stay.
    task = models.ForeignKey(Task, on_delete=models.RESTRICT, related_name='progress')
    day = models.DateField()
    completed = models.BooleanField(default=False)
    notes = models.CharField(max_length=NOTES_MAX_LENGTH, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('user', 'task', 'day')
        indexes = [
            models.Index(fields=['user', '-day'], name='api_progress_user_day_idx'),
        ]
