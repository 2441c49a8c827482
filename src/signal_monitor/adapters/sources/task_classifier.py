"""Classification of tasks and issues from task trackers."""

import math
from datetime import datetime, timezone
from typing import Optional

from signal_monitor.core.entities import Classification, SignalCategory, TaskRecord, ensure_utc

OVERDUE_BOOST = 0.3
SECONDS_PER_DAY = 86400

ASANA_APP_URL = "https://app.asana.com/0"


def days_until_due(task: TaskRecord, now: datetime) -> Optional[int]:
    """Whole days between now and the task's due date.

    Date-only due dates count calendar days (due today is 0, due yesterday
    is -1). Timed due dates round partial days up, so a deadline that passed
    an hour ago is still due today (0) rather than overdue.
    """
    now = ensure_utc(now)
    if task.due_at is not None:
        return math.ceil((ensure_utc(task.due_at) - now).total_seconds() / SECONDS_PER_DAY)
    if task.due_on is not None:
        return (task.due_on - now.date()).days
    return None


def is_overdue(task: TaskRecord, now: datetime) -> bool:
    days = days_until_due(task, now)
    return days is not None and days < 0


def _base_classification(task: TaskRecord, now: datetime) -> Classification:
    name = task.name.lower()
    notes = (task.notes or "").lower()
    tags = [tag.lower() for tag in task.tags]

    if any(word in name for word in ("blocked", "blocker", "stuck")) or any(
        tag in ("blocked", "blocker", "stuck") for tag in tags
    ):
        return Classification(SignalCategory.BLOCKER, 0.90)

    days = days_until_due(task, now)
    if days is not None:
        if days < 0:
            return Classification(SignalCategory.DEADLINE, 0.95)
        if days <= 1:
            return Classification(SignalCategory.DEADLINE, 0.85)
        if days <= 3:
            return Classification(SignalCategory.DEADLINE, 0.70)

    if any(word in name for word in ("review", "approve", "decision", "sign off")):
        return Classification(SignalCategory.DECISION, 0.80)

    if "?" in name or "?" in notes:
        return Classification(SignalCategory.QUESTION, 0.70)

    urgent_words = ("urgent", "high priority", "asap")
    if any(tag in urgent_words for tag in tags) or any(word in name for word in urgent_words):
        return Classification(SignalCategory.ESCALATION, 0.80)

    return Classification(SignalCategory.UPDATE, 0.50)


def classify_task(task: TaskRecord, now: Optional[datetime] = None) -> Optional[Classification]:
    """Classify a task, or return None for completed tasks.

    Overdue status dominates: an overdue task is always a deadline, with its
    confidence boosted (capped at 1.0).
    """
    if task.completed:
        return None

    now = now or datetime.now(timezone.utc)
    classification = _base_classification(task, now)

    if is_overdue(task, now):
        return Classification(
            SignalCategory.DEADLINE,
            min(1.0, classification.confidence + OVERDUE_BOOST),
        )

    return classification


def build_task_url(project_id: Optional[str], task_id: str) -> str:
    """Deep link to a task, valid even for tasks without a project."""
    return f"{ASANA_APP_URL}/{project_id or 0}/{task_id}"
