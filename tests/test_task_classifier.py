"""Tests for task classification."""

from datetime import date, datetime, timedelta, timezone

import pytest

from signal_monitor.adapters.sources.task_classifier import (
    build_task_url,
    classify_task,
    days_until_due,
    is_overdue,
)
from signal_monitor.core import SignalCategory, TaskRecord

NOW = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def task(**fields) -> TaskRecord:
    fields.setdefault("id", "1201")
    fields.setdefault("name", "Write report")
    return TaskRecord(**fields)


def test_overdue_task_is_saturated_deadline():
    """A task due yesterday is a deadline at full confidence."""
    result = classify_task(task(due_on=TODAY - timedelta(days=1)), NOW)

    assert result.category == SignalCategory.DEADLINE
    assert result.confidence == 1.0


@pytest.mark.parametrize("fields", [
    {"name": "Blocked: waiting on legal"},
    {"name": "Review the Q3 plan"},
    {"name": "Anything else?"},
    {"name": "Fix login", "tags": ["urgent"]},
    {"name": "Write report", "notes": "Nothing special"},
])
def test_overdue_dominates_other_keywords(fields):
    result = classify_task(task(due_on=TODAY - timedelta(days=3), **fields), NOW)

    assert result.category == SignalCategory.DEADLINE
    assert result.confidence >= 0.95


def test_completed_task_is_skipped():
    assert classify_task(task(completed=True, due_on=TODAY), NOW) is None


@pytest.mark.parametrize("due_on, confidence", [
    (TODAY, 0.85),
    (TODAY + timedelta(days=1), 0.85),
    (TODAY + timedelta(days=2), 0.70),
    (TODAY + timedelta(days=3), 0.70),
])
def test_deadline_buckets(due_on, confidence):
    result = classify_task(task(due_on=due_on), NOW)

    assert result.category == SignalCategory.DEADLINE
    assert result.confidence == confidence


def test_far_deadline_is_not_a_deadline_signal():
    result = classify_task(task(due_on=TODAY + timedelta(days=10)), NOW)

    assert result.category == SignalCategory.UPDATE
    assert result.confidence == 0.50


def test_blocker_by_tag():
    result = classify_task(task(name="Migrate DB", tags=["Blocked"]), NOW)

    assert result.category == SignalCategory.BLOCKER
    assert result.confidence == 0.90


def test_blocker_before_deadline():
    result = classify_task(task(name="Stuck on vendor API", due_on=TODAY + timedelta(days=1)), NOW)

    assert result.category == SignalCategory.BLOCKER


@pytest.mark.parametrize("fields, category, confidence", [
    ({"name": "Approve new hire budget"}, SignalCategory.DECISION, 0.80),
    ({"name": "Pricing", "notes": "Should we raise it?"}, SignalCategory.QUESTION, 0.70),
    ({"name": "Patch the CVE ASAP"}, SignalCategory.ESCALATION, 0.80),
    ({"name": "Refresh docs", "tags": ["high priority"]}, SignalCategory.ESCALATION, 0.80),
    ({"name": "Refresh docs"}, SignalCategory.UPDATE, 0.50),
])
def test_keyword_rules(fields, category, confidence):
    result = classify_task(task(**fields), NOW)

    assert result.category == category
    assert result.confidence == confidence


def test_timed_due_date_passed_within_the_day_is_due_today():
    item = task(due_at=NOW - timedelta(hours=2))

    assert days_until_due(item, NOW) == 0
    assert not is_overdue(item, NOW)
    assert classify_task(item, NOW).confidence == 0.85


def test_timed_due_date_a_day_past_is_overdue():
    item = task(due_at=NOW - timedelta(hours=25))

    assert days_until_due(item, NOW) == -1
    assert is_overdue(item, NOW)
    assert classify_task(item, NOW).confidence == 1.0


@pytest.mark.parametrize("hours, days, confidence", [
    (12, 1, 0.85),
    (24, 1, 0.85),
    (30, 2, 0.70),
    (72, 3, 0.70),
])
def test_timed_due_dates_round_up_to_whole_days(hours, days, confidence):
    item = task(due_at=NOW + timedelta(hours=hours))

    assert days_until_due(item, NOW) == days
    assert classify_task(item, NOW).confidence == confidence


def test_days_until_due():
    assert days_until_due(task(due_on=TODAY - timedelta(days=1)), NOW) == -1
    assert days_until_due(task(due_on=TODAY), NOW) == 0
    assert days_until_due(task(due_at=NOW + timedelta(hours=12)), NOW) == 1
    assert days_until_due(task(), NOW) is None


def test_due_today_is_not_overdue():
    assert not is_overdue(task(due_on=TODAY), NOW)


def test_build_task_url():
    assert build_task_url("1100", "1201") == "https://app.asana.com/0/1100/1201"
    assert build_task_url(None, "1201") == "https://app.asana.com/0/0/1201"
