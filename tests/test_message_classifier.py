"""Tests for the chat message rule table."""

import pytest

from signal_monitor.adapters.sources.message_classifier import (
    CHAT_RULES,
    DEFAULT_CONFIDENCE,
    MIN_CHAT_CONFIDENCE,
    classify_message,
    matched_rule_name,
)
from signal_monitor.core import SignalCategory


def test_blocker_wins_over_urgency():
    """Blocker rule fires before the urgent-keyword rule."""
    result = classify_message("I'm blocked on the API integration, need help ASAP")

    assert result.category == SignalCategory.BLOCKER
    assert result.confidence == 0.90


@pytest.mark.parametrize("text, category, confidence, rule", [
    ("Please approve the budget by Friday", SignalCategory.DECISION, 0.85, "decision"),
    ("This is urgent, prod is down", SignalCategory.ESCALATION, 0.85, "escalation"),
    ("The report is due by EOD", SignalCategory.DEADLINE, 0.75, "deadline"),
    ("Send the final numbers by thursday", SignalCategory.DEADLINE, 0.75, "deadline"),
    ("Can you send me the slides?", SignalCategory.QUESTION, 0.70, "direct_question"),
    ("<@U123ABC> please take a look at the release notes", SignalCategory.MENTION, 0.75, "actionable_mention"),
    ("<@U123ABC> nice photo from the offsite", SignalCategory.MENTION, 0.40, "bare_mention"),
    ("I'll have the draft ready tomorrow", SignalCategory.COMMITMENT, 0.70, "commitment"),
    ("What time works for everyone?", SignalCategory.QUESTION, 0.55, "open_question"),
    ("FYI the staging server was restarted", SignalCategory.UPDATE, 0.65, "fyi"),
])
def test_rule_table(text, category, confidence, rule):
    result = classify_message(text)

    assert result.category == category
    assert result.confidence == confidence
    assert matched_rule_name(text) == rule


def test_unmatched_message_falls_back_to_low_confidence_update():
    result = classify_message("Lunch was great today")

    assert result.category == SignalCategory.UPDATE
    assert result.confidence == DEFAULT_CONFIDENCE
    assert result.confidence < MIN_CHAT_CONFIDENCE
    assert matched_rule_name("Lunch was great today") == "default"


def test_email_address_is_not_a_mention():
    assert matched_rule_name("Forward the contract to bob@example.com today") != "bare_mention"


def test_channel_broadcast_is_a_mention():
    result = classify_message("<!here> please review the release checklist")

    assert result.category == SignalCategory.MENTION
    assert result.confidence == 0.75


def test_rules_stay_in_bounds():
    for rule in CHAT_RULES:
        assert 0.0 <= rule.confidence <= 1.0
        assert rule.category in SignalCategory


def test_results_are_independent():
    first = classify_message("nothing to see")
    first.confidence = 0.99

    assert classify_message("nothing to see").confidence == DEFAULT_CONFIDENCE
