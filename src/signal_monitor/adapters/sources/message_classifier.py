"""Rule table for classifying chat messages.

Rules are evaluated top to bottom and the first match wins, so the most
specific, highest-confidence rules come first.
"""

import re

from signal_monitor.core.entities import Classification, SignalCategory
from signal_monitor.core.rules import Rule, contains_any, first_match

# Chat signals under this score are dropped by the chat adapter
MIN_CHAT_CONFIDENCE = 0.5

DEFAULT_CATEGORY = SignalCategory.UPDATE
DEFAULT_CONFIDENCE = 0.25

MENTION_PATTERN = re.compile(r"<@[a-z0-9]+(?:\|[^>]*)?>|<!(?:here|channel|everyone)|(?<![\w.])@\w+")
WEEKDAY_DEADLINE_PATTERN = re.compile(r"\bby (monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b")
WH_WORD_PATTERN = re.compile(r"\b(what|how|when|where|who)\b")

_problem_word = contains_any("issue", "problem", "error", "bug")
_ask_word = contains_any("can you", "could you", "please", "need")
_update_word = contains_any("update", "status", "progress")
_direct_question = contains_any("can you", "could you", "would you", "do you know", "any update")
_future_commitment = contains_any("i'll", "i will", "will have", "will get")
_completion_word = contains_any("ready", "done", "finished", "completed")


def _has_mention(text: str) -> bool:
    return bool(MENTION_PATTERN.search(text))


def _is_deadline(text: str) -> bool:
    return (
        contains_any("deadline", "due", "by eod", "by end of")(text)
        or bool(WEEKDAY_DEADLINE_PATTERN.search(text))
    )


def _is_actionable_mention(text: str) -> bool:
    return _has_mention(text) and (_problem_word(text) or _ask_word(text) or _update_word(text))


CHAT_RULES: tuple[Rule[str], ...] = (
    Rule(
        "blocker",
        contains_any("blocked", "stuck", "can't proceed", "cannot proceed"),
        SignalCategory.BLOCKER,
        0.90,
    ),
    Rule(
        "decision",
        contains_any("approve", "sign off", "decision needed", "need your input"),
        SignalCategory.DECISION,
        0.85,
    ),
    Rule(
        "escalation",
        contains_any("urgent", "asap", "immediately", "critical", "p0", "p1"),
        SignalCategory.ESCALATION,
        0.85,
    ),
    Rule("deadline", _is_deadline, SignalCategory.DEADLINE, 0.75),
    Rule(
        "direct_question",
        lambda text: "?" in text and _direct_question(text),
        SignalCategory.QUESTION,
        0.70,
    ),
    Rule("actionable_mention", _is_actionable_mention, SignalCategory.MENTION, 0.75),
    Rule("bare_mention", _has_mention, SignalCategory.MENTION, 0.40),
    Rule(
        "commitment",
        lambda text: _future_commitment(text) and _completion_word(text),
        SignalCategory.COMMITMENT,
        0.70,
    ),
    Rule(
        "open_question",
        lambda text: "?" in text and bool(WH_WORD_PATTERN.search(text)),
        SignalCategory.QUESTION,
        0.55,
    ),
    Rule(
        "fyi",
        contains_any("fyi", "heads up", "just letting you know", "update:"),
        SignalCategory.UPDATE,
        0.65,
    ),
)


def classify_message(text: str) -> Classification:
    """Map a chat message to a (category, confidence) pair."""
    rule = first_match(CHAT_RULES, text.lower())
    if rule is None:
        return Classification(DEFAULT_CATEGORY, DEFAULT_CONFIDENCE)
    return rule.to_classification()


def matched_rule_name(text: str) -> str:
    """Name of the rule that fires for the message ("default" if none)."""
    rule = first_match(CHAT_RULES, text.lower())
    return rule.name if rule else "default"
