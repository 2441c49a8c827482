"""Classifier for customer-facing business messages.

Customers and leads write differently from teammates, so this has its own
noise profile and priority order: complaints, then orders, then questions,
then positive feedback, then generic urgent requests.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from signal_monitor.core.entities import Classification, SignalCategory, truncate

URGENT_KEYWORDS = [
    "urgent", "asap", "immediately", "emergency", "critical",
    "today", "now", "right away", "as soon as possible",
    "jaldi", "turant", "abhi",
    "urgente", "ahora",
]

ORDER_KEYWORDS = [
    "order", "purchase", "buy", "payment", "invoice", "bill",
    "delivery", "shipping", "dispatch", "track",
    "refund", "return", "exchange", "cancel order",
    "cod", "cash on delivery", "upi", "gpay", "phonepe",
    "price", "cost", "rate", "quote", "quotation",
    "booking", "appointment", "reserve", "book",
]

COMPLAINT_KEYWORDS = [
    "complaint", "problem", "issue", "not working", "broken",
    "disappointed", "unhappy", "bad", "worst", "terrible",
    "waiting", "delayed", "late", "where is my", "still waiting",
    "scam", "fraud", "cheated", "fake", "wrong", "damaged",
    "missing", "never received", "did not receive", "not delivered",
    "failed", "error", "stuck", "help me", "need help",
]

POSITIVE_KEYWORDS = [
    "thank you", "thanks", "great", "excellent", "amazing",
    "happy", "satisfied", "good job", "well done", "appreciated",
    "recommend", "best", "love it", "perfect",
]

QUESTION_KEYWORDS = [
    "how much", "what is", "do you have", "is it", "can i", "can you",
    "when will", "where is", "why is", "how do", "how can",
    "available", "stock", "open", "closed", "timing", "hours",
]

GREETING_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^hi+$", r"^hello+$", r"^hey+$",
        r"^good\s*(morning|afternoon|evening|night)$",
        r"^how\s*are\s*you\??$", r"^what'?s?\s*up\??$",
        r"^ok+$", r"^okay+$", r"^k+$", r"^yes+$", r"^no+$",
        r"^thanks?$", r"^thank\s*you$", r"^ty$", r"^thx$",
        r"^bye+$", r"^goodbye$", r"^see\s*you$",
        r"^(👋|👍|🙏|😊|🙂|😀)+$",
    )
]

MIN_MESSAGE_LENGTH = 10
MIN_POSITIVE_LENGTH = 20
TITLE_LENGTH = 50

TITLE_PREFIXES = {
    "complaint": "🚨 Customer Issue",
    "order": "📦 Order/Inquiry",
    "question": "❓ Question",
    "appreciation": "🌟 Happy Customer",
    "urgent_request": "⚡ Urgent Request",
}
DEFAULT_TITLE_PREFIX = "💬 Message"

SIGNAL_CATEGORIES = {
    "complaint": SignalCategory.ESCALATION,
    "order": SignalCategory.COMMITMENT,
    "question": SignalCategory.QUESTION,
    "appreciation": SignalCategory.UPDATE,
    "urgent_request": SignalCategory.ESCALATION,
}

PRIORITY_CONFIDENCE = {
    "high": 0.85,
    "medium": 0.70,
    "low": 0.55,
}


@dataclass
class BusinessAnalysis:
    """Outcome of analysing one customer message."""

    is_signal: bool
    type: str
    signal_type: str
    priority: str
    keywords_matched: list[str] = field(default_factory=list)


def _keyword_patterns(keywords: list[str]) -> list[tuple[str, re.Pattern]]:
    return [(kw, re.compile(rf"\b{re.escape(kw)}\b")) for kw in keywords]


# Whole words only
URGENT_PATTERNS = _keyword_patterns(URGENT_KEYWORDS)
ORDER_PATTERNS = _keyword_patterns(ORDER_KEYWORDS)
COMPLAINT_PATTERNS = _keyword_patterns(COMPLAINT_KEYWORDS)
POSITIVE_PATTERNS = _keyword_patterns(POSITIVE_KEYWORDS)
QUESTION_PATTERNS = _keyword_patterns(QUESTION_KEYWORDS)


def _matches(text: str, patterns: list[tuple[str, re.Pattern]]) -> list[str]:
    return [kw for kw, pattern in patterns if pattern.search(text)]


def _not_a_signal(signal_type: str) -> BusinessAnalysis:
    return BusinessAnalysis(is_signal=False, type="neutral", signal_type=signal_type, priority="low")


def _skip_reason(lower: str) -> Optional[str]:
    if any(pattern.match(lower) for pattern in GREETING_PATTERNS):
        return "greeting"
    if len(lower) < MIN_MESSAGE_LENGTH and "?" not in lower:
        return "short_message"
    return None


def is_business_greeting(text: str) -> bool:
    """Greetings and very short messages without a question never become signals."""
    return _skip_reason(text.lower().strip()) is not None


def analyze_business_message(text: str) -> BusinessAnalysis:
    """Analyse a customer message for business signals."""
    lower = text.lower().strip()

    skip = _skip_reason(lower)
    if skip:
        return _not_a_signal(skip)

    urgent = _matches(lower, URGENT_PATTERNS)

    complaints = _matches(lower, COMPLAINT_PATTERNS)
    if complaints:
        return BusinessAnalysis(True, "problem", "complaint", "high", urgent + complaints)

    orders = _matches(lower, ORDER_PATTERNS)
    if orders:
        return BusinessAnalysis(True, "task", "order", "high" if urgent else "medium", urgent + orders)

    if "?" in lower or _matches(lower, QUESTION_PATTERNS):
        return BusinessAnalysis(True, "task", "question", "high" if urgent else "medium", urgent + ["question"])

    positives = _matches(lower, POSITIVE_PATTERNS)
    if positives and len(lower) > MIN_POSITIVE_LENGTH:
        return BusinessAnalysis(True, "positive", "appreciation", "low", positives)

    if urgent:
        return BusinessAnalysis(True, "task", "urgent_request", "high", urgent)

    return _not_a_signal("casual")


def generate_business_title(text: str, signal_type: str) -> str:
    """Emoji label followed by the first sentence of the message."""
    prefix = TITLE_PREFIXES.get(signal_type, DEFAULT_TITLE_PREFIX)
    first_sentence = re.split(r"[.!?\n]", text, maxsplit=1)[0].strip()
    return f"{prefix}: {truncate(first_sentence, TITLE_LENGTH)}"


def to_classification(analysis: BusinessAnalysis) -> Classification:
    """Place a business signal in the shared taxonomy."""
    category = SIGNAL_CATEGORIES.get(analysis.signal_type, SignalCategory.UPDATE)
    return Classification(category, PRIORITY_CONFIDENCE.get(analysis.priority, 0.55))
