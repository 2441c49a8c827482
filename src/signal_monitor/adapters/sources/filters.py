"""Shared filtering utilities for sources.

The noise filter is a hard gate that runs before any classification:
anything it flags is dropped and never becomes a signal.
"""

import html
import re

from signal_monitor.core.entities import TITLE_MAX_LENGTH, truncate

URGENCY_PATTERN = re.compile(r"urgent|asap|critical|blocked|help|deadline")

# Optional trailing punctuation/emoji after an otherwise complete phrase
_TAIL = r"[\s!.,?]*(?:[\U0001F300-\U0001FAFF\u2600-\u27BF\uFE0F]+[\s!.,]*)*$"

NOISE_PATTERNS = [
    re.compile(p + _TAIL, re.IGNORECASE)
    for p in (
        r"^(hi|hey|hello|yo|sup|hiya|howdy)",
        r"^(hi|hey|hello)\s+(there|all|everyone|team|folks)",
        r"^good\s+(morning|afternoon|evening|night)",
        r"^(thanks|thank you|thx|ty)",
        r"^(ok|okay|k|kk|cool|great|nice|awesome|perfect|sounds good|got it|noted|ack)",
        r"^(yes|no|yep|nope|yeah|nah|sure|yup)",
        r"^(lol|lmao|haha)+",
        r"^(brb|bbl|gtg|ttyl|afk|omw)",
        r"^i'?m\s+(here|back|around|online|available)",
        r"^(good to see you|nice to see you|glad you'?re here)",
        r"^(bye|goodbye|cya|see ya|later|have a good one)",
        r"^(morning|afternoon)",
        r"^welcome",
        r"^(happy|glad)\s+to\s+(help|assist)",
        r"^(no problem|no worries|np|nw|anytime)",
        r"^same",
        r"^(agreed|exactly|right|true|indeed)",
        r"^\+1",
        r"^(what'?s up|how'?s it going|how are you)",
    )
]

# Messages made only of reaction emoji
EMOJI_ONLY_PATTERN = re.compile(r"^(?:[\U0001F300-\U0001FAFF\u2600-\u27BF\uFE0F]|\s)+$")

ACKNOWLEDGEMENT_PATTERN = re.compile(
    r"^(that'?s\s+)?"
    r"(great|awesome|amazing|excellent|fantastic|nice|good|cool|outstanding|incredible|solid|brilliant)\s+"
    r"(work|job|stuff)" + _TAIL,
    re.IGNORECASE,
)

_USER_MENTION = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")
_CHANNEL_MENTION = re.compile(r"<#[A-Z0-9]+\|([^>]+)>")
_SPECIAL_MENTION = re.compile(r"<!(here|channel|everyone)(?:\|[^>]*)?>")
_OTHER_MARKUP = re.compile(r"<[^>]+>")
_HTML_MENTION = re.compile(r"<at\b[^>]*>(.*?)</at>", re.IGNORECASE | re.DOTALL)
_SENTENCE_END = re.compile(r"[.!?]")


def word_count(text: str) -> int:
    return len(text.split())


def is_noise(text: str) -> bool:
    """
    Check if a chat message is conversational noise.

    Args:
        text: Raw message text

    Returns:
        True if the message is a greeting, acknowledgement or too short
        to be actionable
    """
    lower = text.lower().strip()

    if word_count(lower) < 4 and not URGENCY_PATTERN.search(lower):
        return True

    if EMOJI_ONLY_PATTERN.match(lower):
        return True

    if any(pattern.match(lower) for pattern in NOISE_PATTERNS):
        return True

    return bool(ACKNOWLEDGEMENT_PATTERN.match(lower))


def clean_slack_markup(text: str) -> str:
    """Replace Slack mention tokens with readable text and drop raw links."""
    clean = _USER_MENTION.sub("@user", text)
    clean = _CHANNEL_MENTION.sub(r"#\1", clean)
    clean = _SPECIAL_MENTION.sub(r"@\1", clean)
    clean = _OTHER_MARKUP.sub("", clean)
    return html.unescape(clean).strip()


def html_to_text(text: str) -> str:
    """Plain text from an HTML message body; <at> mention tags become @Name."""
    clean = _HTML_MENTION.sub(r"@\1", text)
    clean = _OTHER_MARKUP.sub(" ", clean)
    return " ".join(html.unescape(clean).split())


def extract_title(text: str, limit: int = TITLE_MAX_LENGTH) -> str:
    """Short title: cleaned text up to the first sentence terminator."""
    clean = clean_slack_markup(text)
    first_sentence = _SENTENCE_END.split(clean, maxsplit=1)[0].strip()
    if not first_sentence:
        first_sentence = clean
    return truncate(" ".join(first_sentence.split()), limit)
