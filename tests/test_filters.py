"""Tests for the chat noise filter and text helpers."""

import pytest

from signal_monitor.adapters.sources.filters import (
    clean_slack_markup,
    extract_title,
    html_to_text,
    is_noise,
    word_count,
)
from signal_monitor.adapters.sources.message_classifier import classify_message
from signal_monitor.adapters.sources.simulator import SIGNAL_TEMPLATES


@pytest.mark.parametrize("text", [
    "hey",
    "hi there",
    "Good morning!",
    "thanks!",
    "ok",
    "sounds good",
    "lol",
    "👍",
    "🎉 🎉",
])
def test_short_and_greeting_messages_are_noise(text):
    assert is_noise(text)


@pytest.mark.parametrize("text", [
    "good to see you!",
    "That's great work 🎉",
    "happy to help 🙂",
    "hello everyone!! 👋 👋",
    "🎉 🎉 🎉 🎉",
])
def test_pleasantries_of_four_words_are_noise(text):
    assert is_noise(text)


@pytest.mark.parametrize("text", [
    "Good morning everyone, the deploy failed overnight",
    "Great work, but can you fix the login bug?",
])
def test_patterns_only_match_whole_messages(text):
    assert not is_noise(text)


def test_short_urgent_message_is_not_noise():
    """Fewer than four words still passes when it carries urgency."""
    assert not is_noise("Blocked on deploy")
    assert not is_noise("need help ASAP")


def test_actionable_message_is_not_noise():
    assert not is_noise("I'm blocked on the API integration, need help ASAP")
    assert not is_noise("Can you review the pricing doc before Friday?")


def test_noise_filter_keeps_classifier_output():
    """Messages the pipeline surfaces survive a second pass through the filter."""
    for _, _, templates in SIGNAL_TEMPLATES:
        for text in templates:
            if classify_message(text).confidence >= 0.5:
                assert not is_noise(text), text


def test_word_count():
    assert word_count("  one two   three ") == 3
    assert word_count("") == 0


def test_clean_slack_markup():
    text = "<@U123ABC> please check <#C42|eng> &amp; <!here> see <https://example.com|link>"

    assert clean_slack_markup(text) == "@user please check #eng & @here see"


def test_extract_title_first_sentence():
    assert extract_title("Deploy is blocked. Details in thread!") == "Deploy is blocked"


def test_extract_title_truncates():
    title = extract_title("a" * 150)

    assert len(title) == 100
    assert title.endswith("...")


def test_html_to_text():
    body = '<div><p><at id="0">Sarah Chen</at> can you review&nbsp;the <b>Q3</b> plan?</p>\n<p>Thanks</p></div>'

    assert html_to_text(body) == "@Sarah Chen can you review the Q3 plan? Thanks"
