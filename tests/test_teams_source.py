"""Tests for Microsoft Teams source."""

from collections import Counter
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from signal_monitor.adapters.sources import TeamsSource
from signal_monitor.core import ConfigurationError, HealthStatus, IntegrationSource, SignalCategory

NOW = datetime.now(timezone.utc)


def graph_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def chat_message(msg_id: str, content: str, at: datetime, content_type: str = "text", **extra) -> dict:
    message = {
        "id": msg_id,
        "messageType": "message",
        "createdDateTime": graph_time(at),
        "deletedDateTime": None,
        "importance": "normal",
        "body": {"contentType": content_type, "content": content},
        "from": {"user": {"id": "U2", "displayName": "Priya"}, "application": None},
        "mentions": [],
        "reactions": [],
    }
    message.update(extra)
    return message


MESSAGES = [
    chat_message(
        "m1",
        "<p>We are <b>blocked</b> on the vendor contract, need legal review</p>",
        NOW - timedelta(hours=1),
        content_type="html",
        webUrl="https://teams.microsoft.com/l/message/CH1/m1",
    ),
    chat_message(
        "m2",
        '<div><at id="0">Sarah Chen</at> the new onboarding doc is in the shared drive</div>',
        NOW - timedelta(hours=2),
        content_type="html",
        mentions=[{"id": 0, "mentionText": "Sarah Chen", "mentioned": {"user": {"id": "U1", "displayName": "Sarah Chen"}}}],
    ),
    chat_message(
        "m3",
        "Server migration starts tonight for all regions",
        NOW - timedelta(hours=3),
        importance="high",
        **{"from": {"user": None, "application": {"id": "A1", "displayName": "Deploy Bot"}}},
    ),
    chat_message("m4", "thanks!", NOW - timedelta(minutes=30)),
    chat_message("m5", "<systemEventMessage/>", NOW - timedelta(minutes=10), messageType="systemEventMessage"),
    chat_message("m6", "We are blocked on staging deploy again today", NOW - timedelta(hours=30)),
    chat_message("m7", "Lunch is at noon in the big room today", NOW - timedelta(hours=4)),
]


def make_handler(calls: Counter):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.replace("/v1.0", "")
        calls[path] += 1

        if path == "/me":
            return httpx.Response(200, json={"id": "U1", "displayName": "Sarah Chen"})
        if path == "/me/joinedTeams":
            return httpx.Response(200, json={"value": [{"id": "TM1", "displayName": "Acme"}]})
        if path == "/teams/TM1/channels":
            return httpx.Response(200, json={"value": [
                {"id": "CH1", "displayName": "General", "webUrl": "https://teams.microsoft.com/l/channel/CH1"},
                {"id": "CH2", "displayName": "Private", "webUrl": "https://teams.microsoft.com/l/channel/CH2"},
            ]})
        if path == "/teams/TM1/channels/CH1/messages":
            return httpx.Response(200, json={"value": MESSAGES})
        if path == "/teams/TM1/channels/CH2/messages":
            return httpx.Response(403, json={"error": {"code": "Forbidden", "message": "Missing role"}})
        return httpx.Response(404)

    return handler


def make_source(calls=None, **kwargs) -> TeamsSource:
    calls = calls if calls is not None else Counter()
    return TeamsSource("eyJ0eXAi.token", transport=httpx.MockTransport(make_handler(calls)), **kwargs)


def test_token_validation():
    with pytest.raises(ConfigurationError):
        TeamsSource("  ")


@pytest.mark.asyncio
async def test_fetch_signals():
    calls = Counter()
    source = make_source(calls)

    signals = await source.fetch_signals()

    # Noise, system events, stale and low-confidence messages are dropped;
    # the forbidden channel only costs its own messages
    assert [s.id for s in signals] == ["teams-CH1-m1", "teams-CH1-m2", "teams-CH1-m3"]
    assert calls["/teams/TM1/channels/CH2/messages"] == 1

    blocker, mention, important = signals
    assert blocker.source == IntegrationSource.TEAMS
    assert blocker.category == SignalCategory.BLOCKER
    assert blocker.confidence == 0.90
    assert blocker.snippet == "We are blocked on the vendor contract, need legal review"
    assert blocker.sender == "Priya"
    assert blocker.channel == "Acme / General"
    assert blocker.url == "https://teams.microsoft.com/l/message/CH1/m1"

    assert mention.category == SignalCategory.MENTION
    assert mention.confidence == 0.75
    assert mention.snippet == "@Sarah Chen the new onboarding doc is in the shared drive"
    assert mention.metadata["mentioned"] is True
    assert mention.url == "https://teams.microsoft.com/l/channel/CH1"

    assert important.category == SignalCategory.ESCALATION
    assert important.confidence == 0.85
    assert important.sender == "Deploy Bot"


@pytest.mark.asyncio
async def test_fetch_respects_max_channels():
    calls = Counter()
    source = make_source(calls, max_channels=1)

    await source.fetch_signals()

    assert calls["/teams/TM1/channels/CH1/messages"] == 1
    assert calls["/teams/TM1/channels/CH2/messages"] == 0


@pytest.mark.asyncio
async def test_fetch_with_explicit_since():
    source = make_source()

    signals = await source.fetch_signals(since=NOW - timedelta(days=2))

    assert "teams-CH1-m6" in [s.id for s in signals]


def test_classify_without_mention_or_importance_uses_chat_rules():
    source = TeamsSource("token")

    classification = source.classify("Lunch is at noon in the big room today", "normal", False)

    assert classification.category == SignalCategory.UPDATE
    assert classification.confidence == 0.25


@pytest.mark.asyncio
async def test_health_healthy():
    health = await make_source().check_health()

    assert health.status == HealthStatus.HEALTHY
    assert health.connected
    assert health.workspace_name == "Acme"
    assert health.signal_count == 1


@pytest.mark.asyncio
async def test_health_expired_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={
            "error": {"code": "InvalidAuthenticationToken", "message": "Access token has expired."},
        })

    source = TeamsSource("expired", transport=httpx.MockTransport(handler))

    health = await source.check_health()

    assert health.status == HealthStatus.ERROR
    assert not health.connected
    assert health.needs_reauth
    assert health.last_sync_error == "Teams API error: 401 InvalidAuthenticationToken"
