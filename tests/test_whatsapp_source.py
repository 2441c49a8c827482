"""Tests for WhatsApp Business source."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from signal_monitor.adapters.sources import WebhookInbox, WhatsAppSource
from signal_monitor.core import ConfigurationError, HealthStatus, IntegrationSource, SignalCategory

NOW = datetime.now(timezone.utc)


def webhook(*messages, contacts=None) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA1",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"display_phone_number": "15550001111", "phone_number_id": "1234567890"},
                    "contacts": contacts or [{"profile": {"name": "Priya"}, "wa_id": "919800000001"}],
                    "messages": list(messages),
                },
            }],
        }],
    }


def text_message(msg_id: str, body: str, at: datetime = NOW, sender: str = "919800000001", **extra) -> dict:
    message = {
        "id": msg_id,
        "from": sender,
        "timestamp": str(int(at.timestamp())),
        "type": "text",
        "text": {"body": body},
    }
    message.update(extra)
    return message


def make_source(**kwargs) -> WhatsAppSource:
    return WhatsAppSource("EAAG-test-token", "1234567890", **kwargs)


def test_credential_validation():
    with pytest.raises(ConfigurationError):
        WhatsAppSource("", "1234567890")

    with pytest.raises(ConfigurationError, match="numeric"):
        WhatsAppSource("EAAG-test-token", "phone-id")


def test_process_webhook_surfaces_actionable_messages():
    source = make_source()
    payload = webhook(
        text_message("wamid.1", "My order never arrived and I am still waiting", NOW - timedelta(minutes=5)),
        text_message("wamid.2", "hi"),
        text_message("wamid.3", "Is the blue shirt available in size M?", NOW - timedelta(minutes=1)),
        {"id": "wamid.4", "from": "919800000001", "timestamp": str(int(NOW.timestamp())), "type": "image"},
    )

    signals = source.process_webhook(payload)

    assert [s.id for s in signals] == ["whatsapp-wamid.3", "whatsapp-wamid.1"]

    question, complaint = signals
    assert question.source == IntegrationSource.WHATSAPP
    assert question.category == SignalCategory.QUESTION
    assert question.confidence == 0.70
    assert question.title == "❓ Question: Is the blue shirt available in size M"
    assert question.sender == "Priya"
    assert question.url == "https://wa.me/919800000001"
    assert question.metadata["signal_type"] == "question"
    assert question.metadata["priority"] == "medium"

    assert complaint.category == SignalCategory.ESCALATION
    assert complaint.confidence == 0.85
    assert complaint.title.startswith("🚨 Customer Issue: ")


def test_process_webhook_does_not_touch_inbox():
    inbox = WebhookInbox()
    source = make_source(inbox=inbox)

    source.process_webhook(webhook(text_message("wamid.1", "Where is my order?")))

    assert len(inbox) == 0


def test_reply_metadata_and_unknown_contact():
    source = make_source()
    payload = webhook(
        text_message(
            "wamid.9",
            "Can you send the invoice again please",
            sender="447700900123",
            context={"from": "15550001111", "id": "wamid.prev"},
        ),
    )

    signal = source.process_webhook(payload)[0]

    assert signal.sender == "447700900123"
    assert signal.metadata["is_reply"] is True
    assert signal.metadata["reply_to"] == "wamid.prev"


def test_inbox_ignores_redelivered_messages():
    inbox = WebhookInbox()
    payload = webhook(text_message("wamid.1", "Where is my order?"))

    assert inbox.ingest(payload) == 1
    assert inbox.ingest(payload) == 0
    assert len(inbox) == 1


@pytest.mark.asyncio
async def test_fetch_signals_reads_inbox_window():
    source = make_source()
    source.ingest_webhook(webhook(
        text_message("wamid.old", "Refund for my last order please", NOW - timedelta(hours=30)),
        text_message("wamid.new", "The product arrived damaged, need a replacement", NOW - timedelta(hours=2)),
        text_message("wamid.hello", "Good morning", NOW - timedelta(hours=1)),
    ))

    recent = await source.fetch_signals()
    everything = await source.fetch_signals(since=NOW - timedelta(days=2))

    assert [s.source_id for s in recent] == ["wamid.new"]
    assert [s.source_id for s in everything] == ["wamid.new", "wamid.old"]


@pytest.mark.asyncio
async def test_fetch_signals_empty_inbox():
    assert await make_source().fetch_signals() == []


@pytest.mark.asyncio
async def test_health_healthy():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v18.0/1234567890"
        assert request.headers["Authorization"] == "Bearer EAAG-test-token"
        return httpx.Response(200, json={
            "verified_name": "Priya's Bakery",
            "display_phone_number": "+1 555-000-1111",
            "quality_rating": "GREEN",
        })

    health = await make_source(transport=httpx.MockTransport(handler)).check_health()

    assert health.status == HealthStatus.HEALTHY
    assert health.connected
    assert health.workspace_name == "Priya's Bakery"
    assert health.workspace_id == "1234567890"


@pytest.mark.asyncio
async def test_health_error_on_expired_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={
            "error": {"message": "Error validating access token: Session has expired", "type": "OAuthException"},
        })

    health = await make_source(transport=httpx.MockTransport(handler)).check_health()

    assert health.status == HealthStatus.ERROR
    assert not health.connected
    assert health.needs_reauth
    assert health.last_sync_error.startswith("WhatsApp API error: 401")


def test_inbox_drops_expired_messages_on_ingest():
    inbox = WebhookInbox(max_age=timedelta(days=7))
    month_old = NOW - timedelta(days=30)
    payload = webhook(*(
        text_message(f"wamid.{i}", "Where is my order?", month_old) for i in range(1000)
    ))

    assert inbox.ingest(payload, now=NOW) == 0
    assert len(inbox) == 0


def test_inbox_prune_evicts_aged_messages():
    inbox = WebhookInbox(max_age=timedelta(hours=24))
    inbox.ingest(webhook(
        text_message("wamid.1", "Where is my order?", NOW - timedelta(hours=20)),
        text_message("wamid.2", "Can you send the invoice again please", NOW - timedelta(hours=1)),
    ), now=NOW)
    assert len(inbox) == 2

    assert inbox.prune(now=NOW + timedelta(hours=6)) == 1
    assert [m.id for m in inbox.messages_since(NOW - timedelta(days=1))] == ["wamid.2"]


@pytest.mark.asyncio
async def test_fetch_signals_prunes_inbox():
    inbox = WebhookInbox(max_age=timedelta(hours=48))
    source = make_source(inbox=inbox)
    source.ingest_webhook(webhook(
        text_message("wamid.1", "Where is my order?", NOW - timedelta(hours=2)),
    ))
    assert len(inbox) == 1
    inbox.max_age = timedelta(hours=1)

    assert await source.fetch_signals(since=NOW - timedelta(days=3)) == []
    assert len(inbox) == 0
