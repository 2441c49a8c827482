"""WhatsApp Business source: customer messages received through webhooks.

The Cloud API has no message-history endpoint. Incoming webhook payloads are
pushed into a WebhookInbox and fetch_signals classifies what the inbox holds.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from signal_monitor.adapters.sources.business_classifier import (
    analyze_business_message,
    generate_business_title,
    to_classification,
)
from signal_monitor.adapters.sources.dates import parse_unix_timestamp
from signal_monitor.core import (
    ConfigurationError,
    HealthStatus,
    IntegrationHealth,
    IntegrationSource,
    SourceAdapter,
    SourceAPIError,
    UnifiedSignal,
    is_auth_failure,
)

logger = logging.getLogger(__name__)

WHATSAPP_API = "https://graph.facebook.com/v18.0"

AUTH_ERROR_MARKERS = ("401", "oauth", "access token", "session has expired", "invalid token")

DEFAULT_RETENTION = timedelta(days=7)


@dataclass
class InboxMessage:
    """A text message taken from a webhook payload."""

    id: str
    sender: str
    text: str
    timestamp: datetime
    contact_name: Optional[str] = None
    reply_to: Optional[str] = None


def extract_messages(payload: dict[str, Any]) -> list[InboxMessage]:
    """Pull text messages out of a webhook payload, resolving contact names."""
    messages: list[InboxMessage] = []

    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            contacts = {
                c.get("wa_id"): (c.get("profile") or {}).get("name")
                for c in value.get("contacts") or []
            }

            for message in value.get("messages") or []:
                body = (message.get("text") or {}).get("body")
                if message.get("type") != "text" or not body:
                    continue
                if not message.get("id") or not message.get("timestamp"):
                    continue

                sender = message.get("from") or ""
                context = message.get("context") or {}
                messages.append(InboxMessage(
                    id=message["id"],
                    sender=sender,
                    text=body,
                    timestamp=parse_unix_timestamp(message["timestamp"]),
                    contact_name=contacts.get(sender),
                    reply_to=context.get("id"),
                ))

    return messages


class WebhookInbox:
    """In-memory store of received messages, keyed by message id.

    Messages older than `max_age` are evicted on every ingest and prune.
    """

    def __init__(self, max_age: timedelta = DEFAULT_RETENTION) -> None:
        self.max_age = max_age
        self._messages: dict[str, InboxMessage] = {}

    def ingest(self, payload: dict[str, Any], now: Optional[datetime] = None) -> int:
        """Store the payload's text messages. Returns how many were new."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - self.max_age

        added = 0
        for message in extract_messages(payload):
            if message.timestamp < cutoff:
                continue
            # Meta retries deliveries, so the same id can arrive twice
            if message.id not in self._messages:
                added += 1
            self._messages[message.id] = message

        self.prune(now)
        return added

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop messages older than `max_age`. Returns how many were dropped."""
        cutoff = (now or datetime.now(timezone.utc)) - self.max_age
        stale = [msg_id for msg_id, m in self._messages.items() if m.timestamp < cutoff]
        for msg_id in stale:
            del self._messages[msg_id]
        return len(stale)

    def messages_since(self, since: datetime) -> list[InboxMessage]:
        return [m for m in self._messages.values() if m.timestamp >= since]

    def __len__(self) -> int:
        return len(self._messages)


class WhatsAppSource(SourceAdapter):
    """Surface customer messages that need action: complaints, orders, questions."""

    source = IntegrationSource.WHATSAPP
    emoji = "📱"
    name = "WhatsApp Business"

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        inbox: Optional[WebhookInbox] = None,
        window_hours: int = 24,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not access_token or not access_token.strip():
            raise ConfigurationError("WhatsApp access token cannot be empty")
        if not phone_number_id or not phone_number_id.strip().isdigit():
            raise ConfigurationError("WhatsApp phone number ID must be numeric")

        self.access_token = access_token.strip()
        self.phone_number_id = phone_number_id.strip()
        self.inbox = inbox if inbox is not None else WebhookInbox()
        self.window_hours = window_hours
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the credentials by reading the phone number's profile."""
        try:
            async with self._client() as client:
                response = await client.get(f"{WHATSAPP_API}/{self.phone_number_id}")
                if response.status_code != 200:
                    raise SourceAPIError(self._error_message(response), response.status_code)
                phone = response.json()
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("WhatsApp health check failed: %s", message)
            return IntegrationHealth(
                source=self.source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=message,
                needs_reauth=is_auth_failure(message, AUTH_ERROR_MARKERS),
            )

        now = datetime.now(timezone.utc)
        return IntegrationHealth(
            source=self.source,
            connected=True,
            status=HealthStatus.HEALTHY,
            workspace_name=phone.get("verified_name") or phone.get("display_phone_number") or "Unknown",
            workspace_id=self.phone_number_id,
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            signal_count=len(self.inbox),
            needs_reauth=False,
        )

    def ingest_webhook(self, payload: dict[str, Any]) -> int:
        """Store an incoming webhook payload for later fetches."""
        added = self.inbox.ingest(payload)
        logger.debug("WhatsApp: stored %d new messages", added)
        return added

    def process_webhook(self, payload: dict[str, Any]) -> list[UnifiedSignal]:
        """Classify a webhook payload directly, without touching the inbox."""
        return self._to_signals(extract_messages(payload))

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Classify inbox messages received in the window (default: last 24h)."""
        if since is None:
            since = datetime.now(timezone.utc) - timedelta(hours=self.window_hours)
        elif since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        dropped = self.inbox.prune()
        if dropped:
            logger.debug("WhatsApp: evicted %d expired messages", dropped)

        return self._to_signals(self.inbox.messages_since(since))

    def message_to_signal(self, message: InboxMessage) -> Optional[UnifiedSignal]:
        """Build a signal for an actionable message; greetings and chit-chat yield None."""
        analysis = analyze_business_message(message.text)
        if not analysis.is_signal:
            logger.debug("WhatsApp: skipping %s message: %r", analysis.signal_type, message.text[:50])
            return None

        classification = to_classification(analysis)
        contact = message.contact_name or message.sender

        return UnifiedSignal(
            id=f"whatsapp-{message.id}",
            source=self.source,
            source_id=message.id,
            category=classification.category,
            confidence=classification.confidence,
            title=generate_business_title(message.text, analysis.signal_type),
            snippet=message.text[:300],
            full_context=message.text,
            sender=contact,
            timestamp=message.timestamp,
            url=f"https://wa.me/{message.sender}",
            channel=contact,
            metadata={
                "phone_number": message.sender,
                "contact_name": contact,
                "signal_type": analysis.signal_type,
                "priority": analysis.priority,
                "keywords_matched": analysis.keywords_matched,
                "is_reply": message.reply_to is not None,
                "reply_to": message.reply_to,
            },
        )

    def _to_signals(self, messages: list[InboxMessage]) -> list[UnifiedSignal]:
        signals: list[UnifiedSignal] = []
        for message in messages:
            try:
                signal = self.message_to_signal(message)
            except Exception as e:
                logger.warning("WhatsApp: skipping message %s: %s", message.id, e)
                continue
            if signal:
                signals.append(signal)

        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    def _error_message(self, response: httpx.Response) -> str:
        message = f"WhatsApp API error: {response.status_code}"
        try:
            detail = (response.json().get("error") or {}).get("message")
        except ValueError:
            detail = None
        return f"{message} {detail}" if detail else message

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> dict[str, str]:
        """Get headers for Graph API requests."""
        return {"Authorization": f"Bearer {self.access_token}"}
