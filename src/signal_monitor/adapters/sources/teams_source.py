"""Microsoft Teams source: recent channel messages classified into signals."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from signal_monitor.adapters.sources.dates import parse_datetime
from signal_monitor.adapters.sources.filters import extract_title, html_to_text, is_noise
from signal_monitor.adapters.sources.message_classifier import (
    MIN_CHAT_CONFIDENCE,
    classify_message,
    matched_rule_name,
)
from signal_monitor.core import (
    Classification,
    ConfigurationError,
    HealthStatus,
    IntegrationHealth,
    IntegrationSource,
    SignalCategory,
    SourceAdapter,
    SourceAPIError,
    UnifiedSignal,
    is_auth_failure,
)

logger = logging.getLogger(__name__)

GRAPH_API = "https://graph.microsoft.com/v1.0"

AUTH_ERROR_MARKERS = ("401", "invalidauthenticationtoken", "access token", "token is expired", "unauthorized")

HIGH_IMPORTANCE = ("high", "urgent")
IMPORTANCE_CONFIDENCE = 0.85
DIRECT_MENTION_CONFIDENCE = 0.75


class TeamsSource(SourceAdapter):
    """Fetch recent messages from the channels of the user's joined teams."""

    source = IntegrationSource.TEAMS
    emoji = "👥"
    name = "Microsoft Teams"

    def __init__(
        self,
        access_token: str,
        window_hours: int = 24,
        max_channels: int = 10,
        messages_per_channel: int = 25,
        min_confidence: float = MIN_CHAT_CONFIDENCE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not access_token or not access_token.strip():
            raise ConfigurationError("Teams access token cannot be empty")

        self.access_token = access_token.strip()
        self.window_hours = window_hours
        self.max_channels = max_channels
        self.messages_per_channel = messages_per_channel
        self.min_confidence = min_confidence
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the token with /me and count the joined teams."""
        try:
            async with self._client() as client:
                me, teams = await asyncio.gather(
                    self._request(client, "/me"),
                    self._request(client, "/me/joinedTeams"),
                )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Teams health check failed: %s", message)
            return IntegrationHealth(
                source=self.source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=message,
                needs_reauth=is_auth_failure(message, AUTH_ERROR_MARKERS),
            )

        joined = teams.get("value") or []
        first = joined[0] if joined else {}
        now = datetime.now(timezone.utc)

        return IntegrationHealth(
            source=self.source,
            connected=True,
            status=HealthStatus.HEALTHY,
            workspace_name=first.get("displayName") or me.get("displayName") or "Unknown",
            workspace_id=first.get("id"),
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            signal_count=len(joined),
            needs_reauth=False,
        )

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch and classify recent messages from up to `max_channels` channels."""
        if since is None:
            since = datetime.now(timezone.utc) - timedelta(hours=self.window_hours)
        elif since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        try:
            async with self._client() as client:
                me = await self._request(client, "/me")
                teams = (await self._request(client, "/me/joinedTeams")).get("value") or []

                channels: list[tuple[dict[str, Any], dict[str, Any]]] = []
                for team in teams:
                    if len(channels) >= self.max_channels:
                        break
                    try:
                        result = await self._request(client, f"/teams/{team['id']}/channels")
                    except Exception as e:
                        logger.warning("Teams: failed to list channels for %s: %s", team.get("displayName"), e)
                        continue
                    channels.extend((team, channel) for channel in result.get("value") or [])
                channels = channels[: self.max_channels]

                logger.debug("Teams: reading %d channels", len(channels))

                per_channel = await asyncio.gather(*(
                    self._fetch_channel_signals(client, team, channel, me.get("id"), since)
                    for team, channel in channels
                ))
        except Exception as e:
            logger.error("Teams: failed to fetch signals: %s", e)
            return []

        signals = [signal for batch in per_channel for signal in batch]
        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    async def _fetch_channel_signals(
        self,
        client: httpx.AsyncClient,
        team: dict[str, Any],
        channel: dict[str, Any],
        user_id: Optional[str],
        since: datetime,
    ) -> list[UnifiedSignal]:
        """Fetch one channel's messages; failures only cost this channel."""
        signals: list[UnifiedSignal] = []
        channel_name = f"{team.get('displayName') or 'Team'} / {channel.get('displayName') or 'General'}"

        try:
            result = await self._request(
                client,
                f"/teams/{team['id']}/channels/{channel['id']}/messages",
                {"$top": self.messages_per_channel},
            )
        except Exception as e:
            logger.warning("Teams: failed to fetch channel %s: %s", channel_name, e)
            return signals

        for message in result.get("value") or []:
            try:
                signal = self.message_to_signal(message, channel, channel_name, user_id, since)
            except Exception as e:
                logger.warning("Teams: skipping message %s in %s: %s", message.get("id"), channel_name, e)
                continue
            if signal:
                signals.append(signal)

        return signals

    def message_to_signal(
        self,
        message: dict[str, Any],
        channel: dict[str, Any],
        channel_name: str,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> Optional[UnifiedSignal]:
        """Classify one Graph chatMessage; system messages and noise yield None."""
        if message.get("messageType") != "message" or message.get("deletedDateTime"):
            return None

        timestamp = parse_datetime(message.get("createdDateTime"))
        if timestamp is None or (since is not None and timestamp < since):
            return None

        body = message.get("body") or {}
        content = body.get("content") or ""
        text = html_to_text(content) if body.get("contentType") == "html" else content.strip()
        if not text or is_noise(text):
            return None

        mentioned = user_id is not None and any(
            ((m.get("mentioned") or {}).get("user") or {}).get("id") == user_id
            for m in message.get("mentions") or []
        )
        classification = self.classify(text, message.get("importance"), mentioned)
        if classification.confidence < self.min_confidence:
            logger.debug(
                "Teams: low confidence (%.2f) skipped: %r", classification.confidence, text[:60]
            )
            return None

        sender = message.get("from") or {}
        author = sender.get("user") or sender.get("application") or {}

        return UnifiedSignal(
            id=f"teams-{channel.get('id')}-{message['id']}",
            source=self.source,
            source_id=message["id"],
            category=classification.category,
            confidence=classification.confidence,
            title=extract_title(text),
            snippet=text[:300],
            full_context=text,
            sender=author.get("displayName"),
            timestamp=timestamp,
            url=message.get("webUrl") or channel.get("webUrl") or "https://teams.microsoft.com",
            channel=channel_name,
            metadata={
                "rule": matched_rule_name(text),
                "importance": message.get("importance"),
                "mentioned": mentioned,
                "mentions_count": len(message.get("mentions") or []),
                "reactions_count": len(message.get("reactions") or []),
            },
        )

    def classify(self, text: str, importance: Optional[str], mentioned: bool) -> Classification:
        """Chat rules, raised for high-importance posts and direct mentions."""
        classification = classify_message(text)

        if (importance or "").lower() in HIGH_IMPORTANCE and classification.confidence < IMPORTANCE_CONFIDENCE:
            return Classification(SignalCategory.ESCALATION, IMPORTANCE_CONFIDENCE)

        if mentioned and classification.confidence < DIRECT_MENTION_CONFIDENCE:
            return Classification(SignalCategory.MENTION, DIRECT_MENTION_CONFIDENCE)

        return classification

    async def _request(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """GET a Graph endpoint, raising SourceAPIError on a non-200 response."""
        response = await client.get(f"{GRAPH_API}{endpoint}", params=params or {})

        if response.status_code != 200:
            message = f"Teams API error: {response.status_code}"
            try:
                error = response.json().get("error") or {}
            except ValueError:
                error = {}
            detail = error.get("code") or error.get("message")
            raise SourceAPIError(f"{message} {detail}" if detail else message, response.status_code)

        return response.json()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> dict[str, str]:
        """Get headers for Microsoft Graph requests."""
        return {"Authorization": f"Bearer {self.access_token}"}
