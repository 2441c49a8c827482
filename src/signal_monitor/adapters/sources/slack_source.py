"""Slack source: recent channel messages classified into signals."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from signal_monitor.adapters.sources.dates import parse_unix_timestamp
from signal_monitor.adapters.sources.filters import clean_slack_markup, extract_title, is_noise
from signal_monitor.adapters.sources.message_classifier import (
    MIN_CHAT_CONFIDENCE,
    classify_message,
    matched_rule_name,
)
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

SLACK_API = "https://slack.com/api"

# Read-only: no DMs, no private channels, no write scopes
SLACK_REQUIRED_SCOPES = [
    "channels:history",
    "channels:read",
    "channels:join",
    "users:read",
    "users:read.email",
    "team:read",
]

AUTH_ERROR_MARKERS = (
    "invalid_auth",
    "not_authed",
    "token_revoked",
    "token_expired",
    "account_inactive",
    "token",
)

UserInfo = dict[str, Optional[str]]


class SlackSource(SourceAdapter):
    """Fetch recent messages from public Slack channels the bot is a member of."""

    source = IntegrationSource.SLACK
    emoji = "💬"
    name = "Slack"

    def __init__(
        self,
        token: str,
        window_hours: int = 24,
        max_channels: int = 10,
        messages_per_channel: int = 25,
        min_confidence: float = MIN_CHAT_CONFIDENCE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token:
            raise ConfigurationError("Slack token cannot be empty")
        if not token.startswith("xox"):
            raise ConfigurationError("Slack token must start with 'xox'")

        self.token = token
        self.window_hours = window_hours
        self.max_channels = max_channels
        self.messages_per_channel = messages_per_channel
        self.min_confidence = min_confidence
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the token with auth.test and team.info, then count readable channels."""
        try:
            async with self._client() as client:
                auth_response, team = await asyncio.gather(
                    self._send(client, "auth.test"),
                    self._call(client, "team.info"),
                )
                scopes = self._parse_scopes(auth_response)
                channels = await self._call(
                    client, "conversations.list", {"types": "public_channel", "limit": 100}
                )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Slack health check failed: %s", message)
            return IntegrationHealth(
                source=self.source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=message,
                needs_reauth=is_auth_failure(message, AUTH_ERROR_MARKERS),
            )

        # No scope information at all means we cannot judge, not that every scope is missing
        missing_scopes = [s for s in SLACK_REQUIRED_SCOPES if s not in scopes] if scopes else []
        member_channels = [c for c in channels.get("channels", []) if c.get("is_member")]
        team_info = team.get("team") or {}
        now = datetime.now(timezone.utc)

        return IntegrationHealth(
            source=self.source,
            connected=True,
            status=HealthStatus.DEGRADED if missing_scopes else HealthStatus.HEALTHY,
            workspace_name=team_info.get("name") or "Unknown",
            workspace_id=team_info.get("id"),
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            signal_count=len(member_channels),
            scopes=scopes,
            missing_scopes=missing_scopes,
            needs_reauth=bool(missing_scopes),
        )

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch and classify recent messages from up to `max_channels` member channels."""
        if since is None:
            since = datetime.now(timezone.utc) - timedelta(hours=self.window_hours)
        elif since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        oldest = f"{since.timestamp():.6f}"

        # Sender lookups are cached for this call only
        user_cache: dict[str, Optional[UserInfo]] = {}

        try:
            async with self._client() as client:
                result = await self._call(
                    client,
                    "conversations.list",
                    {"types": "public_channel", "exclude_archived": "true", "limit": 50},
                )
                channels = [
                    c for c in result.get("channels", [])
                    if c.get("id") and c.get("is_member")
                ][: self.max_channels]

                logger.debug("Slack: reading %d member channels", len(channels))

                per_channel = await asyncio.gather(*(
                    self._fetch_channel_signals(
                        client, c["id"], c.get("name") or "unknown", oldest, user_cache
                    )
                    for c in channels
                ))
        except Exception as e:
            logger.error("Slack: failed to fetch signals: %s", e)
            return []

        signals = [signal for batch in per_channel for signal in batch]
        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    async def _fetch_channel_signals(
        self,
        client: httpx.AsyncClient,
        channel_id: str,
        channel_name: str,
        oldest: str,
        user_cache: dict[str, Optional[UserInfo]],
    ) -> list[UnifiedSignal]:
        """Fetch one channel's history; failures only cost this channel."""
        signals: list[UnifiedSignal] = []

        try:
            history = await self._call(
                client,
                "conversations.history",
                {"channel": channel_id, "limit": self.messages_per_channel, "oldest": oldest},
            )
        except Exception as e:
            logger.warning("Slack: failed to fetch channel #%s: %s", channel_name, e)
            return signals

        for message in history.get("messages", []):
            try:
                signal = await self._message_to_signal(
                    client, message, channel_id, channel_name, user_cache
                )
            except Exception as e:
                logger.warning("Slack: skipping message %s in #%s: %s", message.get("ts"), channel_name, e)
                continue
            if signal:
                signals.append(signal)

        return signals

    async def _message_to_signal(
        self,
        client: httpx.AsyncClient,
        message: dict[str, Any],
        channel_id: str,
        channel_name: str,
        user_cache: dict[str, Optional[UserInfo]],
    ) -> Optional[UnifiedSignal]:
        text = message.get("text")
        ts = message.get("ts")
        if not text or not ts or message.get("subtype"):
            return None

        if is_noise(text):
            logger.debug("Slack: noise skipped: %r", text[:60])
            return None

        classification = classify_message(text)
        if classification.confidence < self.min_confidence:
            logger.debug(
                "Slack: low confidence (%.2f) skipped: %r", classification.confidence, text[:60]
            )
            return None

        sender = await self._get_user_info(client, message.get("user"), user_cache)

        return UnifiedSignal(
            id=f"slack-{channel_id}-{ts}",
            source=self.source,
            source_id=ts,
            category=classification.category,
            confidence=classification.confidence,
            title=extract_title(text),
            snippet=clean_slack_markup(text)[:300],
            full_context=text,
            sender=sender.get("name") if sender else None,
            sender_email=sender.get("email") if sender else None,
            timestamp=parse_unix_timestamp(ts),
            url=f"https://slack.com/archives/{channel_id}/p{ts.replace('.', '')}",
            channel=f"#{channel_name}",
            metadata={
                "rule": matched_rule_name(text),
                "reactions": message.get("reactions"),
                "thread_ts": message.get("thread_ts"),
                "reply_count": message.get("reply_count"),
            },
        )

    async def _get_user_info(
        self,
        client: httpx.AsyncClient,
        user_id: Optional[str],
        user_cache: dict[str, Optional[UserInfo]],
    ) -> Optional[UserInfo]:
        """Resolve a user id to display name and email, through the per-call cache."""
        if not user_id:
            return None
        if user_id in user_cache:
            return user_cache[user_id]

        info: Optional[UserInfo] = None
        try:
            result = await self._call(client, "users.info", {"user": user_id})
            user = result.get("user") or {}
            info = {
                "name": user.get("real_name") or user.get("name") or "Unknown",
                "email": (user.get("profile") or {}).get("email"),
            }
        except Exception as e:
            logger.debug("Slack: user lookup failed for %s: %s", user_id, e)

        user_cache[user_id] = info
        return info

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Call a Web API method, raising SourceAPIError unless Slack reports ok."""
        response = await client.get(f"{SLACK_API}/{method}", params=params or {})

        if response.status_code != 200:
            raise SourceAPIError(
                f"Slack API error: {response.status_code} on {method}", response.status_code
            )

        data = response.json()
        if not data.get("ok"):
            raise SourceAPIError(data.get("error") or f"Slack API error on {method}", response.status_code)

        return response

    async def _call(
        self,
        client: httpx.AsyncClient,
        method: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        response = await self._send(client, method, params)
        return response.json()

    def _parse_scopes(self, response: httpx.Response) -> list[str]:
        """Granted scopes from the x-oauth-scopes header or response metadata."""
        header = response.headers.get("x-oauth-scopes", "")
        if header:
            return [s.strip() for s in header.split(",") if s.strip()]
        metadata = response.json().get("response_metadata") or {}
        return list(metadata.get("scopes") or [])

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> dict[str, str]:
        """Get headers for Slack API requests."""
        return {"Authorization": f"Bearer {self.token}"}
