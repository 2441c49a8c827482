"""Business logic use cases."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from signal_monitor.adapters.sources import (
    AsanaSource,
    ClickUpSource,
    JiraSource,
    LinearSource,
    SimulatedSource,
    SlackSource,
    TeamsSource,
    WebhookInbox,
    WhatsAppSource,
)
from signal_monitor.config import Settings, get_settings
from signal_monitor.core import (
    ConfigurationError,
    CoverageAssessment,
    CoverageLevel,
    HealthStatus,
    IntegrationHealth,
    IntegrationSource,
    SourceAdapter,
    UnifiedSignal,
)

logger = logging.getLogger(__name__)

COMMUNICATION_TOOLS = [IntegrationSource.SLACK, IntegrationSource.TEAMS]
TASK_TOOLS = [
    IntegrationSource.ASANA,
    IntegrationSource.LINEAR,
    IntegrationSource.CLICKUP,
    IntegrationSource.JIRA,
    IntegrationSource.NOTION,
]

# Most impactful first
MISSING_TOOL_PRIORITY = [
    IntegrationSource.SLACK,
    IntegrationSource.ASANA,
    IntegrationSource.LINEAR,
    IntegrationSource.TEAMS,
]
MAX_RECOMMENDATIONS = 3

COMMUNICATION_WEIGHT = 0.4
TASK_WEIGHT = 0.6
HIGH_COVERAGE = 70
MEDIUM_COVERAGE = 40

MESSAGE_HIGH = "Great coverage! You can see most of your team's work."
MESSAGE_MEDIUM_WITH_CHAT = "Good start! Connect a task manager for better deadline tracking."
MESSAGE_MEDIUM_NO_CHAT = "Connect Slack or Teams to catch team discussions."
MESSAGE_LOW = "Limited coverage. Connect more tools to improve signal detection."
MESSAGE_EMPTY = "No tools connected yet. Connect your workspace to get started."


class IntegrationManager:
    """Registry of source adapters with aggregate health, fetch and coverage.

    The registry changes only through the add methods; health checks and
    fetches never register or drop adapters.
    """

    def __init__(self, adapters: Optional[list[SourceAdapter]] = None) -> None:
        self._adapters: dict[IntegrationSource, SourceAdapter] = {}
        self._health: dict[IntegrationSource, IntegrationHealth] = {}
        for adapter in adapters or []:
            self.add_adapter(adapter)

    @classmethod
    def from_settings(cls, settings: Settings) -> "IntegrationManager":
        """Register an adapter for every credential present in the settings.

        A missing credential means the source is not registered. A malformed
        one raises ConfigurationError.
        """
        manager = cls()

        if settings.simulation.enabled:
            for i, name in enumerate(settings.simulation.sources):
                try:
                    source = IntegrationSource(name)
                except ValueError:
                    known = ", ".join(s.value for s in IntegrationSource)
                    raise ConfigurationError(
                        f"Unknown simulation source '{name}' (expected one of: {known})"
                    ) from None
                seed = None if settings.simulation.seed is None else settings.simulation.seed + i
                manager.add_adapter(SimulatedSource(
                    source,
                    count=settings.simulation.signal_count,
                    seed=seed,
                ))
            return manager

        fetch = settings.fetch
        timeout = settings.http_timeout

        if settings.slack_bot_token:
            manager.add_slack(
                settings.slack_bot_token,
                window_hours=fetch.chat_window_hours,
                max_channels=fetch.max_sub_units,
                messages_per_channel=fetch.messages_per_channel,
                min_confidence=fetch.min_chat_confidence,
                timeout=timeout,
            )

        if settings.teams_access_token:
            manager.add_teams(
                settings.teams_access_token,
                window_hours=fetch.chat_window_hours,
                max_channels=fetch.max_sub_units,
                messages_per_channel=fetch.messages_per_channel,
                min_confidence=fetch.min_chat_confidence,
                timeout=timeout,
            )

        if settings.asana_access_token:
            manager.add_asana(
                settings.asana_access_token,
                max_workspaces=fetch.max_sub_units,
                timeout=timeout,
            )

        if settings.linear_api_key:
            manager.add_linear(settings.linear_api_key, timeout=timeout)

        if settings.clickup_api_token:
            manager.add_clickup(
                settings.clickup_api_token,
                max_workspaces=fetch.max_sub_units,
                timeout=timeout,
            )

        # Jira is registered only when all three settings are present
        if settings.jira_base_url and settings.jira_email and settings.jira_api_token:
            manager.add_jira(
                settings.jira_base_url,
                settings.jira_email,
                settings.jira_api_token,
                timeout=timeout,
            )

        if settings.whatsapp_access_token and settings.whatsapp_phone_number_id:
            manager.add_whatsapp(
                settings.whatsapp_access_token,
                settings.whatsapp_phone_number_id,
                inbox=WebhookInbox(max_age=timedelta(hours=fetch.webhook_retention_hours)),
                window_hours=fetch.chat_window_hours,
                timeout=timeout,
            )

        return manager

    @classmethod
    def from_env(cls) -> "IntegrationManager":
        """Build a manager from environment credentials and config.yaml."""
        return cls.from_settings(get_settings())

    def add_adapter(self, adapter: SourceAdapter) -> None:
        """Register an adapter, replacing any previous one for the same source.

        A replaced adapter's cached health is dropped with it.
        """
        source = IntegrationSource(adapter.source)
        if source in self._adapters:
            logger.info("Replacing %s adapter", source.value)
            self._health.pop(source, None)
        self._adapters[source] = adapter

    def add_slack(self, token: str, **options) -> SlackSource:
        adapter = SlackSource(token, **options)
        self.add_adapter(adapter)
        return adapter

    def add_teams(self, access_token: str, **options) -> TeamsSource:
        adapter = TeamsSource(access_token, **options)
        self.add_adapter(adapter)
        return adapter

    def add_asana(self, token: str, **options) -> AsanaSource:
        adapter = AsanaSource(token, **options)
        self.add_adapter(adapter)
        return adapter

    def add_linear(self, api_key: str, **options) -> LinearSource:
        adapter = LinearSource(api_key, **options)
        self.add_adapter(adapter)
        return adapter

    def add_clickup(self, token: str, **options) -> ClickUpSource:
        adapter = ClickUpSource(token, **options)
        self.add_adapter(adapter)
        return adapter

    def add_jira(self, base_url: str, email: str, api_token: str, **options) -> JiraSource:
        adapter = JiraSource(base_url, email, api_token, **options)
        self.add_adapter(adapter)
        return adapter

    def add_whatsapp(
        self,
        access_token: str,
        phone_number_id: str,
        inbox: Optional[WebhookInbox] = None,
        **options,
    ) -> WhatsAppSource:
        adapter = WhatsAppSource(access_token, phone_number_id, inbox=inbox, **options)
        self.add_adapter(adapter)
        return adapter

    def get_adapter(self, source: IntegrationSource) -> Optional[SourceAdapter]:
        return self._adapters.get(IntegrationSource(source))

    def connected_sources(self) -> list[IntegrationSource]:
        """Registered sources, in registration order."""
        return list(self._adapters)

    def has_any_integration(self) -> bool:
        return bool(self._adapters)

    def cached_health(self) -> dict[IntegrationSource, IntegrationHealth]:
        """Snapshot from the last get_health() call."""
        return dict(self._health)

    async def get_health(self) -> dict[IntegrationSource, IntegrationHealth]:
        """Check every adapter concurrently; one failure never aborts the batch."""
        adapters = list(self._adapters.items())
        results = await asyncio.gather(*(
            self._check_one(source, adapter) for source, adapter in adapters
        ))

        health = dict(zip((source for source, _ in adapters), results))
        self._health = health
        return dict(health)

    async def fetch_all_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch from every adapter concurrently and merge, newest first.

        Failing adapters are logged and contribute nothing. No deduplication
        is done across sources.
        """
        adapters = list(self._adapters.items())
        batches = await asyncio.gather(*(
            self._fetch_one(source, adapter, since) for source, adapter in adapters
        ))

        signals = [signal for batch in batches for signal in batch]
        # sorted() is stable, so equal timestamps keep registration order
        return sorted(signals, key=lambda s: s.timestamp, reverse=True)

    def assess_coverage(self) -> CoverageAssessment:
        """How much of the workspace the registered tools can see."""
        connected = self.connected_sources()
        connected_comms = [s for s in connected if s in COMMUNICATION_TOOLS]
        connected_tasks = [s for s in connected if s in TASK_TOOLS]

        comm_coverage = len(connected_comms) / len(COMMUNICATION_TOOLS) * 100
        task_coverage = len(connected_tasks) / len(TASK_TOOLS) * 100
        percentage = round(comm_coverage * COMMUNICATION_WEIGHT + task_coverage * TASK_WEIGHT)

        missing = [s for s in MISSING_TOOL_PRIORITY if s not in connected]

        if percentage >= HIGH_COVERAGE:
            overall = CoverageLevel.HIGH
            message = MESSAGE_HIGH
        elif percentage >= MEDIUM_COVERAGE:
            overall = CoverageLevel.MEDIUM
            message = MESSAGE_MEDIUM_WITH_CHAT if connected_comms else MESSAGE_MEDIUM_NO_CHAT
        elif connected:
            overall = CoverageLevel.LOW
            message = MESSAGE_LOW
        else:
            overall = CoverageLevel.LOW
            message = MESSAGE_EMPTY

        return CoverageAssessment(
            overall=overall,
            percentage=percentage,
            communication_coverage=round(comm_coverage),
            task_coverage=round(task_coverage),
            connected_tools=connected,
            missing_tools=missing[:MAX_RECOMMENDATIONS],
            message=message,
        )

    async def _check_one(self, source: IntegrationSource, adapter: SourceAdapter) -> IntegrationHealth:
        try:
            return await adapter.check_health()
        except Exception as e:
            logger.error("Health check for %s failed: %s", source.value, e)
            return IntegrationHealth(
                source=source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=str(e) or "Unknown error",
            )

    async def _fetch_one(
        self,
        source: IntegrationSource,
        adapter: SourceAdapter,
        since: Optional[datetime],
    ) -> list[UnifiedSignal]:
        try:
            signals = await adapter.fetch_signals(since)
        except Exception as e:
            logger.error("Failed to fetch %s: %s", source.value, e)
            return []

        logger.debug("%s: %d signals", source.value, len(signals))
        return signals
