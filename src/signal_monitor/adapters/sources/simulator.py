"""Synthetic signals and health for running without live credentials."""

import logging
import os
import random
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from signal_monitor.core import (
    HealthStatus,
    IntegrationHealth,
    IntegrationSource,
    SignalCategory,
    SourceAdapter,
    UnifiedSignal,
)
from signal_monitor.core.entities import clamp_confidence

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    ("Sarah Chen", "sarah@acme.co"),
    ("Mike Johnson", "mike@acme.co"),
    ("Emma Wilson", "emma@acme.co"),
    ("Alex Kumar", "alex@acme.co"),
    ("Jordan Lee", "jordan@acme.co"),
]

SAMPLE_CHANNELS = ["#product", "#engineering", "#design", "#general", "#project-alpha"]

SIGNAL_TEMPLATES: list[tuple[SignalCategory, float, list[str]]] = [
    (SignalCategory.BLOCKER, 0.90, [
        "Blocked on API integration - need credentials from DevOps to continue",
        "Can't proceed with deployment until security review is completed",
        "Stuck on the authentication flow - the OAuth callback is failing in production",
        "Database migration is blocked - waiting on DBA approval",
    ]),
    (SignalCategory.DECISION, 0.85, [
        "Need approval on the new pricing page design before we can ship tomorrow",
        "Decision needed: Should we go with AWS or GCP for the new microservice?",
        "Please sign off on the Q1 roadmap by EOD - the board meeting is Friday",
        "@founder need your input on the vendor contract - they need an answer today",
    ]),
    (SignalCategory.COMMITMENT, 0.75, [
        "@founder I'll have the MVP ready by Friday end of day",
        "Will push the fix to staging by noon and send you the test link",
        "I can take on the mobile redesign this sprint - will have mockups by Wednesday",
        "Committed to delivering the API documentation by end of week",
    ]),
    (SignalCategory.DEADLINE, 0.80, [
        "Reminder: Client presentation is due tomorrow at 2pm - slides need review",
        "The beta launch deadline is approaching - 3 days left to fix critical bugs",
        "Don't forget: Performance review docs due by Friday EOD",
        "Sprint ends Monday - we have 4 tickets still in progress",
    ]),
    (SignalCategory.QUESTION, 0.70, [
        "@founder what's the expected timeline for the payment integration? Client is asking",
        "Can you clarify the requirements for the export feature? I'm seeing conflicting specs",
        "Any update on the infrastructure budget approval? Need to plan the migration",
        "Who should I talk to about the new compliance requirements?",
    ]),
    (SignalCategory.ESCALATION, 0.85, [
        "URGENT: Production API is returning 500 errors - 40% of requests failing",
        "Critical: Customer data sync has been failing for 2 hours - enterprise client affected",
        "Escalating: The demo environment for tomorrow's investor meeting isn't working",
        "P0: Auth service is down - users can't log in. Need all hands on deck",
    ]),
    (SignalCategory.UPDATE, 0.70, [
        "FYI - pushed the updated wireframes to Figma, ready for your review when you have time",
        "Heads up: I'll be OOO next Monday - Sarah will cover my on-call",
        "Update: Just wrapped up the competitor analysis doc - linked in the strategy channel",
        "FYI the staging environment was updated with the new API version",
    ]),
    (SignalCategory.MENTION, 0.75, [
        "@founder when you have a moment, the PR for the dashboard refactor needs your approval",
        "Hey @founder - quick sync needed on the investor deck before I send it out",
        "@founder the engineering team has questions about the new OKRs for Q2",
        "@founder could you review the security audit findings? A few items need your decision",
    ]),
]

LOOKBACK_HOURS = 48
DEADLINE_HORIZON_DAYS = 7
CONFIDENCE_JITTER = 0.05
SIMULATED_TITLE_LENGTH = 80
SEED_RANGE = 2**32


def generate_simulated_signals(
    source: IntegrationSource = IntegrationSource.SLACK,
    count: int = 15,
    seed: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[UnifiedSignal]:
    """Generate `count` template-based signals from the last 48 hours, newest first.

    A seed fixes ids and content; timestamps stay relative to `now`.
    """
    source = IntegrationSource(source)
    if seed is None:
        seed = random.randrange(SEED_RANGE)
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)

    signals: list[UnifiedSignal] = []
    for i in range(count):
        category, confidence, templates = rng.choice(SIGNAL_TEMPLATES)
        text = rng.choice(templates)
        sender, sender_email = rng.choice(SAMPLE_USERS)
        channel = rng.choice(SAMPLE_CHANNELS)
        timestamp = now - timedelta(hours=rng.uniform(0, LOOKBACK_HOURS))
        signal_id = f"sim-{source.value}-{seed}-{i}"

        deadline = None
        if category == SignalCategory.DEADLINE:
            deadline = now + timedelta(days=rng.uniform(0, DEADLINE_HORIZON_DAYS))

        signals.append(UnifiedSignal(
            id=signal_id,
            source=source,
            source_id=signal_id,
            category=category,
            confidence=clamp_confidence(confidence + rng.uniform(-CONFIDENCE_JITTER, CONFIDENCE_JITTER)),
            title=text[:SIMULATED_TITLE_LENGTH],
            snippet=text,
            full_context=text,
            sender=sender,
            sender_email=sender_email,
            timestamp=timestamp,
            deadline=deadline,
            url=f"https://{source.value}.example.com/message/{signal_id}",
            channel=channel,
            metadata={"simulated": True, "template": category.value},
        ))

    signals.sort(key=lambda s: s.timestamp, reverse=True)
    return signals


def generate_simulated_health(
    source: IntegrationSource,
    status: HealthStatus = HealthStatus.HEALTHY,
    error: Optional[str] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> IntegrationHealth:
    """A plausible health record; `error` and `not_configured` come back disconnected."""
    status = HealthStatus(status)
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    connected = status not in (HealthStatus.ERROR, HealthStatus.NOT_CONFIGURED)

    return IntegrationHealth(
        source=source,
        connected=connected,
        status=status,
        workspace_name="Simulated Workspace",
        workspace_id="SIM001",
        connected_at=now - timedelta(days=7),
        last_sync_at=now if connected else None,
        last_sync_success=connected,
        last_sync_error=error,
        signal_count=rng.randint(10, 59) if connected else 0,
        scopes=["channels:read", "channels:history", "users:read"],
        missing_scopes=["users:read.email"] if status == HealthStatus.DEGRADED else [],
        needs_reauth=status == HealthStatus.DEGRADED,
    )


def is_simulation_mode(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Check if INTEGRATION_MODE=simulated is set."""
    environ = os.environ if environ is None else environ
    return environ.get("INTEGRATION_MODE", "").lower() == "simulated"


class SimulatedSource(SourceAdapter):
    """Adapter serving synthetic data; seed it for deterministic output."""

    emoji = "🧪"

    def __init__(
        self,
        source: IntegrationSource,
        count: int = 15,
        seed: Optional[int] = None,
        status: HealthStatus = HealthStatus.HEALTHY,
        error: Optional[str] = None,
    ) -> None:
        self.source = IntegrationSource(source)
        self.name = f"{self.source.value.title()} (simulated)"
        self.count = count
        self.status = HealthStatus(status)
        self.error = error
        self.seed = random.randrange(SEED_RANGE) if seed is None else seed
        self._rng = random.Random(self.seed)

    async def check_health(self) -> IntegrationHealth:
        return generate_simulated_health(self.source, self.status, self.error, self._rng)

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Synthetic signals, limited to those at or after `since` when given."""
        if self.status in (HealthStatus.ERROR, HealthStatus.NOT_CONFIGURED):
            logger.warning("%s: simulated outage, no signals", self.name)
            return []

        signals = generate_simulated_signals(self.source, self.count, self.seed)
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            signals = [s for s in signals if s.timestamp >= since]
        return signals
