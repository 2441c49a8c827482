"""Core domain entities."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

TITLE_MAX_LENGTH = 100
SNIPPET_MAX_LENGTH = 300


class IntegrationSource(str, Enum):
    """Identifier of an external tool."""

    SLACK = "slack"
    ASANA = "asana"
    LINEAR = "linear"
    CLICKUP = "clickup"
    JIRA = "jira"
    NOTION = "notion"
    GITHUB = "github"
    TEAMS = "teams"
    WHATSAPP = "whatsapp"


class SignalCategory(str, Enum):
    """Closed taxonomy of signal categories."""

    COMMITMENT = "commitment"
    DEADLINE = "deadline"
    MENTION = "mention"
    QUESTION = "question"
    BLOCKER = "blocker"
    DECISION = "decision"
    ESCALATION = "escalation"
    UPDATE = "update"


class HealthStatus(str, Enum):
    """Connectivity state of an integration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


class CoverageLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def truncate(text: str, limit: int) -> str:
    """Cut text to `limit` characters, ending with an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class Classification:
    """Result of classifying one message or task."""

    category: SignalCategory
    confidence: float

    def __post_init__(self) -> None:
        self.category = SignalCategory(self.category)
        self.confidence = clamp_confidence(self.confidence)


@dataclass
class UnifiedSignal:
    """One actionable item, normalized regardless of the tool it came from."""

    id: str
    source: IntegrationSource
    source_id: str
    category: SignalCategory
    confidence: float
    title: str
    snippet: str
    timestamp: datetime
    url: str
    full_context: Optional[str] = None
    owner: Optional[str] = None
    owner_email: Optional[str] = None
    sender: Optional[str] = None
    sender_email: Optional[str] = None
    deadline: Optional[datetime] = None
    channel: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ID cannot be empty")
        if not self.url:
            raise ValueError("URL cannot be empty")

        self.source = IntegrationSource(self.source)
        self.category = SignalCategory(self.category)
        self.confidence = clamp_confidence(self.confidence)
        self.title = truncate(self.title, TITLE_MAX_LENGTH)
        self.snippet = self.snippet[:SNIPPET_MAX_LENGTH]
        self.timestamp = ensure_utc(self.timestamp)
        if self.deadline is not None:
            self.deadline = ensure_utc(self.deadline)

    def to_dict(self) -> dict[str, Any]:
        """Serializable representation with ISO-8601 timestamps."""
        return {
            "id": self.id,
            "source": self.source.value,
            "source_id": self.source_id,
            "category": self.category.value,
            "confidence": round(self.confidence, 3),
            "title": self.title,
            "snippet": self.snippet,
            "full_context": self.full_context,
            "owner": self.owner,
            "owner_email": self.owner_email,
            "sender": self.sender,
            "sender_email": self.sender_email,
            "timestamp": self.timestamp.isoformat(),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "url": self.url,
            "channel": self.channel,
            "metadata": self.metadata,
        }


@dataclass
class IntegrationHealth:
    """Connectivity state of one adapter at a point in time."""

    source: IntegrationSource
    connected: bool
    status: HealthStatus
    workspace_name: Optional[str] = None
    workspace_id: Optional[str] = None
    connected_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None
    last_sync_success: Optional[bool] = None
    last_sync_error: Optional[str] = None
    signal_count: Optional[int] = None
    scopes: list[str] = field(default_factory=list)
    missing_scopes: list[str] = field(default_factory=list)
    needs_reauth: bool = False

    def __post_init__(self) -> None:
        self.source = IntegrationSource(self.source)
        self.status = HealthStatus(self.status)

        if self.status in (HealthStatus.ERROR, HealthStatus.NOT_CONFIGURED) and self.connected:
            raise ValueError(f"Status '{self.status.value}' cannot be connected")
        if self.status == HealthStatus.DEGRADED:
            if not self.connected:
                raise ValueError("Degraded integration must be connected")
            if not self.missing_scopes:
                raise ValueError("Degraded integration must list missing scopes")

    @property
    def action_prompt(self) -> Optional[str]:
        """What the user should do about this integration, if anything."""
        if self.status == HealthStatus.ERROR:
            return "Reconnect this integration"
        if self.status == HealthStatus.DEGRADED:
            return "Grant additional permissions"
        if self.status == HealthStatus.NOT_CONFIGURED:
            return "Connect this integration"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "connected": self.connected,
            "status": self.status.value,
            "workspace_name": self.workspace_name,
            "workspace_id": self.workspace_id,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "last_sync_success": self.last_sync_success,
            "last_sync_error": self.last_sync_error,
            "signal_count": self.signal_count,
            "scopes": list(self.scopes),
            "missing_scopes": list(self.missing_scopes),
            "needs_reauth": self.needs_reauth,
            "action_prompt": self.action_prompt,
        }


@dataclass
class CoverageAssessment:
    """How much of the user's workspace is visible through connected tools."""

    overall: CoverageLevel
    percentage: int
    communication_coverage: int
    task_coverage: int
    connected_tools: list[IntegrationSource]
    missing_tools: list[IntegrationSource]
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall.value,
            "percentage": self.percentage,
            "communication_coverage": self.communication_coverage,
            "task_coverage": self.task_coverage,
            "connected_tools": [s.value for s in self.connected_tools],
            "missing_tools": [s.value for s in self.missing_tools],
            "message": self.message,
        }


@dataclass
class TaskRecord:
    """Tracker-neutral view of a task or issue, as consumed by the task classifier."""

    id: str
    name: str
    notes: str = ""
    completed: bool = False
    due_on: Optional[date] = None
    due_at: Optional[datetime] = None
    tags: list[str] = field(default_factory=list)
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    assignee_name: Optional[str] = None
    assignee_email: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    url: Optional[str] = None

    @property
    def has_due_date(self) -> bool:
        return self.due_on is not None or self.due_at is not None

    @property
    def deadline(self) -> Optional[datetime]:
        """Due time as an aware datetime (date-only due dates become midnight UTC)."""
        if self.due_at is not None:
            return ensure_utc(self.due_at)
        if self.due_on is not None:
            return datetime(self.due_on.year, self.due_on.month, self.due_on.day, tzinfo=timezone.utc)
        return None
