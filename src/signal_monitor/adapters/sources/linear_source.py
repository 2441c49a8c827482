"""Linear source: open issues assigned to the viewer (GraphQL API)."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from signal_monitor.adapters.sources.dates import parse_date, parse_datetime
from signal_monitor.adapters.sources.task_classifier import classify_task
from signal_monitor.core import (
    ConfigurationError,
    HealthStatus,
    IntegrationHealth,
    IntegrationSource,
    SourceAdapter,
    SourceAPIError,
    TaskRecord,
    UnifiedSignal,
    is_auth_failure,
)

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"

AUTH_ERROR_MARKERS = ("401", "authentication", "not authenticated", "invalid api key")

# 1 = Urgent, 2 = High, 3 = Normal, 4 = Low, 0 = No priority
PRIORITY_TAGS = {
    1: "urgent",
    2: "high priority",
}

CLOSED_STATE_TYPES = ("completed", "canceled")

VIEWER_QUERY = """
query Viewer {
  viewer { id name email }
  organization { id name }
}
"""

ASSIGNED_ISSUES_QUERY = """
query AssignedIssues($filter: IssueFilter, $first: Int) {
  viewer {
    assignedIssues(filter: $filter, orderBy: updatedAt, first: $first) {
      nodes {
        id
        identifier
        title
        description
        priority
        priorityLabel
        dueDate
        url
        createdAt
        updatedAt
        state { id name type }
        assignee { id name email }
        project { id name }
        team { id name key }
        labels { nodes { id name } }
      }
    }
  }
}
"""


class LinearSource(SourceAdapter):
    """Fetch open issues assigned to the API key's user."""

    source = IntegrationSource.LINEAR
    emoji = "📐"
    name = "Linear"

    def __init__(
        self,
        api_key: str,
        max_issues: int = 50,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError("Linear API key cannot be empty")

        self.api_key = api_key.strip()
        self.max_issues = max_issues
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the key by reading the viewer and organization."""
        try:
            async with self._client() as client:
                data = await self._query(client, VIEWER_QUERY)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Linear health check failed: %s", message)
            return IntegrationHealth(
                source=self.source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=message,
                needs_reauth=is_auth_failure(message, AUTH_ERROR_MARKERS),
            )

        organization = data.get("organization") or {}
        now = datetime.now(timezone.utc)

        return IntegrationHealth(
            source=self.source,
            connected=True,
            status=HealthStatus.HEALTHY,
            workspace_name=organization.get("name") or "Unknown",
            workspace_id=organization.get("id"),
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            scopes=["read"],
            needs_reauth=False,
        )

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch open assigned issues, optionally only those updated since `since`."""
        issue_filter: dict[str, Any] = {"state": {"type": {"nin": list(CLOSED_STATE_TYPES)}}}
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            issue_filter["updatedAt"] = {"gte": since.isoformat()}

        try:
            async with self._client() as client:
                data = await self._query(
                    client,
                    ASSIGNED_ISSUES_QUERY,
                    {"filter": issue_filter, "first": self.max_issues},
                )
        except Exception as e:
            logger.error("Linear: failed to fetch signals: %s", e)
            return []

        nodes = ((data.get("viewer") or {}).get("assignedIssues") or {}).get("nodes") or []
        now = datetime.now(timezone.utc)

        signals: list[UnifiedSignal] = []
        for issue in nodes:
            try:
                signal = self.issue_to_signal(issue, now)
            except Exception as e:
                logger.warning("Linear: skipping issue %s: %s", issue.get("identifier"), e)
                continue
            if signal:
                signals.append(signal)

        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    def parse_issue(self, issue: dict[str, Any]) -> TaskRecord:
        """Convert a GraphQL issue node into a TaskRecord."""
        state = issue.get("state") or {}
        labels = [label.get("name", "") for label in (issue.get("labels") or {}).get("nodes") or []]
        tags = [label for label in labels if label]
        priority_tag = PRIORITY_TAGS.get(issue.get("priority") or 0)
        if priority_tag:
            tags.append(priority_tag)

        project = issue.get("project") or {}
        team = issue.get("team") or {}
        assignee = issue.get("assignee") or {}

        return TaskRecord(
            id=issue["id"],
            name=issue.get("title") or "",
            notes=issue.get("description") or "",
            completed=state.get("type") in CLOSED_STATE_TYPES,
            due_on=parse_date(issue.get("dueDate")),
            tags=tags,
            project_id=project.get("id") or team.get("id"),
            project_name=project.get("name") or team.get("name"),
            assignee_name=assignee.get("name"),
            assignee_email=assignee.get("email"),
            created_at=parse_datetime(issue.get("createdAt")),
            modified_at=parse_datetime(issue.get("updatedAt")),
            url=issue.get("url"),
        )

    def issue_to_signal(self, issue: dict[str, Any], now: Optional[datetime] = None) -> Optional[UnifiedSignal]:
        """Classify an issue and build its signal; closed issues yield None."""
        task = self.parse_issue(issue)
        classification = classify_task(task, now)
        if classification is None:
            return None

        identifier = issue.get("identifier") or task.id
        state = issue.get("state") or {}

        return UnifiedSignal(
            id=f"linear-{task.id}",
            source=self.source,
            source_id=identifier,
            category=classification.category,
            confidence=classification.confidence,
            title=f"{identifier}: {task.name}",
            snippet=(task.notes or task.name)[:300],
            full_context=task.notes or None,
            owner=task.assignee_name,
            owner_email=task.assignee_email,
            timestamp=task.modified_at or task.created_at or datetime.now(timezone.utc),
            deadline=task.deadline,
            url=task.url or f"https://linear.app/issue/{identifier}",
            channel=task.project_name or "Linear",
            metadata={
                "identifier": identifier,
                "priority": issue.get("priority"),
                "priority_label": issue.get("priorityLabel"),
                "state": state.get("name"),
                "tags": task.tags,
            },
        )

    async def _query(
        self,
        client: httpx.AsyncClient,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Run a GraphQL query, raising SourceAPIError on HTTP or GraphQL errors."""
        response = await client.post(
            LINEAR_API_URL,
            json={"query": query, "variables": variables or {}},
        )

        try:
            result = response.json()
        except ValueError:
            result = {}

        errors = result.get("errors") or []
        detail = errors[0].get("message") if errors else None

        if response.status_code != 200:
            message = f"Linear API error: {response.status_code}"
            raise SourceAPIError(f"{message} {detail}" if detail else message, response.status_code)
        if errors:
            raise SourceAPIError(detail or "Linear API error", response.status_code)

        return result.get("data") or {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> dict[str, str]:
        """Get headers for Linear API requests."""
        return {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }
