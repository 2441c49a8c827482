"""Jira source: unresolved issues assigned to or watched by the user."""

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

SEARCH_ENDPOINT = "/rest/api/3/search/jql"

AUTH_ERROR_MARKERS = ("401", "403", "unauthorized", "not authorized", "authentication")

ISSUE_FIELDS = ",".join([
    "summary", "description", "status", "priority", "assignee",
    "project", "created", "updated", "duedate", "labels", "issuetype",
])

BASE_JQL = "(assignee = currentUser() OR watcher = currentUser()) AND statusCategory != Done"

PRIORITY_TAGS = {
    "highest": "urgent",
    "blocker": "urgent",
    "critical": "urgent",
    "high": "high priority",
}

BLOCKED_STATUS_WORDS = ("block", "impediment")

JIRA_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
    """Jira timestamps carry a `+0000` style offset."""
    if not value:
        return None
    try:
        return datetime.strptime(value, JIRA_DATETIME_FORMAT)
    except ValueError:
        return parse_datetime(value)


def adf_to_text(node: Any) -> str:
    """Flatten an Atlassian Document Format body into plain text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node

    parts: list[str] = []
    if node.get("type") == "text":
        parts.append(node.get("text") or "")
    elif node.get("type") == "mention":
        parts.append((node.get("attrs") or {}).get("text") or "")

    for child in node.get("content") or []:
        parts.append(adf_to_text(child))

    separator = "\n" if node.get("type") == "doc" else ""
    return separator.join(part for part in parts if part)


class JiraSource(SourceAdapter):
    """Fetch unresolved Jira Cloud issues for the API token's user."""

    source = IntegrationSource.JIRA
    emoji = "🎫"
    name = "Jira"

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        max_issues: int = 100,
        max_pages: int = 3,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not base_url or not base_url.strip().startswith("https://"):
            raise ConfigurationError("Jira base URL must start with 'https://'")
        if not email or "@" not in email:
            raise ConfigurationError("Jira email must be an email address")
        if not api_token or not api_token.strip():
            raise ConfigurationError("Jira API token cannot be empty")

        self.base_url = base_url.strip().rstrip("/")
        self.email = email.strip()
        self.api_token = api_token.strip()
        self.max_issues = max_issues
        self.max_pages = max_pages
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the credentials with /myself and read the site title."""
        try:
            async with self._client() as client:
                await self._request(client, "/rest/api/3/myself")
                server = await self._request(client, "/rest/api/3/serverInfo")
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Jira health check failed: %s", message)
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
            workspace_name=server.get("serverTitle") or "Unknown",
            workspace_id=server.get("baseUrl") or self.base_url,
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            signal_count=0,
            needs_reauth=False,
        )

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch unresolved issues, optionally only those updated since `since`."""
        params: dict[str, Any] = {
            "jql": self.build_jql(since),
            "maxResults": self.max_issues,
            "fields": ISSUE_FIELDS,
        }

        issues: list[dict[str, Any]] = []
        try:
            async with self._client() as client:
                for _ in range(self.max_pages):
                    data = await self._request(client, SEARCH_ENDPOINT, params)
                    issues.extend(data.get("issues") or [])
                    token = data.get("nextPageToken")
                    if data.get("isLast", True) or not token:
                        break
                    params["nextPageToken"] = token
        except Exception as e:
            logger.error("Jira: failed to fetch signals: %s", e)
            return []

        now = datetime.now(timezone.utc)
        signals: list[UnifiedSignal] = []
        for issue in issues:
            try:
                signal = self.issue_to_signal(issue, now)
            except Exception as e:
                logger.warning("Jira: skipping issue %s: %s", issue.get("key"), e)
                continue
            if signal:
                signals.append(signal)

        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    def build_jql(self, since: Optional[datetime] = None) -> str:
        jql = BASE_JQL
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            jql += f' AND updated >= "{since.astimezone(timezone.utc):%Y-%m-%d %H:%M}"'
        return jql + " ORDER BY updated DESC"

    def parse_issue(self, issue: dict[str, Any]) -> TaskRecord:
        """Convert a search result into a TaskRecord.

        Priority and a blocked status or label are folded into the tags so the
        shared task rules can see them.
        """
        fields = issue.get("fields") or {}
        status = fields.get("status") or {}
        status_name = (status.get("name") or "").lower()
        labels = [label for label in fields.get("labels") or [] if label]
        tags = list(labels)

        priority = ((fields.get("priority") or {}).get("name") or "").lower()
        if priority in PRIORITY_TAGS:
            tags.append(PRIORITY_TAGS[priority])
        if any(word in status_name for word in BLOCKED_STATUS_WORDS) or any(
            "blocked" in label.lower() for label in labels
        ):
            tags.append("blocked")

        project = fields.get("project") or {}
        assignee = fields.get("assignee") or {}
        key = issue.get("key") or issue["id"]

        return TaskRecord(
            id=issue["id"],
            name=fields.get("summary") or "",
            notes=adf_to_text(fields.get("description")),
            completed=(status.get("statusCategory") or {}).get("key") == "done",
            due_on=parse_date(fields.get("duedate")),
            tags=tags,
            project_id=project.get("id"),
            project_name=project.get("name"),
            assignee_name=assignee.get("displayName"),
            assignee_email=assignee.get("emailAddress"),
            created_at=parse_jira_datetime(fields.get("created")),
            modified_at=parse_jira_datetime(fields.get("updated")),
            url=f"{self.base_url}/browse/{key}",
        )

    def issue_to_signal(self, issue: dict[str, Any], now: Optional[datetime] = None) -> Optional[UnifiedSignal]:
        """Classify an issue and build its signal; done issues yield None."""
        task = self.parse_issue(issue)
        classification = classify_task(task, now)
        if classification is None:
            return None

        fields = issue.get("fields") or {}
        key = issue.get("key") or task.id

        return UnifiedSignal(
            id=f"jira-{task.id}",
            source=self.source,
            source_id=key,
            category=classification.category,
            confidence=classification.confidence,
            title=f"{key}: {task.name}",
            snippet=(task.notes or task.name)[:300],
            full_context=task.notes or None,
            owner=task.assignee_name,
            owner_email=task.assignee_email,
            timestamp=task.modified_at or task.created_at or datetime.now(timezone.utc),
            deadline=task.deadline,
            url=task.url,
            channel=task.project_name or "Jira",
            metadata={
                "key": key,
                "status": (fields.get("status") or {}).get("name"),
                "priority": (fields.get("priority") or {}).get("name"),
                "issue_type": (fields.get("issuetype") or {}).get("name"),
                "tags": task.tags,
            },
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """GET an endpoint, raising SourceAPIError on a non-200 response."""
        response = await client.get(f"{self.base_url}{endpoint}", params=params or {})

        if response.status_code != 200:
            message = f"Jira API error: {response.status_code}"
            try:
                errors = response.json().get("errorMessages") or []
            except ValueError:
                errors = []
            raise SourceAPIError(f"{message} {errors[0]}" if errors else message, response.status_code)

        return response.json()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            auth=(self.email, self.api_token),
            headers={"Accept": "application/json"},
        )
