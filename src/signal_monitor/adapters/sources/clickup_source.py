"""ClickUp source: open tasks assigned to the token's user."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from signal_monitor.adapters.sources.dates import parse_unix_millis
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

CLICKUP_API = "https://api.clickup.com/api/v2"

AUTH_ERROR_MARKERS = ("401", "oauth_", "token invalid", "not authorized")

PRIORITY_TAGS = {
    "urgent": "urgent",
    "high": "high priority",
}

# Status names teams use for work that cannot move
BLOCKED_STATUS_WORDS = ("block", "wait")

CLOSED_STATUS_TYPES = ("closed", "done")


class ClickUpSource(SourceAdapter):
    """Fetch open tasks assigned to the token's user across its workspaces."""

    source = IntegrationSource.CLICKUP
    emoji = "🟣"
    name = "ClickUp"

    def __init__(
        self,
        token: str,
        max_workspaces: int = 10,
        max_pages: int = 5,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token or not token.strip():
            raise ConfigurationError("ClickUp token cannot be empty")

        self.token = token.strip()
        self.max_workspaces = max_workspaces
        self.max_pages = max_pages
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the token by listing the authorized workspaces."""
        try:
            async with self._client() as client:
                data = await self._request(client, "/team")
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("ClickUp health check failed: %s", message)
            return IntegrationHealth(
                source=self.source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=message,
                needs_reauth=is_auth_failure(message, AUTH_ERROR_MARKERS),
            )

        teams = data.get("teams") or []
        first = teams[0] if teams else {}
        now = datetime.now(timezone.utc)

        return IntegrationHealth(
            source=self.source,
            connected=True,
            status=HealthStatus.HEALTHY,
            workspace_name=first.get("name") or "Unknown",
            workspace_id=first.get("id"),
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            signal_count=0,
            needs_reauth=False,
        )

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch open assigned tasks, optionally only those updated since `since`."""
        now = datetime.now(timezone.utc)

        try:
            async with self._client() as client:
                user = (await self._request(client, "/user")).get("user") or {}
                teams = (await self._request(client, "/team")).get("teams") or []
                teams = teams[: self.max_workspaces]

                per_team = await asyncio.gather(*(
                    self._fetch_team_tasks(client, team["id"], user.get("id"), since)
                    for team in teams
                ))
        except Exception as e:
            logger.error("ClickUp: failed to fetch signals: %s", e)
            return []

        signals: list[UnifiedSignal] = []
        for tasks in per_team:
            for raw in tasks:
                try:
                    signal = self.task_to_signal(raw, now)
                except Exception as e:
                    logger.warning("ClickUp: skipping task %s: %s", raw.get("id"), e)
                    continue
                if signal:
                    signals.append(signal)

        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    async def _fetch_team_tasks(
        self,
        client: httpx.AsyncClient,
        team_id: str,
        user_id: Optional[int],
        since: Optional[datetime],
    ) -> list[dict[str, Any]]:
        """Fetch one workspace's tasks page by page; failures only cost this workspace."""
        params: dict[str, Any] = {
            "include_closed": "false",
            "subtasks": "true",
            "order_by": "updated",
        }
        if user_id is not None:
            params["assignees[]"] = user_id
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            params["date_updated_gt"] = int(since.timestamp() * 1000)

        tasks: list[dict[str, Any]] = []
        try:
            for page in range(self.max_pages):
                data = await self._request(client, f"/team/{team_id}/task", {**params, "page": page})
                batch = data.get("tasks") or []
                tasks.extend(batch)
                if not batch or data.get("last_page", True):
                    break
        except Exception as e:
            logger.warning("ClickUp: failed to fetch tasks for workspace %s: %s", team_id, e)

        return tasks

    def parse_task(self, raw: dict[str, Any]) -> TaskRecord:
        """Convert an API task payload into a TaskRecord.

        Priority and a blocked-looking status are folded into the tags so the
        shared task rules can see them.
        """
        status = raw.get("status") or {}
        status_name = (status.get("status") or "").lower()
        tags = [t.get("name", "") for t in raw.get("tags") or [] if t.get("name")]

        priority = ((raw.get("priority") or {}).get("priority") or "").lower()
        if priority in PRIORITY_TAGS:
            tags.append(PRIORITY_TAGS[priority])
        if any(word in status_name for word in BLOCKED_STATUS_WORDS):
            tags.append("blocked")

        task_list = raw.get("list") or {}
        assignees = raw.get("assignees") or []
        assignee = assignees[0] if assignees else {}

        return TaskRecord(
            id=raw["id"],
            name=raw.get("name") or "",
            notes=raw.get("description") or raw.get("text_content") or "",
            completed=status.get("type") in CLOSED_STATUS_TYPES,
            due_at=parse_unix_millis(raw.get("due_date")),
            tags=tags,
            project_id=task_list.get("id"),
            project_name=task_list.get("name"),
            assignee_name=assignee.get("username"),
            assignee_email=assignee.get("email"),
            created_at=parse_unix_millis(raw.get("date_created")),
            modified_at=parse_unix_millis(raw.get("date_updated")),
            url=raw.get("url"),
        )

    def task_to_signal(self, raw: dict[str, Any], now: Optional[datetime] = None) -> Optional[UnifiedSignal]:
        """Classify a task and build its signal; closed tasks yield None."""
        task = self.parse_task(raw)
        classification = classify_task(task, now)
        if classification is None:
            return None

        status = raw.get("status") or {}

        return UnifiedSignal(
            id=f"clickup-{task.id}",
            source=self.source,
            source_id=task.id,
            category=classification.category,
            confidence=classification.confidence,
            title=task.name or "Untitled task",
            snippet=(task.notes or task.name)[:300],
            full_context=task.notes or None,
            owner=task.assignee_name,
            owner_email=task.assignee_email,
            timestamp=task.modified_at or task.created_at or datetime.now(timezone.utc),
            deadline=task.deadline,
            url=task.url or f"https://app.clickup.com/t/{task.id}",
            channel=task.project_name or "ClickUp",
            metadata={
                "list_id": task.project_id,
                "status": status.get("status"),
                "priority": (raw.get("priority") or {}).get("priority"),
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
        response = await client.get(f"{CLICKUP_API}{endpoint}", params=params or {})

        if response.status_code != 200:
            message = f"ClickUp API error: {response.status_code}"
            try:
                detail = response.json().get("err")
            except ValueError:
                detail = None
            raise SourceAPIError(f"{message} {detail}" if detail else message, response.status_code)

        return response.json()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> dict[str, str]:
        """Get headers for ClickUp API requests (personal tokens are sent bare)."""
        return {
            "Authorization": self.token,
            "Accept": "application/json",
        }
