"""Asana source: incomplete tasks assigned to the user."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from signal_monitor.adapters.sources.dates import parse_date, parse_datetime
from signal_monitor.adapters.sources.task_classifier import build_task_url, classify_task
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

ASANA_API = "https://app.asana.com/api/1.0"

ASANA_REQUIRED_SCOPES = ["default"]

AUTH_ERROR_MARKERS = ("401", "unauthorized", "not authorized", "invalid token")

TASK_FIELDS = ",".join([
    "gid", "name", "notes", "completed", "due_on", "due_at",
    "assignee", "assignee.name", "assignee.email",
    "projects", "projects.gid", "projects.name",
    "tags", "tags.name", "permalink_url", "created_at", "modified_at",
])


class AsanaSource(SourceAdapter):
    """Fetch incomplete tasks assigned to the token's user.

    All incomplete tasks are fetched regardless of age: an old overdue task
    is still urgent.
    """

    source = IntegrationSource.ASANA
    emoji = "✅"
    name = "Asana"

    def __init__(
        self,
        token: str,
        max_workspaces: int = 10,
        page_size: int = 100,
        max_pages: int = 5,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token or not token.strip():
            raise ConfigurationError("Asana token cannot be empty")

        self.token = token.strip()
        self.max_workspaces = max_workspaces
        self.page_size = page_size
        self.max_pages = max_pages
        self.timeout = timeout
        self.transport = transport

    async def check_health(self) -> IntegrationHealth:
        """Verify the token with /users/me and read the first workspace."""
        try:
            async with self._client() as client:
                await self._request(client, "/users/me")
                workspaces = await self._request(client, "/workspaces")
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Asana health check failed: %s", message)
            return IntegrationHealth(
                source=self.source,
                connected=False,
                status=HealthStatus.ERROR,
                last_sync_success=False,
                last_sync_error=message,
                needs_reauth=is_auth_failure(message, AUTH_ERROR_MARKERS),
            )

        first = workspaces[0] if workspaces else {}
        now = datetime.now(timezone.utc)

        return IntegrationHealth(
            source=self.source,
            connected=True,
            status=HealthStatus.HEALTHY,
            workspace_name=first.get("name") or "Unknown",
            workspace_id=first.get("gid"),
            connected_at=now,
            last_sync_at=now,
            last_sync_success=True,
            signal_count=0,
            scopes=list(ASANA_REQUIRED_SCOPES),
            needs_reauth=False,
        )

    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch incomplete tasks, optionally only those modified since `since`."""
        now = datetime.now(timezone.utc)

        try:
            async with self._client() as client:
                user = await self._request(client, "/users/me")
                workspaces = await self._request(client, "/workspaces")
                workspaces = workspaces[: self.max_workspaces]

                per_workspace = await asyncio.gather(*(
                    self._fetch_workspace_tasks(client, ws["gid"], user["gid"], since)
                    for ws in workspaces
                ))
        except Exception as e:
            logger.error("Asana: failed to fetch signals: %s", e)
            return []

        signals: list[UnifiedSignal] = []
        for tasks in per_workspace:
            for raw in tasks:
                try:
                    signal = self.task_to_signal(self.parse_task(raw), now)
                except Exception as e:
                    logger.warning("Asana: skipping task %s: %s", raw.get("gid"), e)
                    continue
                if signal:
                    signals.append(signal)

        signals.sort(key=lambda s: s.timestamp, reverse=True)
        return signals

    async def _fetch_workspace_tasks(
        self,
        client: httpx.AsyncClient,
        workspace_gid: str,
        user_gid: str,
        since: Optional[datetime],
    ) -> list[dict[str, Any]]:
        """Fetch one workspace's tasks; failures only cost this workspace."""
        params: dict[str, Any] = {
            "workspace": workspace_gid,
            "assignee": user_gid,
            "completed_since": "now",
            "limit": self.page_size,
            "opt_fields": TASK_FIELDS,
        }
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            params["modified_since"] = since.isoformat()

        tasks: list[dict[str, Any]] = []
        try:
            for _ in range(self.max_pages):
                data, next_page = await self._request_page(client, "/tasks", params)
                tasks.extend(data)
                if not next_page or not next_page.get("offset"):
                    break
                params["offset"] = next_page["offset"]
        except Exception as e:
            logger.warning("Asana: failed to fetch tasks for workspace %s: %s", workspace_gid, e)

        return tasks

    def parse_task(self, raw: dict[str, Any]) -> TaskRecord:
        """Convert an API task payload into a TaskRecord."""
        projects = raw.get("projects") or []
        project = projects[0] if projects else {}
        assignee = raw.get("assignee") or {}

        return TaskRecord(
            id=raw["gid"],
            name=raw.get("name") or "",
            notes=raw.get("notes") or "",
            completed=bool(raw.get("completed")),
            due_on=parse_date(raw.get("due_on")),
            due_at=parse_datetime(raw.get("due_at")),
            tags=[t.get("name", "") for t in raw.get("tags") or [] if t.get("name")],
            project_id=project.get("gid"),
            project_name=project.get("name"),
            assignee_name=assignee.get("name"),
            assignee_email=assignee.get("email"),
            created_at=parse_datetime(raw.get("created_at")),
            modified_at=parse_datetime(raw.get("modified_at")),
            url=raw.get("permalink_url"),
        )

    def task_to_signal(self, task: TaskRecord, now: Optional[datetime] = None) -> Optional[UnifiedSignal]:
        """Classify a task and build its signal; completed tasks yield None."""
        classification = classify_task(task, now)
        if classification is None:
            return None

        timestamp = task.modified_at or task.created_at or datetime.now(timezone.utc)

        return UnifiedSignal(
            id=f"asana-{task.id}",
            source=self.source,
            source_id=task.id,
            category=classification.category,
            confidence=classification.confidence,
            title=task.name or "Untitled task",
            snippet=(task.notes or task.name)[:300],
            full_context=task.notes or None,
            owner=task.assignee_name,
            owner_email=task.assignee_email,
            timestamp=timestamp,
            deadline=task.deadline,
            # Works on every Asana tier, unlike permalink_url
            url=build_task_url(task.project_id, task.id),
            channel=task.project_name or "No Project",
            metadata={
                "project_id": task.project_id,
                "tags": task.tags,
                "permalink_url": task.url,
                "completed": task.completed,
            },
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        data, _ = await self._request_page(client, endpoint, params)
        return data

    async def _request_page(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> tuple[Any, Optional[dict[str, Any]]]:
        """GET an endpoint, returning (data, next_page)."""
        response = await client.get(f"{ASANA_API}{endpoint}", params=params or {})

        if response.status_code != 200:
            message = f"Asana API error: {response.status_code}"
            try:
                errors = response.json().get("errors") or []
                if errors and errors[0].get("message"):
                    message = f"{message} {errors[0]['message']}"
            except ValueError:
                pass
            raise SourceAPIError(message, response.status_code)

        payload = response.json()
        return payload.get("data"), payload.get("next_page")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> dict[str, str]:
        """Get headers for Asana API requests."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }
