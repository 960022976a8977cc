"""SIM implementation - hardcoded task-status scenario."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Protocol

import httpx

from task_manager.logging_config import get_logger
from task_manager.tracing import TraceContextManager
from task_manager.tracker import ITracker

logger = get_logger(__name__)


class ISim(Protocol):
    """Generate test traffic for the task-status topic."""

    async def start(self) -> None:
        """Start hardcoded scenario."""
        ...

    async def stop(self) -> None:
        """Stop scenario."""
        ...


NEW_TASKS = [
    {
        "id": "sim-task-1",
        "body": {
            "user_email": "alice@example.com",
            "user_query": "Collect pricing pages",
            "base_url": "https://example.com",
        },
    },
    {
        "id": "sim-task-2",
        "body": {
            "user_email": "bob@example.org",
            "user_query": "Find the changelog",
            "base_url": "https://example.org/docs",
        },
    },
]


class Sim:
    """SIM with hardcoded scenario for testing."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        tracker: ITracker | None = None,
        delay_seconds: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url
        self._tracker = tracker
        self._delay = delay_seconds
        self._running = False
        self._task: asyncio.Task | None = None
        self._client = client
        self._owns_client = client is None
        self._trace_manager = TraceContextManager()
        self.sent = 0

    def set_tracker(self, tracker: ITracker) -> None:
        """Inject tracker for SIM trace events."""
        self._tracker = tracker

    async def start(self) -> None:
        """Start hardcoded scenario."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._api_url)

        # Start background task
        self._task = asyncio.create_task(self.run_scenario())

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def run_scenario(self) -> None:
        """Publish new tasks, their updates, and a few bad messages."""
        self._running = True
        try:
            await self._track("sim_started", {"scenario": "hardcoded", "new_tasks": len(NEW_TASKS)})

            for task in NEW_TASKS:
                await self._send(task["id"], "new", task["body"])
            await asyncio.sleep(self._delay)

            created = await self._created_task_ids()
            first, second = (created.get(t["id"]) for t in NEW_TASKS)
            if first:
                await self._send(first, "completed", {"crawl_result": "3 pages collected"})
            if second:
                await self._send(second, "error", {"error": "Crawler timed out"})

            # Unknown task, unknown status, malformed body
            await self._send("sim-missing", "completed", {"crawl_result": "orphan result"})
            await self._send("sim-task-3", "archived", {})
            await self._send(
                "sim-task-4",
                "new",
                {"user_email": "not-an-email", "user_query": "", "base_url": "ftp://example.com"},
            )
            await self._send("sim-task-5", "new", "{not json")

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)
        finally:
            self._running = False
            await self._track("sim_completed", {"scenario": "hardcoded", "sent": self.sent})

    async def _send(self, task_id: str, status: str, body: dict | str) -> None:
        """Publish one task-status message via HTTP API."""
        if not self._running or not self._client:
            return

        context = self._trace_manager.continue_or_create(None)
        headers = self._trace_manager.inject(
            {
                "id": task_id,
                "status": status,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "correlation_id": f"sim-{task_id}",
            },
            context,
        )

        try:
            response = await self._client.post(
                "/api/messages",
                json={
                    "key": task_id,
                    "headers": headers,
                    "body": body if isinstance(body, str) else json.dumps(body),
                },
                timeout=10.0,
            )
            if response.status_code == 202:
                self.sent += 1
                logger.info("SIM: %s %s -> %s", status, task_id, response.json())
            else:
                logger.error("SIM: Error publishing message: %s", response.status_code)
        except httpx.HTTPError as e:
            logger.error("SIM: Failed to publish message: %s", e)

    async def _created_task_ids(self) -> dict[str, str]:
        """Map message ids to task ids assigned by the task port."""
        if not self._client:
            return {}
        try:
            response = await self._client.get(
                "/api/trace-events", params={"event_type": "task_created", "limit": 1000}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("SIM: Failed to read created tasks: %s", e)
            return {}
        return {
            event["data"]["message_task_id"]: event["data"]["task_id"]
            for event in response.json()
        }

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type, "sim", data)
