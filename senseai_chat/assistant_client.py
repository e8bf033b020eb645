"""OpenAI Assistants API client (threads, messages, runs)."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import config
from .models import Run, ThreadMessage

logger = logging.getLogger(__name__)


class AssistantClient:
    """
    Async client for the small slice of the Assistants API a turn needs.

    Handles:
    - Thread creation
    - Appending user messages
    - Starting and retrieving runs
    - Listing thread messages

    HTTP failures propagate as ``httpx.HTTPError``; callers decide what a
    failure means for the turn.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else config.openai_api_key
        self.base_url = (base_url or config.openai_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or config.request_timeout, connect=10.0),
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "assistants=v2",
        }

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = await self.client.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            **kwargs,
        )
        resp.raise_for_status()
        return resp.json()

    async def create_thread(self) -> str:
        """Create an empty thread and return its id."""
        data = await self._request("POST", "/threads", json={})
        return data["id"]

    async def add_message(self, thread_id: str, content: str) -> None:
        """Append a user message to a thread."""
        await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            json={"role": "user", "content": content},
        )

    async def create_run(self, thread_id: str, assistant_id: str) -> Run:
        """Start the assistant against the thread's current contents."""
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/runs",
            json={"assistant_id": assistant_id},
        )
        return Run.model_validate(data)

    async def retrieve_run(self, thread_id: str, run_id: str) -> Run:
        """Fetch the current state of a run."""
        data = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")
        return Run.model_validate(data)

    async def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        """List thread messages, newest first."""
        data = await self._request(
            "GET",
            f"/threads/{thread_id}/messages",
            params={"order": "desc"},
        )
        return [ThreadMessage.model_validate(m) for m in data.get("data", [])]


# Global instance
assistant = AssistantClient()
