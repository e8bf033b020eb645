"""Shared fixtures: an in-memory Assistants API and wired-up clients.

The fake provider is served through ``httpx.MockTransport`` so the real
``AssistantClient`` code path (URLs, headers, JSON) is exercised.
"""

import itertools
import json
import re
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from senseai_chat.assistant_client import AssistantClient
from senseai_chat.config import Config
from senseai_chat.turn import AssistantOrchestrator

PROVIDER_URL = "https://api.test/v1"
ASSISTANT_ID = "asst_test"

ROUTES = [
    ("POST", re.compile(r"^/v1/threads$"), "create_thread"),
    ("POST", re.compile(r"^/v1/threads/(?P<thread>[^/]+)/messages$"), "add_message"),
    ("GET", re.compile(r"^/v1/threads/(?P<thread>[^/]+)/messages$"), "list_messages"),
    ("POST", re.compile(r"^/v1/threads/(?P<thread>[^/]+)/runs$"), "create_run"),
    ("GET", re.compile(r"^/v1/threads/(?P<thread>[^/]+)/runs/(?P<run>[^/]+)$"), "retrieve_run"),
]


def text_block(value: str) -> Dict[str, Any]:
    return {"type": "text", "text": {"value": value, "annotations": []}}


class FakeAssistantAPI:
    """
    Minimal stateful stand-in for the provider.

    ``statuses`` is the sequence a new run reports: the first value on
    creation, then one value per retrieve (the last value repeats).
    When a run is reported ``completed`` the assistant message holding
    ``reply_content`` is added to its thread.
    """

    def __init__(self, reply: str = "Photosynthesis turns light into chemical energy."):
        self.reply_content: Optional[List[Dict[str, Any]]] = [text_block(reply)]
        self.statuses: List[str] = ["queued", "in_progress", "completed"]
        self.last_error: Optional[Dict[str, Any]] = None
        self.failures: Dict[str, int] = {}

        self.calls: List[str] = []
        self.requests: List[httpx.Request] = []
        self.threads: Dict[str, List[Dict[str, Any]]] = {}
        self.runs: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, op: str) -> int:
        return self.calls.count(op)

    def handler(self, request: httpx.Request) -> httpx.Response:
        for method, pattern, op in ROUTES:
            match = pattern.match(request.url.path)
            if request.method == method and match:
                self.calls.append(op)
                self.requests.append(request)
                if op in self.failures:
                    return httpx.Response(self.failures[op], json={"error": {"message": f"{op} failed"}})
                return getattr(self, f"_{op}")(request, **match.groupdict())
        return httpx.Response(404, json={"error": {"message": "not found"}})

    def _create_thread(self, request):
        thread_id = f"thread_{next(self._ids)}"
        self.threads[thread_id] = []
        return httpx.Response(200, json={"id": thread_id, "object": "thread"})

    def _add_message(self, request, thread):
        data = json.loads(request.content)
        message = {
            "id": f"msg_{next(self._ids)}",
            "role": data["role"],
            "run_id": None,
            "content": [text_block(data["content"])],
        }
        self.threads.setdefault(thread, []).append(message)
        return httpx.Response(200, json=message)

    def _list_messages(self, request, thread):
        newest_first = list(reversed(self.threads.get(thread, [])))
        return httpx.Response(200, json={"object": "list", "data": newest_first})

    def _create_run(self, request, thread):
        run = {
            "id": f"run_{next(self._ids)}",
            "thread_id": thread,
            "status": None,
            "last_error": None,
            "_statuses": list(self.statuses),
        }
        self.runs[run["id"]] = run
        self._advance(run)
        return httpx.Response(200, json=self._public(run))

    def _retrieve_run(self, request, thread, run):
        record = self.runs[run]
        self._advance(record)
        return httpx.Response(200, json=self._public(record))

    def _advance(self, run):
        statuses = run["_statuses"]
        status = statuses.pop(0) if len(statuses) > 1 else statuses[0]
        if status == run["status"]:
            return
        run["status"] = status
        if status == "failed":
            run["last_error"] = self.last_error
        if status == "completed" and self.reply_content is not None:
            self.threads.setdefault(run["thread_id"], []).append({
                "id": f"msg_{next(self._ids)}",
                "role": "assistant",
                "run_id": run["id"],
                "content": self.reply_content,
            })

    @staticmethod
    def _public(run):
        return {k: v for k, v in run.items() if not k.startswith("_")}


class RecordingSleep:
    """Awaitable sleep replacement that returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_api() -> FakeAssistantAPI:
    return FakeAssistantAPI()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def assistant_client(fake_api: FakeAssistantAPI) -> AsyncGenerator[AssistantClient, None]:
    client = AssistantClient(api_key="sk-test", base_url=PROVIDER_URL, transport=fake_api.transport)
    yield client
    await client.close()


@pytest.fixture
def orchestrator(assistant_client: AssistantClient, sleep: RecordingSleep) -> AssistantOrchestrator:
    return AssistantOrchestrator(
        assistant_client,
        assistant_id=ASSISTANT_ID,
        poll_interval=1.0,
        max_poll_attempts=30,
        chunk_delay=0.05,
        sleep=sleep,
    )


@pytest.fixture
def settings() -> Config:
    return Config(openai_api_key="sk-test", assistant_id=ASSISTANT_ID)


@pytest.fixture
def app(orchestrator: AssistantOrchestrator, settings: Config):
    from senseai_chat.api import get_orchestrator, get_settings
    from senseai_chat.main import app

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_settings] = lambda: settings
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def http(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the FastAPI app in-process."""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
