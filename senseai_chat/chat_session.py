"""
Client-side conversation state for the assistant chat endpoint.

A ``ChatSession`` owns one conversation: the visible message list, a
loading flag, the last error and the provider thread id. Every change
produces a new immutable ``ConversationState`` snapshot and is pushed to
subscribers, so a UI can render from snapshots alone.

Each session tracks a single current request. A new ``send`` replaces
the tracked request; a replaced request may still finish, but it only
touches the assistant message it created.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

import httpx

from .models import CHAT_PATH, ChunkFrame, CompleteFrame, HealthStatus
from .stream import FrameDecoder

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I'm SenseAI, your academic doubt-solving companion. Ask me any question "
    "and I'll provide step-by-step explanations to transform your doubts into "
    "crystal-clear understanding."
)

NETWORK_ERROR = "Unable to reach the assistant. Check your connection and try again."


@dataclass(frozen=True)
class ChatMessage:
    """One message as shown in the conversation."""
    id: int
    content: str
    is_user: bool
    timestamp: datetime = field(default_factory=datetime.now)
    is_streaming: bool = False


@dataclass(frozen=True)
class ConversationState:
    """Snapshot of a conversation."""
    messages: Tuple[ChatMessage, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None
    thread_id: Optional[str] = None


def initial_state(greeting: str = GREETING) -> ConversationState:
    return ConversationState(messages=(ChatMessage(id=1, content=greeting, is_user=False),))


Listener = Callable[[ConversationState], Any]


class TurnFailed(Exception):
    """A turn ended with an error meant for the user."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def _http_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return data["error"]
    return f"HTTP {response.status_code}: {response.reason_phrase}"


class ChatSession:
    """
    One conversation with the assistant endpoint.

    Operations:
    - send: optimistic user message, then a streamed or whole reply
    - cancel: abort the current request without reporting an error
    - retry_last_message: drop output after the last user message, resend it
    - clear: back to the greeting with no thread (does not cancel)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = "http://localhost:8000",
        endpoint: str = CHAT_PATH,
        greeting: str = GREETING,
    ):
        self._owns_client = client is None
        # No client-side timeout: a stalled reply waits until cancelled
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=None)
        self.endpoint = endpoint
        self.greeting = greeting

        self._state = initial_state(greeting)
        self._listeners: List[Listener] = []
        self._ids = itertools.count(2)
        self._inflight: Optional[asyncio.Task] = None

    async def aclose(self):
        """Close the HTTP client if this session created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> ConversationState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def _append_message(self, message: ChatMessage) -> None:
        self._set(messages=self._state.messages + (message,))

    def _update_message(self, message_id: int, **changes) -> None:
        self._set(messages=tuple(
            replace(m, **changes) if m.id == message_id else m
            for m in self._state.messages
        ))

    def _remove_message(self, message_id: int) -> None:
        self._set(messages=tuple(m for m in self._state.messages if m.id != message_id))

    def _is_current(self, turn: Optional[asyncio.Task]) -> bool:
        return turn is not None and self._inflight is turn

    # =========================================================================
    # Operations
    # =========================================================================

    async def send(self, message: str, enable_streaming: bool = True) -> None:
        """
        Send a user message and wait for the turn to settle.

        Never raises for turn failures; they land in ``state.error``.
        """
        content = message.strip()
        if not content:
            return

        user_message = ChatMessage(id=next(self._ids), content=content, is_user=True)
        self._set(
            messages=self._state.messages + (user_message,),
            is_loading=True,
            error=None,
        )
        await self._dispatch(content, enable_streaming)

    def cancel(self) -> None:
        """Abort the current request. Takes effect at its next pending read."""
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None
        self._set(is_loading=False)

    async def retry_last_message(self, enable_streaming: bool = True) -> None:
        """
        Drop everything after the most recent user message, then ``send`` it again.

        ``send`` appends the message anew, so the resent turn shows up as a
        fresh user message. No-op while loading or before any user message.
        """
        if self._state.is_loading:
            return

        messages = self._state.messages
        index = next(
            (i for i in range(len(messages) - 1, -1, -1) if messages[i].is_user),
            None,
        )
        if index is None:
            return

        last_user = messages[index]
        self._set(messages=messages[:index + 1])
        await self.send(last_user.content, enable_streaming)

    def clear(self) -> None:
        """
        Reset to the greeting.

        Call ``cancel`` first if a request is outstanding, otherwise its
        completion can restore the old thread id.
        """
        self._set(**vars(initial_state(self.greeting)))

    async def check_health(self) -> HealthStatus:
        """Ask the endpoint whether the provider is configured."""
        resp = await self.client.get(self.endpoint)
        resp.raise_for_status()
        return HealthStatus.model_validate(resp.json())

    # =========================================================================
    # Request lifecycle
    # =========================================================================

    async def _dispatch(self, content: str, enable_streaming: bool) -> None:
        turn = asyncio.ensure_future(
            self._exchange(content, self._state.thread_id, enable_streaming)
        )
        self._inflight = turn
        try:
            await turn
        except asyncio.CancelledError:
            # Our own caller being cancelled is not a user abort
            if asyncio.current_task().cancelling():
                raise
            logger.info("Chat request cancelled")
        finally:
            if self._inflight is turn:
                self._inflight = None

    async def _exchange(self, content: str, thread_id: Optional[str], enable_streaming: bool) -> None:
        turn = asyncio.current_task()

        payload = {"message": content}
        if thread_id:
            payload["threadId"] = thread_id

        headers = {"Accept": "text/plain"} if enable_streaming else {"Accept": "application/json"}

        try:
            async with self.client.stream("POST", self.endpoint, json=payload, headers=headers) as response:
                if response.is_error:
                    await response.aread()
                    raise TurnFailed(_http_error_message(response))

                content_type = response.headers.get("content-type", "")
                if enable_streaming and "text/plain" in content_type:
                    await self._read_stream(turn, response, thread_id)
                else:
                    await response.aread()
                    self._apply_reply(turn, response.json())

        except TurnFailed as e:
            logger.error(f"Chat error: {e.message}")
            self._fail(turn, e.message)
        except httpx.TransportError as e:
            logger.error(f"Chat request failed: {e!r}")
            self._fail(turn, NETWORK_ERROR)
        except Exception as e:
            logger.exception("Chat error")
            self._fail(turn, str(e) or "An unexpected error occurred")

    def _apply_reply(self, turn: asyncio.Task, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise TurnFailed(error or "Failed to get response from assistant")

        if not self._is_current(turn):
            logger.debug("Dropping reply for a superseded request")
            return

        reply = ChatMessage(id=next(self._ids), content=data.get("response", ""), is_user=False)
        self._set(
            messages=self._state.messages + (reply,),
            is_loading=False,
            thread_id=data.get("threadId") or self._state.thread_id,
        )

    async def _read_stream(self, turn: asyncio.Task, response: httpx.Response, thread_id: Optional[str]) -> None:
        """
        Grow one provisional assistant message from the frame stream.

        The message is removed again unless a ``complete`` frame arrives,
        so errors, dropped connections and cancellation leave no partial reply.
        """
        reply = ChatMessage(id=next(self._ids), content="", is_user=False, is_streaming=True)
        self._append_message(reply)

        decoder = FrameDecoder()
        accumulated = ""
        last_thread_id = thread_id
        completed = False

        try:
            async for data in response.aiter_bytes():
                for frame in decoder.feed(data):
                    if isinstance(frame, ChunkFrame):
                        accumulated += frame.content
                        self._update_message(reply.id, content=accumulated)

                    elif isinstance(frame, CompleteFrame):
                        completed = True
                        self._update_message(reply.id, is_streaming=False)
                        if self._is_current(turn):
                            self._set(
                                is_loading=False,
                                thread_id=frame.thread_id or last_thread_id,
                            )
                        return

                    else:
                        raise TurnFailed(frame.error or "Streaming error occurred")

                    if frame.thread_id:
                        last_thread_id = frame.thread_id

            raise TurnFailed("Stream ended before completion")

        finally:
            if not completed:
                self._remove_message(reply.id)

    def _fail(self, turn: asyncio.Task, message: str) -> None:
        if self._is_current(turn):
            self._set(is_loading=False, error=message)
