"""
Assistant turn lifecycle.

One turn drives the remote assistant through:
- thread resolution (create when the caller has none)
- appending the user's message
- starting a run and polling it until it leaves queued/in_progress
- reading the assistant message produced by that run

The reply is returned whole, or disclosed word by word as stream frames.
The provider holds all conversation state; nothing here outlives a turn.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Type

import httpx

from .assistant_client import AssistantClient
from .config import Config, config
from .errors import (
    AssistantError,
    MessageAppendFailed,
    MessageListFailed,
    MessageValidationError,
    NoAssistantReply,
    ProviderError,
    RunFailed,
    RunPollFailed,
    RunStartFailed,
    RunTimeout,
    ThreadCreationFailed,
    UnexpectedRunStatus,
    UnsupportedContentType,
)
from .models import ChatReply, ChunkFrame, CompleteFrame, ErrorFrame, Run, RunStatus, StreamFrame

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def split_reply(reply: str) -> List[str]:
    """
    Cut a finished reply into word chunks for emulated streaming.

    Splits on single spaces so newlines and runs of spaces survive;
    joining the chunks and dropping the final space gives back ``reply``.
    """
    return [f"{word} " for word in reply.split(" ")]


class AssistantOrchestrator:
    """
    Runs one user turn against the assistant provider.

    Timing is injected so tests can poll without waiting: ``sleep`` is
    awaited between status checks and between stream chunks.
    """

    def __init__(
        self,
        client: AssistantClient,
        assistant_id: str,
        poll_interval: float = 1.0,
        max_poll_attempts: int = 30,
        chunk_delay: float = 0.05,
        max_message_length: int = 10000,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.assistant_id = assistant_id
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.chunk_delay = chunk_delay
        self.max_message_length = max_message_length
        self.sleep = sleep

    @classmethod
    def from_config(cls, client: AssistantClient, cfg: Config = config) -> "AssistantOrchestrator":
        return cls(
            client,
            assistant_id=cfg.assistant_id,
            poll_interval=cfg.poll_interval,
            max_poll_attempts=cfg.max_poll_attempts,
            chunk_delay=cfg.chunk_delay,
            max_message_length=cfg.max_message_length,
        )

    # =========================================================================
    # Turn steps
    # =========================================================================

    def validate_message(self, message: Any) -> str:
        """Return the trimmed message or raise ``MessageValidationError``."""
        if not isinstance(message, str) or not message.strip():
            raise MessageValidationError()
        if len(message) > self.max_message_length:
            raise MessageValidationError(
                f"Message too long (max {self.max_message_length} characters)"
            )
        return message.strip()

    async def _call(self, failure: Type[ProviderError], request: Awaitable[Any]) -> Any:
        """Await a provider request, translating transport/HTTP errors."""
        try:
            return await request
        except httpx.HTTPError as e:
            logger.error(f"{failure.default_message}: {e}")
            raise failure() from e

    async def resolve_thread(self, thread_id: Optional[str]) -> str:
        """Reuse the caller's thread, or create one for a new conversation."""
        if thread_id:
            return thread_id

        thread_id = await self._call(ThreadCreationFailed, self.client.create_thread())
        logger.info(f"Created thread {thread_id}")
        return thread_id

    async def append_message(self, thread_id: str, message: str) -> None:
        await self._call(MessageAppendFailed, self.client.add_message(thread_id, message))
        logger.debug(f"Added message to thread {thread_id} ({len(message)} chars)")

    async def run_and_wait(self, thread_id: str) -> Run:
        """
        Start a run and poll until it reaches a terminal status.

        At most ``max_poll_attempts`` status checks are made; the next
        pending status raises ``RunTimeout`` without another request.
        """
        run = await self._call(RunStartFailed, self.client.create_run(thread_id, self.assistant_id))
        run_id = run.id
        logger.info(f"Started run {run_id} on thread {thread_id} (status={run.status})")

        attempts = 0
        while run.is_pending:
            if attempts >= self.max_poll_attempts:
                logger.warning(f"Run {run_id} still {run.status} after {attempts} checks")
                raise RunTimeout()

            await self.sleep(self.poll_interval)
            run = await self._call(RunPollFailed, self.client.retrieve_run(thread_id, run_id))
            attempts += 1
            logger.debug(f"Run {run_id} check {attempts}: {run.status}")

        if run.status == RunStatus.FAILED.value:
            reason = run.last_error.message if run.last_error else None
            logger.error(f"Run {run_id} failed: {reason}")
            raise RunFailed(reason)

        if run.status != RunStatus.COMPLETED.value:
            logger.error(f"Run {run_id} ended with status {run.status}")
            raise UnexpectedRunStatus(run.status)

        logger.info(f"Run {run_id} completed after {attempts} checks")
        return run

    async def extract_reply(self, thread_id: str, run_id: str) -> str:
        """
        Read the text the assistant wrote during ``run_id``.

        Matching on the run id skips replies to earlier turns. When the
        provider tags several messages with one run, the first listed wins.
        """
        messages = await self._call(MessageListFailed, self.client.list_messages(thread_id))

        reply = next(
            (m for m in messages if m.role == "assistant" and m.run_id == run_id),
            None,
        )
        if reply is None or not reply.content:
            raise NoAssistantReply()

        block = reply.content[0]
        if block.get("type") != "text":
            raise UnsupportedContentType(block.get("type"))

        value = (block.get("text") or {}).get("value")
        if value is None:
            raise NoAssistantReply()
        return value

    async def get_reply(self, thread_id: str) -> str:
        run = await self.run_and_wait(thread_id)
        return await self.extract_reply(thread_id, run.id)

    # =========================================================================
    # Whole turns
    # =========================================================================

    async def handle_turn(self, message: Any, thread_id: Optional[str] = None) -> ChatReply:
        """Run a full turn and return the reply as one unit."""
        message = self.validate_message(message)
        thread_id = await self.resolve_thread(thread_id)
        await self.append_message(thread_id, message)
        reply = await self.get_reply(thread_id)
        return ChatReply(response=reply, thread_id=thread_id)

    def stream_turn(self, message: Any, thread_id: Optional[str] = None) -> AsyncIterator[StreamFrame]:
        """
        Run a full turn as a frame stream.

        Validation happens here, before any frame exists. Every later
        failure becomes a single ``error`` frame that ends the stream.
        """
        message = self.validate_message(message)
        return self._stream(message, thread_id)

    async def _stream(self, message: str, thread_id: Optional[str]) -> AsyncIterator[StreamFrame]:
        current_thread = thread_id
        try:
            current_thread = await self.resolve_thread(thread_id)
            await self.append_message(current_thread, message)
            reply = await self.get_reply(current_thread)
        except AssistantError as e:
            logger.error(f"Streamed turn failed: {e.message}")
            yield ErrorFrame(error=e.message, thread_id=current_thread)
            return
        except Exception:
            logger.exception("Streamed turn failed unexpectedly")
            yield ErrorFrame(error=AssistantError.default_message, thread_id=current_thread)
            return

        chunks = split_reply(reply)
        for chunk in chunks:
            yield ChunkFrame(content=chunk, thread_id=current_thread)
            await self.sleep(self.chunk_delay)

        logger.info(f"Streamed {len(chunks)} chunks on thread {current_thread}")
        yield CompleteFrame(thread_id=current_thread)
