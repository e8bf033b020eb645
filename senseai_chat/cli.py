#!/usr/bin/env python3
"""
Terminal chat against a running SenseAI assistant server.

Commands:
    /retry   Resend the last message
    /clear   Start a new conversation
    /health  Show server configuration status
    /quit    Exit

Ctrl+C while a reply is pending cancels that request.

Usage:
    python -m senseai_chat.cli [--url http://localhost:8000] [--no-stream]
"""

import argparse
import asyncio
import sys

from .chat_session import ChatSession, ConversationState


def _print_error(state: ConversationState):
    if state.error:
        print(f"[error] {state.error} (type /retry to try again)")


async def _run_turn(session: ChatSession, action) -> None:
    """Run one send/retry, turning Ctrl+C into a cancel."""
    task = asyncio.create_task(action)
    try:
        await asyncio.shield(task)
    except asyncio.CancelledError:
        asyncio.current_task().uncancel()
        session.cancel()
        await task
        print("\n[cancelled]")


async def chat(url: str, stream: bool):
    print("=" * 60)
    print(f"SenseAI chat - {url} ({'streaming' if stream else 'whole replies'})")
    print("=" * 60)

    async with ChatSession(base_url=url) as session:
        printed = {"id": None, "length": 0}

        def show_progress(state: ConversationState):
            # Print only the newly streamed text of the latest assistant message
            if not state.messages:
                return
            last = state.messages[-1]
            if last.is_user:
                return
            if printed["id"] != last.id:
                printed["id"] = last.id
                printed["length"] = 0
                print("SenseAI: ", end="", flush=True)
            new_text = last.content[printed["length"]:]
            if new_text:
                print(new_text, end="", flush=True)
                printed["length"] = len(last.content)
            if not last.is_streaming and not state.is_loading:
                print()

        print(f"SenseAI: {session.state.messages[0].content}\n")
        printed["id"] = session.state.messages[0].id
        session.subscribe(show_progress)

        loop = asyncio.get_running_loop()
        while True:
            try:
                line = await loop.run_in_executor(None, input, "You: ")
            except (EOFError, KeyboardInterrupt, asyncio.CancelledError):
                print()
                break

            command = line.strip()
            if not command:
                continue
            if command == "/quit":
                break
            if command == "/clear":
                session.cancel()
                session.clear()
                printed["id"] = session.state.messages[0].id
                print("[conversation cleared]")
                continue
            if command == "/health":
                try:
                    health = await session.check_health()
                except Exception as e:
                    print(f"[error] Health check failed: {e}")
                    continue
                print(f"API key: {health.has_api_key}, assistant: {health.has_assistant_id}")
                continue

            if command == "/retry":
                await _run_turn(session, session.retry_last_message(enable_streaming=stream))
            else:
                await _run_turn(session, session.send(command, enable_streaming=stream))
            _print_error(session.state)


def main():
    parser = argparse.ArgumentParser(description="Chat with the SenseAI assistant")
    parser.add_argument("--url", default="http://localhost:8000", help="Server base URL")
    parser.add_argument("--no-stream", action="store_true", help="Ask for whole replies")
    args = parser.parse_args()

    try:
        asyncio.run(chat(args.url, stream=not args.no_stream))
    except KeyboardInterrupt:
        pass
    sys.exit(0)


if __name__ == "__main__":
    main()
