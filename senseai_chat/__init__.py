"""
SenseAI Assistant Chat

Server and client for turn-based chat with an OpenAI assistant.

Components:
- turn: Thread/message/run/poll lifecycle and emulated streaming
- assistant_client: Assistants API client
- api: Chat and health endpoints
- stream: Newline-delimited JSON frame codec
- chat_session: Client-side conversation state with cancel and retry
"""

__version__ = "0.1.0"
