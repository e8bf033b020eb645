"""
SenseAI Assistant Chat - Main Entry Point

HTTP front for an OpenAI assistant. Each request runs one turn
(thread, message, run, poll, reply) and answers with JSON or with
newline-delimited JSON frames.

Usage:
    python -m senseai_chat.main

Environment Variables:
    CHAT_HOST              - Server host (default: 0.0.0.0)
    CHAT_PORT              - Server port (default: 8000)
    OPENAI_API_KEY         - Provider API key (required)
    OPENAI_ASSISTANT_ID    - Assistant to run (required)
    OPENAI_BASE_URL        - Provider API base (default: https://api.openai.com/v1)
    OPENAI_TIMEOUT         - Provider request timeout in seconds (default: 60)
    CHAT_ALLOWED_ORIGINS   - Comma-separated CORS origins (default: *)
    CHAT_POLL_INTERVAL     - Seconds between run status checks (default: 1.0)
    CHAT_MAX_POLL_ATTEMPTS - Status checks before timing out (default: 30)
    CHAT_CHUNK_DELAY       - Seconds between streamed chunks (default: 0.05)
    CHAT_MAX_MESSAGE_LENGTH - Longest accepted message (default: 10000)
    DEBUG                  - Enable debug logging
"""

import logging
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router as chat_router
from .assistant_client import assistant
from .config import config
from .models import CHAT_PATH

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG") else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""

    logger.info("=" * 60)
    logger.info("SenseAI Assistant Chat Starting")
    logger.info("=" * 60)

    missing = config.missing()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)} - chat requests will fail")

    logger.info(f"Provider URL: {config.openai_base_url}")
    logger.info(f"Assistant: {config.assistant_id or '(unset)'}")
    logger.info(f"Polling: every {config.poll_interval}s, up to {config.max_poll_attempts} checks")
    logger.info(f"Chunk delay: {config.chunk_delay}s")

    logger.info("-" * 60)
    logger.info(f"Server ready at http://{config.host}:{config.port}")
    logger.info(f"Chat endpoint: http://{config.host}:{config.port}{CHAT_PATH}")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down...")
    await assistant.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="SenseAI Assistant Chat",
    description=(
        "Academic doubt-solving chat backed by an OpenAI assistant. "
        "Replies are returned whole or streamed word by word as JSON lines."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "name": "SenseAI Assistant Chat",
        "version": "0.1.0",
        "endpoints": {
            "chat": CHAT_PATH,
            "health": CHAT_PATH,
        },
    }


def main():
    """Run the chat server."""
    uvicorn.run(
        "senseai_chat.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level="debug" if os.getenv("DEBUG") else "info",
    )


if __name__ == "__main__":
    main()
