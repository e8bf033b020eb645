"""Assistant chat configuration."""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Server
    host: str = field(default_factory=lambda: os.getenv("CHAT_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("CHAT_PORT", "8000")))
    allowed_origins: List[str] = field(default_factory=lambda:
        [o.strip() for o in os.getenv("CHAT_ALLOWED_ORIGINS", "*").split(",") if o.strip()])

    # OpenAI Assistants
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    assistant_id: str = field(default_factory=lambda: os.getenv("OPENAI_ASSISTANT_ID", ""))
    openai_base_url: str = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"))
    request_timeout: float = field(default_factory=lambda: float(os.getenv("OPENAI_TIMEOUT", "60")))

    # Turn lifecycle
    poll_interval: float = field(default_factory=lambda: float(os.getenv("CHAT_POLL_INTERVAL", "1.0")))
    max_poll_attempts: int = field(default_factory=lambda: int(os.getenv("CHAT_MAX_POLL_ATTEMPTS", "30")))
    chunk_delay: float = field(default_factory=lambda: float(os.getenv("CHAT_CHUNK_DELAY", "0.05")))
    max_message_length: int = field(default_factory=lambda: int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "10000")))

    @property
    def has_api_key(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_assistant_id(self) -> bool:
        return bool(self.assistant_id)

    def missing(self) -> List[str]:
        """Names of required provider settings that are not set."""
        missing = []
        if not self.has_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.has_assistant_id:
            missing.append("OPENAI_ASSISTANT_ID")
        return missing


# Global config instance
config = Config()
