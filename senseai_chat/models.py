"""Data models for the assistant chat endpoint."""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

CHAT_PATH = "/api/chat/assistant"


class WireModel(BaseModel):
    """Base for bodies that travel with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ============================================================================
# Endpoint Request/Response Models
# ============================================================================

class ChatRequest(WireModel):
    """Body of ``POST /api/chat/assistant``."""
    message: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class ChatReply(WireModel):
    """Successful non-streaming reply."""
    response: str
    thread_id: str = Field(alias="threadId")
    success: bool = True


class ErrorReply(WireModel):
    """Failed turn, returned with a non-2xx status."""
    error: str
    success: bool = False
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class HealthStatus(WireModel):
    """Configuration probe returned by ``GET /api/chat/assistant``."""
    status: str = "healthy"
    has_api_key: bool = Field(alias="hasApiKey")
    has_assistant_id: bool = Field(alias="hasAssistantId")
    assistant_id: Optional[str] = Field(default=None, alias="assistantId")


# ============================================================================
# Stream Frames
# ============================================================================

class ChunkFrame(WireModel):
    """One slice of reply text."""
    type: Literal["chunk"] = "chunk"
    content: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class CompleteFrame(WireModel):
    """Terminal frame of a successful stream."""
    type: Literal["complete"] = "complete"
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    success: bool = True


class ErrorFrame(WireModel):
    """Terminal frame of a failed stream."""
    type: Literal["error"] = "error"
    error: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    success: bool = False


StreamFrame = Annotated[
    Union[ChunkFrame, CompleteFrame, ErrorFrame],
    Field(discriminator="type"),
]


# ============================================================================
# Provider Models (OpenAI Assistants API)
# ============================================================================

class RunStatus(str, Enum):
    """Run statuses reported by the provider."""
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"


# Statuses worth polling again; anything else is terminal.
PENDING_STATUSES = frozenset({RunStatus.QUEUED.value, RunStatus.IN_PROGRESS.value})


class RunError(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None


class Run(BaseModel):
    """One execution of the assistant against a thread."""
    id: str
    thread_id: Optional[str] = None
    status: str
    last_error: Optional[RunError] = None

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES


class ThreadMessage(BaseModel):
    """A message as listed from a thread."""
    id: str
    role: str
    run_id: Optional[str] = None
    content: List[Dict[str, Any]] = Field(default_factory=list)
