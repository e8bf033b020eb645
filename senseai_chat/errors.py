"""Failures that end an assistant turn.

Every per-turn failure collapses into one user-facing message. The
``status_code`` is what the non-streaming endpoint answers with; the
streaming endpoint carries the same message in an ``error`` frame.
"""

from typing import Optional


class AssistantError(Exception):
    """Base class for all turn failures."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(AssistantError):
    default_message = "Assistant is not configured"


class MessageValidationError(AssistantError):
    status_code = 400
    default_message = "Message is required and must be a non-empty string"


# ---------------------------------------------------------------------------
# Provider calls
# ---------------------------------------------------------------------------

class ProviderError(AssistantError):
    default_message = "Assistant provider request failed"


class ThreadCreationFailed(ProviderError):
    default_message = "Failed to create conversation thread"


class MessageAppendFailed(ProviderError):
    default_message = "Failed to add message to conversation"


class RunStartFailed(ProviderError):
    default_message = "Failed to start assistant run"


class RunPollFailed(ProviderError):
    default_message = "Failed to check assistant run status"


class MessageListFailed(ProviderError):
    default_message = "Failed to read conversation messages"


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------

class RunTimeout(AssistantError):
    status_code = 504
    default_message = "Assistant response timeout"


class RunFailed(AssistantError):
    """The run reached ``failed``; carries the provider's error text."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Unknown error"
        super().__init__(f"Assistant run failed: {self.reason}")


class UnexpectedRunStatus(AssistantError):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unexpected run status: {status}")


# ---------------------------------------------------------------------------
# Reply extraction
# ---------------------------------------------------------------------------

class ReplyExtractionError(AssistantError):
    default_message = "Could not read the assistant reply"


class NoAssistantReply(ReplyExtractionError):
    default_message = "No response from assistant"


class UnsupportedContentType(ReplyExtractionError):
    def __init__(self, content_type: Optional[str] = None):
        self.content_type = content_type
        super().__init__("Unexpected content type from assistant")
