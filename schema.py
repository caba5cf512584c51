from typing import Optional

from pydantic import Field

from models import CamelModel, Message


class ChatRequest(CamelModel):
    session_id: str = Field(..., description="Session key for multi‑turn memory")
    message: str = Field(..., description="User message")


class CreateSessionRequest(CamelModel):
    name: str = "New Chat"
    id: Optional[str] = None


class RenameSessionRequest(CamelModel):
    name: str


class FeedbackRequest(CamelModel):
    session_id: str
    message_id: str
    liked: Optional[bool] = None


class ChatResponse(CamelModel):
    success: bool
    message: Optional[Message] = None
    error: Optional[str] = None

    @staticmethod
    def ok(message: Message) -> "ChatResponse":
        return ChatResponse(success=True, message=message, error=None)

    @staticmethod
    def failure(error: str) -> "ChatResponse":
        return ChatResponse(success=False, message=None, error=error)


class SuccessResponse(CamelModel):
    success: bool
