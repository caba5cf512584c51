import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import UTC


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(CamelModel):
    """One chat message. Only ``liked`` may change after creation."""

    id: str = Field(default_factory=new_id, frozen=True)
    role: Role = Field(frozen=True)
    content: str = Field(frozen=True)
    timestamp: datetime = Field(default_factory=utcnow, frozen=True)
    liked: Optional[bool] = None  # None = no feedback

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, message_id: Optional[str] = None) -> "Message":
        if message_id:
            return cls(id=message_id, role=Role.ASSISTANT, content=content)
        return cls(role=Role.ASSISTANT, content=content)


class ChatSession(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str = "New Chat"
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self.touch()

    def touch(self) -> None:
        self.last_activity = utcnow()


class ToolDescriptor(CamelModel):
    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None

    def parameters(self) -> Dict[str, Any]:
        if isinstance(self.input_schema, dict):
            props = self.input_schema.get("properties")
            if isinstance(props, dict):
                return props
        return {}


@dataclass(frozen=True)
class ToolInvocation:
    tool: str
    arguments: Dict[str, Any] = field(default_factory=dict)


EventName = Literal["userMessage", "start", "chunk", "done", "error"]


@dataclass(frozen=True)
class StreamEvent:
    event: EventName
    data: Dict[str, Any]

    @staticmethod
    def user_ack(message_id: str) -> "StreamEvent":
        return StreamEvent("userMessage", {"id": message_id})

    @staticmethod
    def start(message_id: str) -> "StreamEvent":
        return StreamEvent("start", {"messageId": message_id})

    @staticmethod
    def chunk(text: str) -> "StreamEvent":
        return StreamEvent("chunk", {"content": text})

    @staticmethod
    def done(message_id: str) -> "StreamEvent":
        return StreamEvent("done", {"messageId": message_id})

    @staticmethod
    def error(text: str) -> "StreamEvent":
        return StreamEvent("error", {"error": text})

    def to_sse(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.data)}\n\n"
