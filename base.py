from abc import ABC, abstractmethod
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Sequence,
)

from models import Message, ToolDescriptor, ToolInvocation

# role-tagged LLM message: {"role": "system" | "user" | "assistant", "content": str}
LLMMessage = Dict[str, str]


class ToolClientBase(ABC):
    """Transport to the tool backend. No method raises to the caller."""

    @abstractmethod
    async def initialize(self) -> bool:
        """Handshake / health probe"""

    @abstractmethod
    async def list_tools(self) -> List[ToolDescriptor]:
        """List tools; empty on failure"""

    @abstractmethod
    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        """Invoke a tool; failures come back as "Error: ..." text"""

    async def aclose(self) -> None:
        """Release transport resources"""


class LLMBase(ABC):
    name = "llm"

    @abstractmethod
    def stream(self, messages: List[LLMMessage]) -> AsyncIterator[str]:
        """Lazy sequence of text fragments"""

    @abstractmethod
    async def complete(self, messages: List[LLMMessage]) -> str:
        """Single concatenated completion"""


class RouterBase(ABC):

    @abstractmethod
    async def decide(
        self,
        message: str,
        catalog: Optional[Sequence[ToolDescriptor]],
        history: Sequence[Message],
    ) -> Optional[ToolInvocation]:
        """Tool invocation for this turn, or None"""
