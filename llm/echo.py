import asyncio
import re
from typing import AsyncIterator, List

from base import LLMBase, LLMMessage

CANNED = {
    "hello": "Hello! How can I assist you today?",
    "hi": "Hello! How can I assist you today?",
    "help": "I'm here to help! You can ask me anything about your patients.",
    "bye": "Goodbye! Have a great day!",
    "goodbye": "Goodbye! Have a great day!",
}


def mock_response(text: str) -> str:
    canned = CANNED.get(text.strip().lower())
    if canned:
        return canned
    return (f'I received your message: "{text}". This is a mock response. '
            "Configure APP_MODULES__LLM_NAME to get real responses.")


class EchoLLM(LLMBase):
    """Offline stand-in for a real model: answers the last user message with a canned reply.

    ``complete`` always answers ``{"action": "none"}``, so paired with LLMRouter it never
    picks a tool. Set APP_MODULES__ROUTER_NAME=PatternRouter to exercise tool calls offline.
    """

    name = "Echo"

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds

    @staticmethod
    def _last_user_text(messages: List[LLMMessage]) -> str:
        for message in reversed(messages):
            if message["role"] == "user":
                return message["content"]
        return ""

    async def stream(self, messages: List[LLMMessage]) -> AsyncIterator[str]:
        for piece in re.findall(r"\S+\s*", mock_response(self._last_user_text(messages))):
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            yield piece

    async def complete(self, messages: List[LLMMessage]) -> str:
        return '{"action": "none"}'
