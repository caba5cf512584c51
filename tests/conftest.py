import asyncio
from typing import Any, Dict, List, Optional

import pytest

from base import LLMBase, ToolClientBase
from exceptions import GenerationFailure
from memory.session_store import SessionStore
from models import ToolDescriptor


def _tool(tool_name: str, description: str, **properties: Any) -> ToolDescriptor:
    return ToolDescriptor(name=tool_name, description=description,
                          input_schema={"type": "object", "properties": properties})


PATIENT_TOOLS = [
    _tool("get_all_patients", "List every patient"),
    _tool("get_patient_by_id", "Look up a patient by id", patient_id={"type": "integer"}),
    _tool("get_patient_by_name", "Look up a patient by full name", name={"type": "string"}),
    _tool("get_progress_notes", "Progress notes for a patient", patient_id={"type": "integer"}),
    _tool("get_care_plan", "Care plan for a patient", patient_id={"type": "integer"}),
]


class FakeLLM(LLMBase):
    name = "Fake"

    def __init__(self, fragments: Optional[List[str]] = None, completion: Any = '{"action": "none"}',
                 fail_after: Optional[int] = None, delay: float = 0.0):
        self.fragments = list(fragments if fragments is not None else ["Hel", "lo", "!"])
        self.completion = completion
        self.fail_after = fail_after
        self.delay = delay
        self.stream_calls: List[List[Dict[str, str]]] = []
        self.complete_calls: List[List[Dict[str, str]]] = []
        self.closed = 0

    async def stream(self, messages):
        self.stream_calls.append(messages)
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise GenerationFailure("model went away")
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield fragment
        finally:
            self.closed += 1

    async def complete(self, messages):
        self.complete_calls.append(messages)
        if isinstance(self.completion, Exception):
            raise self.completion
        return self.completion


class FakeToolClient(ToolClientBase):
    def __init__(self, tools: Optional[List[ToolDescriptor]] = None, result: str = '[{"id": 42}]',
                 healthy: bool = True):
        self.tools = PATIENT_TOOLS if tools is None else tools
        self.result = result
        self.healthy = healthy
        self.calls: List[tuple] = []

    async def initialize(self) -> bool:
        return self.healthy

    async def list_tools(self) -> List[ToolDescriptor]:
        return list(self.tools)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        self.calls.append((name, arguments))
        return self.result


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def tool_client():
    return FakeToolClient()
