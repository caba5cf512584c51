import json
import logging
import re
from typing import Any, Optional, Sequence

from base import LLMBase, RouterBase
from models import Message, ToolDescriptor, ToolInvocation
from prompts import PROMPTS

FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)

logger = logging.getLogger("app")


def parse_tool_decision(response: Optional[str]) -> Optional[ToolInvocation]:
    """Parse the model's JSON verdict. Anything that is not a well-formed call is None."""
    if not response or not response.strip():
        return None
    cleaned = FENCE_RE.sub("", response.strip()).strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start >= 0 and end > start:
        cleaned = cleaned[start:end + 1]
    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse tool decision {response!r}: {e}")
        return None
    if not isinstance(data, dict) or data.get("action") != "call":
        return None
    tool = data.get("tool")
    if not isinstance(tool, str) or not tool.strip():
        return None
    arguments = data.get("arguments")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        logger.warning(f"Tool decision arguments are not an object: {arguments!r}")
        return None
    return ToolInvocation(tool=tool.strip(), arguments=arguments)


def format_tools(catalog: Sequence[ToolDescriptor]) -> str:
    return "\n".join(
        PROMPTS['tool_entry'].format(
            name=tool.name,
            description=tool.description,
            parameters=json.dumps(tool.parameters()),
        )
        for tool in catalog
    )


def format_history(history: Sequence[Message]) -> str:
    if not history:
        return "(none)"
    return "\n".join(f"{m.role.value}: {m.content}" for m in history)


class LLMRouter(RouterBase):
    """Asks the model for a strict-JSON call/none verdict. One attempt, no retry on bad JSON."""

    def __init__(self, llm: LLMBase):
        self.llm = llm

    def build_messages(self, message: str, catalog: Sequence[ToolDescriptor], history: Sequence[Message]):
        prompt = PROMPTS['tool_decision'].format(
            tools=format_tools(catalog),
            history=format_history(history),
            message=message,
        )
        return [
            {"role": "system", "content": PROMPTS['tool_decision_system']},
            {"role": "user", "content": prompt},
        ]

    async def decide(self, message, catalog, history) -> Optional[ToolInvocation]:
        if not catalog:
            return None
        try:
            raw = await self.llm.complete(self.build_messages(message, catalog, history or []))
            logger.debug(f"Tool decision response: {raw}")
            return parse_tool_decision(raw)
        except Exception as e:
            logger.error(f"Error in tool decision: {e}")
            return None
