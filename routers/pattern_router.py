import logging
from typing import Callable, List, Optional, Sequence

from base import RouterBase
from config import (
    GET_ALL_PATIENTS,
    GET_PATIENT_BY_ID,
    GET_PATIENT_BY_NAME,
    LIST_PATIENTS_PHRASES,
    PATIENT_ID_RE,
    PATIENT_NAME_RE,
    SUB_RESOURCE_TOOLS,
    TRAILING_ID_RE,
)
from models import ToolDescriptor, ToolInvocation

logger = logging.getLogger("app")

Rule = Callable[[str, str], Optional[ToolInvocation]]


def list_all_rule(text: str, lowered: str) -> Optional[ToolInvocation]:
    if any(p in lowered for p in LIST_PATIENTS_PHRASES):
        return ToolInvocation(GET_ALL_PATIENTS, {})
    return None


def sub_resource_rule(text: str, lowered: str) -> Optional[ToolInvocation]:
    for keyword, tool in SUB_RESOURCE_TOOLS.items():
        if keyword in lowered:
            m = TRAILING_ID_RE.search(lowered)
            if m:
                return ToolInvocation(tool, {"patient_id": int(m.group(1))})
    return None


def name_rule(text: str, lowered: str) -> Optional[ToolInvocation]:
    # case matters here, so match the original text
    m = PATIENT_NAME_RE.search(text)
    if m:
        return ToolInvocation(GET_PATIENT_BY_NAME, {"name": m.group(1)})
    return None


def id_rule(text: str, lowered: str) -> Optional[ToolInvocation]:
    m = PATIENT_ID_RE.search(lowered)
    if m:
        return ToolInvocation(GET_PATIENT_BY_ID, {"patient_id": int(m.group(1))})
    return None


DEFAULT_RULES: List[Rule] = [list_all_rule, sub_resource_rule, name_rule, id_rule]


class PatternRouter(RouterBase):
    """Deterministic intent table. First matching rule whose tool is advertised wins."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def route(self, text: str, available: Optional[set] = None) -> Optional[ToolInvocation]:
        lowered = text.lower()
        for rule in self.rules:
            invocation = rule(text, lowered)
            if invocation is None:
                continue
            if available is not None and invocation.tool not in available:
                logger.debug(f"{rule.__name__} matched {invocation.tool} but the tool is not advertised")
                continue
            return invocation
        return None

    async def decide(self, message, catalog, history) -> Optional[ToolInvocation]:
        if not catalog:
            return None
        try:
            return self.route(message, {tool.name for tool in catalog})
        except Exception as e:
            logger.error(f"Error in pattern tool decision: {e}")
            return None
