import pytest

from models import Message, ToolInvocation
from routers.llm_router import LLMRouter, parse_tool_decision
from routers.pattern_router import PatternRouter
from tests.conftest import FakeLLM, PATIENT_TOOLS


# --- LLM-directed decision parsing ---

def test_parse_call():
    assert parse_tool_decision('{"action":"call","tool":"t","arguments":{"a":1}}') == ToolInvocation("t", {"a": 1})


def test_parse_none_action():
    assert parse_tool_decision('{"action":"none"}') is None


@pytest.mark.parametrize("raw", [
    "",
    "   ",
    None,
    "I think you should call get_all_patients",
    "{not json}",
    '{"action": "CALL", "tool": "t"}',
    '{"action": "call", "tool": ""}',
    '{"action": "call"}',
    '{"action": "call", "tool": "t", "arguments": [1, 2]}',
    '["action", "call"]',
])
def test_parse_rejects(raw):
    assert parse_tool_decision(raw) is None


def test_parse_strips_code_fences_and_chatter():
    raw = 'Sure!\n```json\n{"action": "call", "tool": "get_patient_by_id", "arguments": {"patient_id": 42}}\n```\nDone.'
    assert parse_tool_decision(raw) == ToolInvocation("get_patient_by_id", {"patient_id": 42})


def test_parse_missing_arguments_defaults_to_empty():
    assert parse_tool_decision('{"action": "call", "tool": "get_all_patients"}') == ToolInvocation("get_all_patients", {})


@pytest.mark.asyncio
async def test_llm_router_prompt_lists_tools_and_message():
    llm = FakeLLM(completion='{"action": "call", "tool": "get_all_patients", "arguments": {}}')
    router = LLMRouter(llm)

    decision = await router.decide("who are my patients?", PATIENT_TOOLS, [Message.user("hello")])

    assert decision == ToolInvocation("get_all_patients", {})
    system, user = llm.complete_calls[0]
    assert system["role"] == "system" and "JSON" in system["content"]
    assert '"name": "get_patient_by_id"' in user["content"]
    assert '"patient_id": {"type": "integer"}' in user["content"]
    assert 'User request: "who are my patients?"' in user["content"]
    assert "user: hello" in user["content"]


@pytest.mark.asyncio
async def test_llm_router_without_catalog_skips_model():
    llm = FakeLLM(completion='{"action": "call", "tool": "x"}')
    assert await LLMRouter(llm).decide("list patients", [], []) is None
    assert await LLMRouter(llm).decide("list patients", None, []) is None
    assert llm.complete_calls == []


@pytest.mark.asyncio
async def test_llm_router_degrades_on_model_failure():
    llm = FakeLLM(completion=RuntimeError("boom"))
    assert await LLMRouter(llm).decide("list patients", PATIENT_TOOLS, []) is None
    assert len(llm.complete_calls) == 1


@pytest.mark.asyncio
async def test_llm_router_does_not_retry_bad_json():
    llm = FakeLLM(completion="```json\n{oops\n```")
    assert await LLMRouter(llm).decide("list patients", PATIENT_TOOLS, []) is None
    assert len(llm.complete_calls) == 1


# --- pattern fallback ---

AVAILABLE = {t.name for t in PATIENT_TOOLS}


@pytest.mark.parametrize("text,expected", [
    ("show me patient id 42", ToolInvocation("get_patient_by_id", {"patient_id": 42})),
    ("list patients", ToolInvocation("get_all_patients", {})),
    ("Can you show ALL PATIENTS please", ToolInvocation("get_all_patients", {})),
    ("Find the patient named John Smith", ToolInvocation("get_patient_by_name", {"name": "John Smith"})),
    ("someone called Mary Ann Jones", ToolInvocation("get_patient_by_name", {"name": "Mary Ann Jones"})),
    ("what is in patient #7", ToolInvocation("get_patient_by_id", {"patient_id": 7})),
    ("progress notes for patient 12", ToolInvocation("get_progress_notes", {"patient_id": 12})),
    ("Show the care plan for patient 5.", ToolInvocation("get_care_plan", {"patient_id": 5})),
    ("show patient ID: 42", ToolInvocation("get_patient_by_id", {"patient_id": 42})),
    ("patient: 42", ToolInvocation("get_patient_by_id", {"patient_id": 42})),
    ("open id:17", ToolInvocation("get_patient_by_id", {"patient_id": 17})),
])
def test_pattern_rules(text, expected):
    assert PatternRouter().route(text, AVAILABLE) == expected


@pytest.mark.parametrize("text", [
    "hello there",
    "a patient named john",  # lowercase names are not captured
    "I did 3 things today",
    "care plan please",
])
def test_pattern_no_match(text):
    assert PatternRouter().route(text, AVAILABLE) is None


def test_first_matching_rule_wins():
    # mentions a list phrase and an id; the list rule comes first
    assert PatternRouter().route("list patients and patient 9", AVAILABLE) == ToolInvocation("get_all_patients", {})


def test_rule_skipped_when_tool_not_advertised():
    available = AVAILABLE - {"get_progress_notes"}
    # falls through to the id rule
    assert PatternRouter().route("progress notes for patient 12", available) == \
        ToolInvocation("get_patient_by_id", {"patient_id": 12})


@pytest.mark.asyncio
async def test_pattern_router_decide():
    router = PatternRouter()
    assert await router.decide("show me patient id 42", PATIENT_TOOLS, []) == \
        ToolInvocation("get_patient_by_id", {"patient_id": 42})
    assert await router.decide("show me patient id 42", [], []) is None
    assert await router.decide("show me patient id 42", None, []) is None


@pytest.mark.asyncio
async def test_pattern_router_degrades_on_rule_error():
    def broken(text, lowered):
        raise ValueError("bad rule")

    assert await PatternRouter(rules=[broken]).decide("list patients", PATIENT_TOOLS, []) is None
