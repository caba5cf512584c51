from typing import Optional

from prometheus_client import Counter, Histogram, REGISTRY

CHAT_REQUESTS: Optional[Counter] = None
CHAT_LATENCY: Optional[Histogram] = None
TOOL_CALLS: Optional[Counter] = None
TOOL_CLIENT_ERRORS: Optional[Counter] = None


def init_metrics(registry=REGISTRY) -> None:
    global CHAT_REQUESTS, CHAT_LATENCY, TOOL_CALLS, TOOL_CLIENT_ERRORS
    if CHAT_REQUESTS is None:
        CHAT_REQUESTS = Counter(
            "chat_requests_total",
            "Total chat turns by outcome",
            ["outcome"],
            registry=registry,
        )
    if CHAT_LATENCY is None:
        CHAT_LATENCY = Histogram(
            "chat_request_seconds",
            "Latency of chat turns in seconds",
            registry=registry,
        )
    if TOOL_CALLS is None:
        TOOL_CALLS = Counter(
            "tool_calls_total",
            "Tool invocations by tool and status",
            ["tool", "status"],
            registry=registry,
        )
    if TOOL_CLIENT_ERRORS is None:
        TOOL_CLIENT_ERRORS = Counter(
            "tool_client_errors_total",
            "Tool backend failures by operation",
            ["operation"],
            registry=registry,
        )


def record_chat(outcome: str, seconds: float) -> None:
    init_metrics()
    CHAT_REQUESTS.labels(outcome=outcome).inc()
    CHAT_LATENCY.observe(seconds)


def record_tool_call(tool: str, ok: bool) -> None:
    init_metrics()
    TOOL_CALLS.labels(tool=tool, status="ok" if ok else "error").inc()


def record_tool_client_error(operation: str) -> None:
    init_metrics()
    TOOL_CLIENT_ERRORS.labels(operation=operation).inc()
