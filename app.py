import json
import time
import logging
from contextlib import aclosing, asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from config.settings import settings, LoggingConfig
from exceptions import GatewayError, SessionNotFound
from memory.session_store import SessionStore
from metrics import init_metrics
from models import ChatSession, ToolDescriptor
from orchestrator import build_orchestrator
from schema import (
    ChatRequest,
    ChatResponse,
    CreateSessionRequest,
    FeedbackRequest,
    RenameSessionRequest,
    SuccessResponse,
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "level": record.levelname,
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if hasattr(record, "extra_data"):
            base.update(getattr(record, "extra_data"))
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base)


def setup_logging(cfg: LoggingConfig) -> logging.Logger:
    logger = logging.getLogger("app")
    logger.setLevel(cfg.level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if cfg.json_logging:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


logger = setup_logging(settings.logging)
init_metrics()

store = SessionStore()
orchestrator = build_orchestrator(store)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await orchestrator.tool_client.aclose()


app = FastAPI(title="MCP Chat Gateway", version="1.0.0", lifespan=lifespan)


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    return header.replace("Bearer ", "", 1).strip() or None


@app.get("/healthz", response_class=PlainTextResponse)
def healthz():
    return "ok"


@app.get("/metrics")
def metrics():
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/api/chat")
async def chat_stream(req: ChatRequest, request: Request):
    logger.info("Received streaming chat request", extra={"extra_data": {"session_id": req.session_id}})
    token = bearer_token(request.headers.get("authorization"))

    async def event_stream():
        async with aclosing(orchestrator.stream(req.session_id, req.message, token)) as events:
            async for event in events:
                yield event.to_sse()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/api/chat/sync", response_model=ChatResponse)
async def chat(req: ChatRequest, request: Request):
    if store.get(req.session_id) is None:
        return JSONResponse(status_code=404, content=ChatResponse.failure("Session not found").model_dump(by_alias=True))
    try:
        message = await orchestrator.complete(req.session_id, req.message,
                                              bearer_token(request.headers.get("authorization")))
    except GatewayError as e:
        return JSONResponse(status_code=502, content=ChatResponse.failure(str(e)).model_dump(by_alias=True))
    return ChatResponse.ok(message)


@app.post("/api/sessions", response_model=ChatSession)
def create_session(body: Optional[CreateSessionRequest] = None):
    body = body or CreateSessionRequest()
    if body.id:
        return store.create_with_id(body.id, body.name)
    return store.create(body.name)


@app.get("/api/sessions", response_model=List[ChatSession])
def list_sessions():
    return store.list_all()


@app.get("/api/sessions/{session_id}", response_model=ChatSession)
def get_session(session_id: str):
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@app.delete("/api/sessions/{session_id}", response_model=SuccessResponse)
def delete_session(session_id: str):
    return SuccessResponse(success=store.delete(session_id))


@app.put("/api/sessions/{session_id}/name", response_model=SuccessResponse)
def rename_session(session_id: str, body: RenameSessionRequest):
    return SuccessResponse(success=store.rename(session_id, body.name))


@app.delete("/api/sessions/{session_id}/messages", response_model=SuccessResponse)
def clear_session(session_id: str):
    return SuccessResponse(success=store.clear_messages(session_id))


@app.post("/api/feedback", response_model=ChatResponse)
def provide_feedback(body: FeedbackRequest):
    logger.info(f"Received feedback: {body.liked}",
                extra={"extra_data": {"session_id": body.session_id, "message_id": body.message_id}})
    try:
        message = store.set_feedback(body.session_id, body.message_id, body.liked)
    except SessionNotFound as e:
        return JSONResponse(status_code=400, content=ChatResponse.failure(str(e)).model_dump(by_alias=True))
    if message is None:
        return JSONResponse(status_code=400, content=ChatResponse.failure("Message not found").model_dump(by_alias=True))
    return ChatResponse.ok(message)


@app.get("/api/health")
async def health():
    mcp_up = await orchestrator.tool_client.initialize()
    return {"status": "UP", "mcpServer": "UP" if mcp_up else "DOWN", "aiProvider": orchestrator.llm.name}


@app.get("/api/tools", response_model=List[ToolDescriptor])
async def list_tools():
    return await orchestrator.tool_client.list_tools()
