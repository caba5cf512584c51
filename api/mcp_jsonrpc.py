import itertools
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from base import ToolClientBase
from config.settings import settings
from exceptions import ToolTransportFailure
from metrics import record_tool_call, record_tool_client_error
from models import ToolDescriptor

cfg = settings.mcp

TIMEOUT_TEXT = "Error: timeout"
SESSION_HEADER = "mcp-session-id"


def parse_tools(payload: Any, logger: logging.Logger) -> List[ToolDescriptor]:
    tools = payload.get("tools") if isinstance(payload, dict) else None
    if not isinstance(tools, list):
        logger.warning("No tools found in MCP server response")
        return []
    descriptors = []
    for raw in tools:
        try:
            descriptors.append(ToolDescriptor.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed tool descriptor {raw!r}: {e}")
    logger.info(f"Loaded {len(descriptors)} tools from MCP server")
    return descriptors


def first_content_text(result: Any) -> str:
    """Text of the first content element of a tools/call result."""
    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict) and isinstance(first.get("text"), str):
                return first["text"]
            return json.dumps(first)
    return json.dumps(result)


def transport_error_text(e: ToolTransportFailure) -> str:
    if e.timeout:
        return TIMEOUT_TEXT
    return f"Error: Unable to communicate with MCP server - {e}"


class JsonRpcToolClient(ToolClientBase):
    """Talks JSON-RPC 2.0 to a single MCP endpoint over HTTP POST."""

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[float] = None,
                 endpoint: Optional[str] = None):
        self.base = (base_url or cfg.base_url).rstrip("/")
        self.endpoint = endpoint or cfg.endpoint
        self.timeout = cfg.timeout_seconds if timeout_seconds is None else timeout_seconds
        self.client = httpx.AsyncClient(
            base_url=self.base,
            timeout=self.timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        self._ids = itertools.count(1)
        self.session_id: Optional[str] = None
        self.logger = logging.getLogger("app")

    async def _rpc(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        envelope = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        headers = {SESSION_HEADER: self.session_id} if self.session_id else None
        try:
            resp = await self.client.post(self.endpoint, json=envelope, headers=headers)
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException as e:
            raise ToolTransportFailure(f"{method} timed out after {self.timeout:g}s", timeout=True) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ToolTransportFailure(f"{method} failed: {e}") from e
        if not isinstance(body, dict) or ("result" in body) == ("error" in body):
            raise ToolTransportFailure(f"malformed response to {method}")
        if method == "initialize" and resp.headers.get(SESSION_HEADER):
            self.session_id = resp.headers[SESSION_HEADER]
        return body

    def _report(self, operation: str, reason: Any) -> None:
        record_tool_client_error(operation)
        self.logger.error(f"MCP {operation} failed: {reason}",
                          extra={"extra_data": {"component": "tool_client", "endpoint": self.base + self.endpoint}})

    async def initialize(self) -> bool:
        params = {
            "protocolVersion": cfg.protocol_version,
            "capabilities": {},
            "clientInfo": {"name": cfg.client_name, "version": "1.0.0"},
        }
        try:
            body = await self._rpc("initialize", params)
        except ToolTransportFailure as e:
            self._report("initialize", e)
            return False
        if "error" in body:
            self._report("initialize", body["error"])
            return False
        return True

    async def list_tools(self) -> List[ToolDescriptor]:
        self.logger.debug(f"Fetching available tools from MCP server at {self.base}{self.endpoint}")
        try:
            body = await self._rpc("tools/list", {})
        except ToolTransportFailure as e:
            self._report("list_tools", e)
            return []
        if "error" in body:
            self._report("list_tools", body["error"])
            return []
        return parse_tools(body["result"], self.logger)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        self.logger.info(f"Calling tool {name} with arguments {arguments}")
        try:
            body = await self._rpc("tools/call", {"name": name, "arguments": arguments})
        except ToolTransportFailure as e:
            self._report("call_tool", e)
            record_tool_call(name, ok=False)
            return transport_error_text(e)
        if "error" in body:
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            record_tool_call(name, ok=False)
            return f"Error: {message}"
        record_tool_call(name, ok=True)
        return first_content_text(body["result"])

    async def aclose(self) -> None:
        await self.client.aclose()
