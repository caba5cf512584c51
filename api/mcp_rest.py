import logging
from typing import Any, Dict, List, Optional

import httpx

from api.mcp_jsonrpc import parse_tools, transport_error_text
from base import ToolClientBase
from config.settings import settings
from exceptions import ToolTransportFailure
from metrics import record_tool_call, record_tool_client_error
from models import ToolDescriptor

cfg = settings.mcp


class RestToolClient(ToolClientBase):
    """Plain HTTP variant: GET for the tool listing, POST passthrough for calls."""

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[float] = None):
        self.base = (base_url or cfg.base_url).rstrip("/")
        self.timeout = cfg.timeout_seconds if timeout_seconds is None else timeout_seconds
        self.client = httpx.AsyncClient(base_url=self.base, timeout=self.timeout,
                                        headers={"Content-Type": "application/json"})
        self.logger = logging.getLogger("app")

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            if method == "GET":
                resp = await self.client.get(path)
            else:
                resp = await self.client.post(path, json=payload)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as e:
            raise ToolTransportFailure(f"{method} {path} timed out after {self.timeout:g}s", timeout=True) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ToolTransportFailure(f"{method} {path} failed: {e}") from e

    def _report(self, operation: str, reason: Any) -> None:
        record_tool_client_error(operation)
        self.logger.error(f"MCP {operation} failed: {reason}",
                          extra={"extra_data": {"component": "tool_client", "endpoint": self.base}})

    async def initialize(self) -> bool:
        try:
            resp = await self.client.get(cfg.health_path)
        except httpx.HTTPError as e:
            self._report("initialize", e)
            return False
        return resp.is_success

    async def list_tools(self) -> List[ToolDescriptor]:
        try:
            body = await self._request("GET", cfg.tools_path)
        except ToolTransportFailure as e:
            self._report("list_tools", e)
            return []
        return parse_tools(body, self.logger)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        self.logger.info(f"Calling tool {name} via {cfg.chat_path} with arguments {arguments}")
        try:
            body = await self._request("POST", cfg.chat_path, {"tool": name, "arguments": arguments})
        except ToolTransportFailure as e:
            self._report("call_tool", e)
            record_tool_call(name, ok=False)
            return transport_error_text(e)
        record_tool_call(name, ok=True)
        response = body.get("response") if isinstance(body, dict) else None
        return str(response) if response is not None else "No response from server"

    async def aclose(self) -> None:
        await self.client.aclose()
