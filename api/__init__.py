TOOL_CLIENTS = {
    "JsonRpcToolClient": "api.mcp_jsonrpc",
    "RestToolClient": "api.mcp_rest",
}
