# config/settings.py

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MCPConfig(BaseModel):
    """Config for the tool backend (MCP server)."""

    base_url: str = Field("http://localhost:8081", description="Base URL of the MCP server")
    endpoint: str = "/mcp"  # JSON-RPC endpoint
    tools_path: str = "/tools"  # REST variant: plain GET listing
    chat_path: str = "/chat"  # REST variant: passthrough POST
    health_path: str = "/health"
    timeout_seconds: float = 30.0
    protocol_version: str = "2024-11-05"
    client_name: str = "mcp-chat-gateway"


class OpenAIConfig(BaseModel):
    """Config for the chat completion backend (OpenAI or any OpenAI-compatible server, e.g. Ollama)."""

    api_key: str = Field("not-set", repr=False)
    base_url: Optional[str] = None
    chat_model: str = "gpt-4.1-mini"
    decision_model: Optional[str] = None  # falls back to chat_model
    temperature: float = 0.3
    request_timeout_seconds: float = 60.0
    max_retries: int = 1  # 1 = single attempt
    backoff_factor: float = 0.5


class OrchestratorConfig(BaseModel):
    """Config for the streaming orchestrator."""

    request_timeout_seconds: float = 300.0
    tool_history_messages: int = 4
    decision_history_messages: int = 6
    enable_tools: bool = True
    serialize_session_turns: bool = True


class LoggingConfig(BaseModel):
    """Basic logging config."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logging: bool = True


class ModulesConfig(BaseModel):
    router_name: str = "LLMRouter"
    tool_client_name: str = "JsonRpcToolClient"
    llm_name: str = "OpenAIClient"


class Settings(BaseSettings):
    """Top-level app settings loaded from environment / .env."""

    env: Literal["dev", "staging", "prod"] = "dev"

    modules: ModulesConfig = ModulesConfig()
    mcp: MCPConfig = MCPConfig()
    openai: OpenAIConfig = OpenAIConfig()
    orchestrator: OrchestratorConfig = OrchestratorConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",              # all vars start with APP_
        env_nested_delimiter="__",      # APP_MCP__BASE_URL, etc.
        case_sensitive=False,
        extra="ignore",
    )


# Single global instance you import everywhere
settings = Settings()
