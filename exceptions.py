class GatewayError(Exception):
    """Base class for errors raised inside the gateway."""


class SessionNotFound(GatewayError):
    def __init__(self, session_id: str):
        super().__init__("Session not found")
        self.session_id = session_id


class ToolTransportFailure(GatewayError):
    """Tool backend unreachable, timed out or answered with something unparseable."""

    def __init__(self, message: str, timeout: bool = False):
        super().__init__(message)
        self.timeout = timeout


class GenerationFailure(GatewayError):
    """The LLM port failed before or while streaming."""


class RequestTimeout(GatewayError):
    def __init__(self, seconds: float):
        super().__init__(f"Request timed out after {seconds:g} seconds")
        self.seconds = seconds
