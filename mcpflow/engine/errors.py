"""Error types raised inside the workflow engine."""


class MCPFlowError(Exception):
    """Base error for all engine errors."""


class ConfigurationError(MCPFlowError):
    """The workflow or one of its nodes is not runnable as configured."""


class ServiceCallError(MCPFlowError):
    """An MCP service call failed or returned a non-success response."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ConditionError(MCPFlowError):
    """A condition expression could not be tokenized, parsed or evaluated."""


class NodeTimeoutError(MCPFlowError):
    """A node did not finish within its deadline."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Node timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms
