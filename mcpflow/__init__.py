"""
MCPFlow - An async workflow engine for chaining MCP service calls.

Run user-authored graphs of trigger, service, condition and output nodes,
tracking per-node status, cost and duration.
"""

__version__ = "1.0.0"
