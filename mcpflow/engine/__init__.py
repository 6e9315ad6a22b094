"""
Engine package - Workflow definitions, resolution, conditions and execution.

The executor, recorder and node executors are imported from their own
modules (mcpflow.engine.executor etc.) since they depend on storage and
services.
"""

from mcpflow.engine.definition import (
    ErrorStrategy,
    NodeKind,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    WorkflowSettings,
)
from mcpflow.engine.context import ExecutionContext, NodeResult
from mcpflow.engine.references import MISSING, resolve_reference, resolve_inputs
from mcpflow.engine.conditions import evaluate
from mcpflow.engine.errors import (
    MCPFlowError,
    ConfigurationError,
    ServiceCallError,
    ConditionError,
    NodeTimeoutError,
)

__all__ = [
    "ErrorStrategy",
    "NodeKind",
    "WorkflowDefinition",
    "WorkflowEdge",
    "WorkflowNode",
    "WorkflowSettings",
    "ExecutionContext",
    "NodeResult",
    "MISSING",
    "resolve_reference",
    "resolve_inputs",
    "evaluate",
    "MCPFlowError",
    "ConfigurationError",
    "ServiceCallError",
    "ConditionError",
    "NodeTimeoutError",
]
