"""
Storage package - In-memory persistence for workflows and executions.
"""

from mcpflow.storage.memory import (
    ExecutionRecord,
    ExecutionStorage,
    NodeExecutionRecord,
    NodeExecutionStorage,
    OutputStorage,
    StoredWorkflow,
    WorkflowStorage,
    execution_storage,
    node_execution_storage,
    output_storage,
    workflow_storage,
)

__all__ = [
    "ExecutionRecord",
    "ExecutionStorage",
    "NodeExecutionRecord",
    "NodeExecutionStorage",
    "OutputStorage",
    "StoredWorkflow",
    "WorkflowStorage",
    "execution_storage",
    "node_execution_storage",
    "output_storage",
    "workflow_storage",
]
