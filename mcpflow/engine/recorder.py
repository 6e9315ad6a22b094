"""
Execution Recorder.

Persists execution and node-execution records as a side effect of
traversal. Every write goes through the storage layer so the records
always match the persisted field shapes.
"""

from typing import Any, Dict, Optional
from datetime import datetime, timedelta
import logging
import uuid

from mcpflow.engine.context import NodeResult
from mcpflow.engine.definition import ServiceNodeData, WorkflowNode
from mcpflow.storage.memory import (
    ExecutionRecord,
    ExecutionStorage,
    NodeExecutionRecord,
    NodeExecutionStorage,
    WorkflowStorage,
)


logger = logging.getLogger(__name__)


class ExecutionRecorder:
    """Writes WorkflowExecution and NodeExecution records for the engine."""

    def __init__(
        self,
        executions: ExecutionStorage,
        node_executions: NodeExecutionStorage,
        workflows: WorkflowStorage,
    ):
        self.executions = executions
        self.node_executions = node_executions
        self.workflows = workflows

    async def create_execution(self, workflow_id: str, user_id: str, input_data: Dict[str, Any]) -> ExecutionRecord:
        record = await self.executions.create(workflow_id, user_id, input_data)
        logger.debug(f"Created execution {record.id} for workflow {workflow_id}")
        return record

    async def mark_running(self, execution_id: str) -> None:
        await self.executions.update(execution_id, status="running")

    async def update_current_node(self, execution_id: str, node_id: str) -> None:
        await self.executions.update(execution_id, current_node_id=node_id)

    async def record_node_execution(
        self,
        execution_id: str,
        node: WorkflowNode,
        result: NodeResult,
    ) -> NodeExecutionRecord:
        """Insert the record of one node visit (retries insert again)."""
        completed_at = datetime.now()
        service_slug = None
        if isinstance(node.data, ServiceNodeData) and node.data.service is not None:
            service_slug = node.data.service.slug

        record = NodeExecutionRecord(
            id=str(uuid.uuid4()),
            execution_id=execution_id,
            node_id=node.id,
            status="completed" if result.success else "failed",
            input_data=result.input,
            output_data={"data": result.output} if result.output is not None else None,
            error_message=result.error,
            started_at=completed_at - timedelta(milliseconds=result.duration_ms),
            completed_at=completed_at,
            duration_ms=result.duration_ms,
            mcp_server_slug=service_slug,
            mcp_cost_cents=result.cost_cents,
            retry_count=result.retry_count,
        )
        await self.node_executions.insert(record)
        await self.executions.append_node(execution_id, node.id, failed=not result.success)
        return record

    async def complete_execution(
        self,
        execution_id: str,
        status: str,
        output: Optional[Dict[str, Any]],
        error: Optional[str],
        duration_ms: int,
        total_cost_cents: int,
    ) -> Optional[ExecutionRecord]:
        """
        Finalize an execution.

        Returns None when the record was already finalized elsewhere.
        """
        record = await self.executions.finalize(
            execution_id,
            status,
            output_data=output,
            error_message=error,
            duration_ms=duration_ms,
            total_cost_cents=total_cost_cents,
        )
        if record is None:
            logger.info(f"Execution {execution_id} was already finalized; keeping existing record")
        return record

    async def fail_execution(self, execution_id: str, error: str, duration_ms: int) -> Optional[ExecutionRecord]:
        return await self.complete_execution(execution_id, "failed", None, error, duration_ms, 0)

    async def cancel_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Mark a pending or running execution cancelled from outside a run."""
        record = await self.executions.get(execution_id)
        if record is None:
            return None
        duration_ms = int((datetime.now() - record.started_at).total_seconds() * 1000)
        return await self.executions.finalize(
            execution_id,
            "cancelled",
            error_message="Execution cancelled",
            duration_ms=duration_ms,
        )

    async def increment_workflow_runs(self, workflow_id: str, success: bool, cost_cents: int = 0) -> None:
        await self.workflows.increment_runs(workflow_id, success, cost_cents)
