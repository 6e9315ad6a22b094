"""
Async Workflow Executor.

The executor runs a stored workflow from its trigger nodes through the
edge graph, one node at a time, applying branch pruning and each node's
error strategy, and persists the run as it goes.
"""

from typing import Any, Dict, Optional
from collections import deque
from dataclasses import dataclass
from enum import Enum
import asyncio
import logging
import time

from mcpflow.config import settings
from mcpflow.engine import conditions
from mcpflow.engine.context import ExecutionContext, NodeResult
from mcpflow.engine.definition import (
    ConditionNodeData,
    ErrorStrategy,
    LogLevel,
    NodeKind,
    ServiceNodeData,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)
from mcpflow.engine.nodes import Collaborators, execute_node
from mcpflow.engine.progress import ProgressChannel, progress_channel
from mcpflow.engine.recorder import ExecutionRecorder
from mcpflow.engine.references import MISSING, get_path_value, resolve_reference
from mcpflow.services import MCPServiceClient, StoreSink, WebhookSink
from mcpflow.storage.memory import (
    ExecutionRecord,
    StoredWorkflow,
    execution_storage,
    node_execution_storage,
    workflow_storage,
)


# Configure logging
logger = logging.getLogger(__name__)


_LOG_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunLogger(logging.LoggerAdapter):
    """Logger for one run: prefixes the execution id and applies the workflow's log level."""

    def __init__(self, base: logging.Logger, execution_id: str, level: LogLevel):
        super().__init__(base, {"execution_id": execution_id})
        self.run_level = _LOG_LEVELS.get(level, logging.INFO)

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.run_level and super().isEnabledFor(level)

    def process(self, msg, kwargs):
        return f"[{self.extra['execution_id']}] {msg}", kwargs


@dataclass
class ExecutionResult:
    """Result of a workflow execution, as returned to the caller."""
    execution_id: str
    status: ExecutionStatus
    success: bool
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    duration_ms: int = 0
    total_cost_cents: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "status": self.status.value,
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "durationMs": self.duration_ms,
            "totalCostCents": self.total_cost_cents,
        }


@dataclass
class TraversalOutcome:
    """What the traversal loop hands back to execute_workflow."""
    status: ExecutionStatus
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    total_cost_cents: int = 0

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED


class WorkflowEngine:
    """
    Runs workflows and records their executions.

    Each run owns its ExecutionContext and a cancellation token; several
    runs may proceed concurrently against the same workflow.

    Usage:
        engine = WorkflowEngine()
        result = await engine.execute_workflow(stored_workflow, "user-1", {"text": "hi"})
    """

    def __init__(
        self,
        recorder: Optional[ExecutionRecorder] = None,
        services=None,
        webhooks=None,
        store=None,
        progress: Optional[ProgressChannel] = None,
    ):
        """
        Initialize the engine.

        Args:
            recorder: Execution recorder (global stores if not provided)
            services: Service client used by service nodes
            webhooks: Webhook sink used by output nodes
            store: Storage sink used by output nodes
            progress: Channel progress events are published on
        """
        self.recorder = recorder or ExecutionRecorder(
            execution_storage, node_execution_storage, workflow_storage
        )
        self.collaborators = Collaborators(
            services=services or MCPServiceClient(),
            webhooks=webhooks or WebhookSink(),
            store=store or StoreSink(),
        )
        self.progress = progress or progress_channel
        self._cancel_tokens: Dict[str, asyncio.Event] = {}

    # ============================================================
    # Run lifecycle
    # ============================================================

    async def create_execution(self, workflow: StoredWorkflow, user_id: str, input_data: Dict[str, Any]) -> ExecutionRecord:
        """Create the pending execution record for a run that starts later."""
        return await self.recorder.create_execution(workflow.id, user_id, input_data)

    async def execute_workflow(
        self,
        workflow: StoredWorkflow,
        user_id: str,
        input_data: Optional[Dict[str, Any]] = None,
        execution: Optional[ExecutionRecord] = None,
    ) -> ExecutionResult:
        """
        Execute a workflow with the given input.

        Args:
            workflow: The stored workflow to run
            user_id: User the run belongs to
            input_data: Input payload available as $input
            execution: Pre-created pending record (created if not provided)

        Returns:
            ExecutionResult with status, output, error, duration and cost
        """
        input_data = input_data or {}
        if execution is None:
            execution = await self.create_execution(workflow, user_id, input_data)
        execution_id = execution.id

        if execution.is_terminal:
            # Cancelled while still pending
            await self.recorder.increment_workflow_runs(workflow.id, False, 0)
            result = ExecutionResult(
                execution_id=execution_id,
                status=ExecutionStatus(execution.status),
                success=False,
                error=execution.error_message,
                duration_ms=execution.duration_ms or 0,
            )
            self._publish_completed(result)
            return result

        start_time = execution.started_at.timestamp()
        cancel_token = asyncio.Event()
        self._cancel_tokens[execution_id] = cancel_token
        run_log = RunLogger(logger, execution_id, workflow.definition.settings.log_level)

        try:
            await self.recorder.mark_running(execution_id)
            run_log.info(f"Starting workflow '{workflow.name}' ({workflow.id})")

            context = ExecutionContext(
                execution_id=execution_id,
                workflow_id=workflow.id,
                user_id=user_id,
                input_data=input_data,
            )
            outcome = await self._traverse(workflow.definition, context, cancel_token, start_time, run_log)
            duration_ms = int((time.time() - start_time) * 1000)

            await self.recorder.complete_execution(
                execution_id,
                outcome.status.value,
                outcome.output,
                outcome.error,
                duration_ms,
                outcome.total_cost_cents,
            )
            await self.recorder.increment_workflow_runs(workflow.id, outcome.success, outcome.total_cost_cents)

            if outcome.success:
                run_log.info(f"Completed in {duration_ms}ms, cost {outcome.total_cost_cents} cents")
            else:
                run_log.warning(f"Finished with status {outcome.status.value}: {outcome.error}")

            result = ExecutionResult(
                execution_id=execution_id,
                status=outcome.status,
                success=outcome.success,
                output=outcome.output,
                error=outcome.error,
                duration_ms=duration_ms,
                total_cost_cents=outcome.total_cost_cents,
            )

        except Exception as e:
            run_log.exception(f"Execution failed: {e}")
            error = str(e) or type(e).__name__
            duration_ms = int((time.time() - start_time) * 1000)
            await self.recorder.fail_execution(execution_id, error, duration_ms)
            await self.recorder.increment_workflow_runs(workflow.id, False, 0)
            result = ExecutionResult(
                execution_id=execution_id,
                status=ExecutionStatus.FAILED,
                success=False,
                error=error,
                duration_ms=duration_ms,
            )

        finally:
            self._cancel_tokens.pop(execution_id, None)

        self._publish_completed(result)
        return result

    def _publish_completed(self, result: ExecutionResult) -> None:
        self.progress.publish(result.execution_id, {
            "type": "execution_completed",
            "status": result.status.value,
            "success": result.success,
            "error": result.error,
            "duration_ms": result.duration_ms,
            "total_cost_cents": result.total_cost_cents,
        })

    def cancel(self, execution_id: str) -> bool:
        """
        Request cancellation of a running execution.

        The run stops before its next node dispatch.

        Returns:
            True if the execution is running in this engine
        """
        token = self._cancel_tokens.get(execution_id)
        if token is None:
            return False
        token.set()
        return True

    # ============================================================
    # Traversal
    # ============================================================

    async def _traverse(
        self,
        definition: WorkflowDefinition,
        context: ExecutionContext,
        cancel_token: asyncio.Event,
        start_time: float,
        run_log: logging.LoggerAdapter,
    ) -> TraversalOutcome:
        """Breadth-first walk from the trigger nodes; each node runs at most once."""
        triggers = definition.trigger_nodes()
        if not triggers:
            return TraversalOutcome(ExecutionStatus.FAILED, error="No trigger node found")

        nodes = definition.node_map()
        adjacency = definition.outgoing_edges()
        run_settings = definition.settings

        queue = deque(n.id for n in triggers)
        visited = set()
        retry_counts: Dict[str, int] = {}
        total_cost = 0
        final_output: Optional[Dict[str, Any]] = None

        while queue:
            node_id = queue.popleft()
            if node_id in visited:
                continue

            node = nodes.get(node_id)
            if node is None:
                run_log.warning(f"Edge points at unknown node '{node_id}', skipping")
                continue

            # Checks before dispatch
            if cancel_token.is_set():
                run_log.info(f"Cancelled before node '{node.label}'")
                return TraversalOutcome(ExecutionStatus.CANCELLED, error="Execution cancelled", total_cost_cents=total_cost)

            if run_settings.timeout and (time.time() - start_time) * 1000 > run_settings.timeout:
                return TraversalOutcome(
                    ExecutionStatus.FAILED,
                    error=f"Workflow timed out after {run_settings.timeout}ms",
                    total_cost_cents=total_cost,
                )

            if run_settings.max_cost_cents is not None and isinstance(node.data, ServiceNodeData) and node.data.service:
                if total_cost + node.data.service.cost_per_call_cents > run_settings.max_cost_cents:
                    return TraversalOutcome(
                        ExecutionStatus.FAILED,
                        error=f'Cost limit of {run_settings.max_cost_cents} cents exceeded at node "{node.label}"',
                        total_cost_cents=total_cost,
                    )

            result = await self._run_node(node, context, retry_counts.get(node_id, 0), run_log)

            if not result.success:
                strategy = node.error_strategy
                if strategy == ErrorStrategy.RETRY and retry_counts.get(node_id, 0) < node.max_retries:
                    retry_counts[node_id] = retry_counts.get(node_id, 0) + 1
                    run_log.info(f"Retrying node '{node.label}' ({retry_counts[node_id]}/{node.max_retries})")
                    queue.appendleft(node_id)
                    continue
                if strategy == ErrorStrategy.FAIL:
                    return TraversalOutcome(
                        ExecutionStatus.FAILED,
                        error=f'Node "{node.label}" failed: {result.error}',
                        total_cost_cents=total_cost + result.cost_cents,
                    )
                run_log.warning(f"Node '{node.label}' failed, continuing ({strategy.value}): {result.error}")

            visited.add(node_id)
            total_cost += result.cost_cents
            if result.output is not None:
                context.set_output(node_id, result.output)
            if node.type == NodeKind.OUTPUT.value and result.success:
                final_output = result.output

            for edge in adjacency.get(node_id, []):
                if self._should_follow(edge, node, nodes.get(edge.target), context):
                    self._apply_mapping(edge, context)
                    queue.append(edge.target)
                else:
                    run_log.debug(f"Pruned edge {edge.source} -> {edge.target} ({edge.branch})")

        output = final_output if final_output is not None else dict(context.node_outputs)
        return TraversalOutcome(ExecutionStatus.COMPLETED, output=output, total_cost_cents=total_cost)

    async def _run_node(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        retry_count: int,
        run_log: logging.LoggerAdapter,
    ) -> NodeResult:
        """Dispatch one node, record the visit and publish its transitions."""
        execution_id = context.execution_id
        await self.recorder.update_current_node(execution_id, node.id)
        self.progress.publish(execution_id, {
            "type": "node_started",
            "node_id": node.id,
            "status": ExecutionStatus.RUNNING.value,
        })
        run_log.debug(f"Executing node: {node.label} ({node.type})")

        timeout_ms = settings.NODE_TIMEOUT_MS
        if isinstance(node.data, ServiceNodeData) and node.data.timeout:
            timeout_ms = node.data.timeout

        result = await execute_node(node, context, self.collaborators, timeout_ms=timeout_ms)
        result.retry_count = retry_count
        await self.recorder.record_node_execution(execution_id, node, result)

        if result.success:
            run_log.debug(f"Node '{node.label}' completed in {result.duration_ms}ms")
        else:
            run_log.warning(f"Node '{node.label}' failed: {result.error}")

        self.progress.publish(execution_id, {
            "type": "node_completed" if result.success else "node_failed",
            "node_id": node.id,
            "status": "completed" if result.success else "failed",
            "error": result.error,
            "duration_ms": result.duration_ms,
            "retry_count": retry_count,
        })
        return result

    def _should_follow(
        self,
        edge: WorkflowEdge,
        source: WorkflowNode,
        target: Optional[WorkflowNode],
        context: ExecutionContext,
    ) -> bool:
        """Branch pruning for edges tagged "true"/"false"."""
        branch = edge.branch_value
        if branch is None:
            return True

        if isinstance(source.data, ConditionNodeData):
            outcome = context.node_outputs.get(source.id) or {}
            return bool(outcome.get("conditionResult")) == branch

        if target is not None and isinstance(target.data, ConditionNodeData):
            return conditions.evaluate(target.data.condition, context) == branch

        return True

    def _apply_mapping(self, edge: WorkflowEdge, context: ExecutionContext) -> None:
        """Assign scoped variables from the edge's data mapping."""
        if not edge.mapping:
            return
        source_output = context.node_outputs.get(edge.source)
        for name, path in edge.mapping.items():
            if path.startswith("$"):
                value = resolve_reference(path, context)
            else:
                value = get_path_value(source_output, path)
            if value is not MISSING:
                context.variables[name] = value


# Global engine instance
workflow_engine = WorkflowEngine()
