"""
Node Executors.

One executor per node kind. Every executor takes the node, the run's
context and the external collaborators, and returns a NodeResult
envelope. execute_node wraps the dispatch with a deadline and turns any
exception into a failure envelope, so nothing escapes to the scheduler.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol
from dataclasses import dataclass
import asyncio
import logging
import time

from mcpflow.engine import conditions
from mcpflow.engine.context import ExecutionContext, NodeResult
from mcpflow.engine.definition import (
    ConditionNodeData,
    NodeKind,
    OutputNodeData,
    OutputType,
    ServiceNodeData,
    WorkflowNode,
)
from mcpflow.engine.errors import NodeTimeoutError
from mcpflow.engine.references import missing_required, resolve_inputs


logger = logging.getLogger(__name__)


class ServiceClient(Protocol):
    async def call(self, slug: str, inputs: Dict[str, Any], config: Dict[str, Any]) -> Any:
        """Invoke a service; raise with a readable message on failure."""
        ...


class WebhookDelivery(Protocol):
    async def post(self, url: str, payload: Dict[str, Any]) -> Any:
        ...


class OutputStore(Protocol):
    async def store(self, config: Dict[str, Any], payload: Dict[str, Any], execution_id: Optional[str] = None) -> None:
        ...


@dataclass
class Collaborators:
    """External systems node executors call into."""
    services: ServiceClient
    webhooks: WebhookDelivery
    store: OutputStore


NodeExecutorFn = Callable[[WorkflowNode, ExecutionContext, Collaborators], Awaitable[NodeResult]]

# Registry of executors by node kind
_executor_registry: Dict[str, NodeExecutorFn] = {}


def node_executor(kind: NodeKind) -> Callable:
    """
    Decorator to register the executor for a node kind.

    Usage:
        @node_executor(NodeKind.TRIGGER)
        async def execute_trigger_node(node, context, collaborators):
            return NodeResult.ok(context.input_data)
    """
    def decorator(func: NodeExecutorFn) -> NodeExecutorFn:
        _executor_registry[kind.value] = func
        return func

    return decorator


def get_node_executor(kind: str) -> Optional[NodeExecutorFn]:
    """Get the executor registered for a node kind."""
    return _executor_registry.get(kind)


async def execute_node(
    node: WorkflowNode,
    context: ExecutionContext,
    collaborators: Collaborators,
    timeout_ms: Optional[int] = None,
) -> NodeResult:
    """
    Execute a single node.

    Args:
        node: The node to run
        context: The run's execution context
        collaborators: Service client and output sinks
        timeout_ms: Deadline for the node; None waits indefinitely

    Returns:
        The node's result envelope, with duration filled in
    """
    start_time = time.time()
    executor = get_node_executor(node.type)

    if executor is None:
        result = NodeResult.failed(f"Unknown node type: {node.type}")
    else:
        try:
            result = await asyncio.wait_for(
                executor(node, context, collaborators),
                timeout=timeout_ms / 1000 if timeout_ms else None,
            )
        except asyncio.TimeoutError:
            result = NodeResult.failed(str(NodeTimeoutError(timeout_ms)))
        except Exception as e:
            logger.exception(f"Node '{node.id}' raised: {e}")
            result = NodeResult.failed(str(e) or type(e).__name__)

    result.duration_ms = int((time.time() - start_time) * 1000)
    return result


# ============================================================
# Executors
# ============================================================

@node_executor(NodeKind.TRIGGER)
async def execute_trigger_node(node: WorkflowNode, context: ExecutionContext, collaborators: Collaborators) -> NodeResult:
    """Pass the run's input payload through unchanged."""
    return NodeResult.ok(context.input_data, input=context.input_data)


@node_executor(NodeKind.SERVICE)
async def execute_service_node(node: WorkflowNode, context: ExecutionContext, collaborators: Collaborators) -> NodeResult:
    """
    Call the MCP service bound to the node.

    Declared inputs are resolved against the context first. The service's
    per-call cost is charged only when the call succeeds.
    """
    data: ServiceNodeData = node.data
    if data.service is None:
        return NodeResult.failed("No service configured")

    resolved = resolve_inputs(data.inputs, context)
    missing = missing_required(data.inputs, resolved)
    if missing:
        return NodeResult.failed(f'Missing required input "{missing[0]}"', input=resolved)

    try:
        output = await collaborators.services.call(data.service.slug, resolved, data.config)
    except Exception as e:
        return NodeResult.failed(str(e) or "MCP call failed", input=resolved)

    return NodeResult.ok(output, cost_cents=data.service.cost_per_call_cents, input=resolved)


@node_executor(NodeKind.CONDITION)
async def execute_condition_node(node: WorkflowNode, context: ExecutionContext, collaborators: Collaborators) -> NodeResult:
    data: ConditionNodeData = node.data
    result = conditions.evaluate(data.condition, context)
    return NodeResult.ok({"conditionResult": result}, input={"condition": data.condition})


@node_executor(NodeKind.OUTPUT)
async def execute_output_node(node: WorkflowNode, context: ExecutionContext, collaborators: Collaborators) -> NodeResult:
    """
    Collect every node output so far and deliver it to the node's sink.

    Sink failures are logged; the node itself always succeeds.
    """
    data: OutputNodeData = node.data
    snapshot = context.snapshot()

    if data.output_type == OutputType.WEBHOOK:
        url = data.config.get("url")
        if url:
            try:
                await collaborators.webhooks.post(url, snapshot)
            except Exception as e:
                logger.warning(f"Webhook delivery for node '{node.id}' failed: {e}")
        else:
            logger.warning(f"Output node '{node.id}' has no webhook url configured")
    elif data.output_type == OutputType.STORE:
        try:
            await collaborators.store.store(data.config, snapshot, execution_id=context.execution_id)
        except Exception as e:
            logger.warning(f"Storing output of node '{node.id}' failed: {e}")

    return NodeResult.ok(snapshot)
