"""
WebSocket Routes for Real-time Execution Streaming.

Provides live node transitions during workflow execution.
"""

from typing import Any, Dict
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import logging

from mcpflow.engine.executor import workflow_engine
from mcpflow.storage.memory import execution_storage, workflow_storage


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue) -> Dict[str, Any]:
    """Send progress events to the client until the execution finishes."""
    while True:
        event = await queue.get()
        await websocket.send_json(event)
        if event.get("type") == "execution_completed":
            return event


@router.websocket("/ws/run/{workflow_id}")
async def websocket_run(websocket: WebSocket, workflow_id: str):
    """
    WebSocket endpoint for real-time workflow execution.

    Connect to this endpoint and send the input payload as JSON.
    You'll receive node-by-node updates as the workflow executes.

    Message format (client -> server):
    ```json
    {"action": "start", "input": {"text": "..."}, "user_id": "user-1"}
    ```

    Message format (server -> client):
    ```json
    {
        "type": "node_completed",
        "execution_id": "...",
        "node_id": "s1",
        "status": "completed",
        "duration_ms": 15
    }
    ```
    """
    stored = await workflow_storage.get(workflow_id)
    if not stored:
        await websocket.close(code=4004, reason=f"Workflow '{workflow_id}' not found")
        return

    await websocket.accept()
    execution_id = None
    queue = None

    try:
        # Wait for start message
        data = await websocket.receive_json()

        if data.get("action") != "start":
            await websocket.send_json({
                "type": "error",
                "error": "Expected 'start' action"
            })
            return

        input_data = data.get("input", {})
        user_id = data.get("user_id", "anonymous")

        execution = await workflow_engine.create_execution(stored, user_id, input_data)
        execution_id = execution.id
        queue = workflow_engine.progress.subscribe(execution_id)

        # Send acknowledgment
        await websocket.send_json({
            "type": "started",
            "execution_id": execution_id,
            "workflow_id": workflow_id,
        })

        task = asyncio.create_task(
            workflow_engine.execute_workflow(stored, user_id, input_data, execution)
        )
        await _forward_events(websocket, queue)
        result = await task

        await websocket.send_json({
            "type": "completed",
            **result.to_dict(),
        })

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from execution {execution_id}")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        await websocket.send_json({
            "type": "error",
            "error": str(e),
        })
    finally:
        if queue is not None:
            workflow_engine.progress.unsubscribe(execution_id, queue)


@router.websocket("/ws/executions/{execution_id}")
async def websocket_subscribe(websocket: WebSocket, execution_id: str):
    """
    Subscribe to updates for an existing execution.

    Use this to watch an async execution started via
    POST /workflows/{workflow_id}/execute.
    """
    record = await execution_storage.get(execution_id)
    if not record:
        await websocket.close(code=4004, reason=f"Execution '{execution_id}' not found")
        return

    await websocket.accept()
    queue = workflow_engine.progress.subscribe(execution_id)

    try:
        # Send current snapshot
        await websocket.send_json({
            "type": "current_state",
            "execution_id": execution_id,
            "status": record.status,
            "current_node_id": record.current_node_id,
            "completed_nodes": list(record.completed_nodes),
            "failed_nodes": list(record.failed_nodes),
        })

        if record.is_terminal:
            await websocket.send_json({
                "type": "execution_completed",
                "execution_id": execution_id,
                "status": record.status,
                "success": record.status == "completed",
                "error": record.error_message,
                "duration_ms": record.duration_ms,
                "total_cost_cents": record.total_cost_cents,
            })
            return

        await _forward_events(websocket, queue)

    except WebSocketDisconnect:
        logger.info(f"Subscriber disconnected from execution {execution_id}")
    finally:
        workflow_engine.progress.unsubscribe(execution_id, queue)
